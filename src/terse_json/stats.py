"""Byte and token measurement for compressed payloads."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any, Optional


def json_dumps_compact(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=_fallback)


def _fallback(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return str(value)


def json_size(value: Any) -> int:
    return len(json_dumps_compact(value).encode("utf-8"))


class TokenCounter:
    """Best-effort token estimator with optional tiktoken backend."""

    def __init__(self, encoding_name: str = "cl100k_base", *, strict: bool = False):
        self._enc = None
        self.encoding_name = encoding_name
        self.backend = "heuristic"
        try:
            import tiktoken  # type: ignore
        except ImportError as exc:
            if strict:
                raise ValueError(
                    "tiktoken is required for strict token counting but is not installed"
                ) from exc
            tiktoken = None  # type: ignore
        if tiktoken:
            try:
                self._enc = tiktoken.get_encoding(encoding_name)
                self.backend = "tiktoken"
            except Exception as exc:
                if strict:
                    raise ValueError(
                        f"Requested tokenizer encoding '{encoding_name}' is unavailable"
                    ) from exc
                self._enc = None

    def count(self, value: Any) -> int:
        text = json_dumps_compact(value)
        if self._enc is not None:
            return len(self._enc.encode(text))
        return max(1, len(text) // 4)


@dataclass
class CompressionStats:
    original_bytes: int
    compressed_bytes: int
    original_tokens: int
    compressed_tokens: int
    token_backend: str

    @property
    def saved_bytes(self) -> int:
        return self.original_bytes - self.compressed_bytes

    @property
    def saved_ratio(self) -> float:
        if not self.original_bytes:
            return 0.0
        return self.saved_bytes / self.original_bytes

    @property
    def saved_tokens(self) -> int:
        return self.original_tokens - self.compressed_tokens

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out.update(
            saved_bytes=self.saved_bytes,
            saved_ratio=round(self.saved_ratio, 4),
            saved_tokens=self.saved_tokens,
        )
        return out


def measure(original: Any, compressed: Any, counter: Optional[TokenCounter] = None) -> CompressionStats:
    """Compare the serialized size of ``original`` and ``compressed``."""
    c = counter or TokenCounter()
    return CompressionStats(
        original_bytes=json_size(original),
        compressed_bytes=json_size(compressed),
        original_tokens=c.count(original),
        compressed_tokens=c.count(compressed),
        token_backend=c.backend,
    )
