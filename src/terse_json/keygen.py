"""Short alias generators for TerseJSON key tables."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Union

KeyGenerator = Callable[[int], str]

DEFAULT_PATTERN = "alpha"


def alpha_key(index: int) -> str:
    """Bijective base-26: 0 -> a, 25 -> z, 26 -> aa, 27 -> ab."""
    key = ""
    remaining = index
    while True:
        key = chr(97 + remaining % 26) + key
        remaining = remaining // 26 - 1
        if remaining < 0:
            return key


def numeric_key(index: int) -> str:
    return str(index)


def alphanumeric_key(index: int) -> str:
    """a1..a9, b1..b9, ..."""
    return f"{alpha_key(index // 9)}{index % 9 + 1}"


def short_key(index: int) -> str:
    if index == 0:
        return "_"
    return alpha_key(index - 1)


@dataclass(frozen=True)
class PrefixedPattern:
    prefix: str
    style: str = "numeric"  # numeric | alpha

    def generator(self) -> KeyGenerator:
        prefix = self.prefix
        if self.style == "numeric":
            return lambda index: f"{prefix}{index}"
        if self.style == "alpha":
            return lambda index: f"{prefix}{alpha_key(index)}"
        raise ValueError(f"Invalid prefixed key style: {self.style}")


KeyPattern = Union[str, PrefixedPattern, Mapping[str, Any], KeyGenerator]

PRESETS: dict[str, KeyGenerator] = {
    "alpha": alpha_key,
    "numeric": numeric_key,
    "alphanumeric": alphanumeric_key,
    "short": short_key,
}


def create_key_generator(pattern: KeyPattern | None = None) -> tuple[KeyGenerator, str]:
    """Resolve a key pattern to ``(generator, pattern_name)``.

    The pattern name is what ends up in the envelope ``pattern`` field.
    """
    if pattern is None:
        pattern = DEFAULT_PATTERN
    if isinstance(pattern, str):
        generator = PRESETS.get(pattern)
        if generator is None:
            raise ValueError(f"Unknown key pattern: {pattern}")
        return generator, pattern
    if isinstance(pattern, Mapping):
        prefix = pattern.get("prefix")
        if not isinstance(prefix, str):
            raise ValueError("Prefixed key pattern requires a string 'prefix'")
        pattern = PrefixedPattern(prefix=prefix, style=str(pattern.get("style", "numeric")))
    if isinstance(pattern, PrefixedPattern):
        return pattern.generator(), f"prefixed:{pattern.prefix}"
    if callable(pattern):
        return pattern, "custom"
    raise ValueError(f"Unsupported key pattern: {pattern!r}")
