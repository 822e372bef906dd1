"""Key discovery, key tables and the compress/expand transforms."""

from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Union

from .envelope import (
    DATA,
    ENVELOPE_VERSION,
    MARKER,
    PATTERN,
    TABLE,
    VERSION,
    MalformedEnvelopeError,
    require_envelope,
)
from .keygen import KeyGenerator, KeyPattern, alpha_key, create_key_generator
from .stats import json_size

logger = logging.getLogger(__name__)

# Expansion always unwinds this far, whatever depth was used to compress.
EXPAND_MAX_DEPTH = 10

NESTED_MODES = frozenset({"deep", "shallow", "arrays"})

NestedHandling = Union[str, int]


@dataclass
class CompressOptions:
    min_key_length: int = 3
    max_depth: int = 10
    key_pattern: KeyPattern = "alpha"
    nested_handling: NestedHandling = "deep"  # deep | shallow | arrays | <depth>
    homogeneous_only: bool = False
    exclude_keys: frozenset = field(default_factory=frozenset)
    include_keys: frozenset = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        self.exclude_keys = frozenset(self.exclude_keys)
        self.include_keys = frozenset(self.include_keys)
        if self.min_key_length < 0:
            raise ValueError("min_key_length must be >= 0")
        if self.max_depth < 1:
            raise ValueError("max_depth must be >= 1")
        nested = self.nested_handling
        if isinstance(nested, bool) or not isinstance(nested, (str, int)):
            raise ValueError(f"Invalid nested handling: {nested!r}")
        if isinstance(nested, str) and nested not in NESTED_MODES:
            raise ValueError(f"Invalid nested handling: {nested}")
        if isinstance(nested, int) and nested < 0:
            raise ValueError("Nested handling depth must be >= 0")
        create_key_generator(self.key_pattern)

    @property
    def effective_depth(self) -> int:
        """Recursion ceiling shared by key discovery and the transform."""
        if self.nested_handling == "shallow":
            return 1
        if isinstance(self.nested_handling, int):
            return self.nested_handling
        return self.max_depth


class KeyTable:
    """Bidirectional canonical name <-> alias mapping for one compression call."""

    __slots__ = ("_aliases", "_names")

    def __init__(self, pairs: Iterable[tuple[str, str]] = ()):
        self._aliases: dict[str, str] = {}
        self._names: dict[str, str] = {}
        for name, alias in pairs:
            if name in self._aliases or alias in self._names:
                raise ValueError(f"Duplicate key table entry: {name!r} -> {alias!r}")
            self._aliases[name] = alias
            self._names[alias] = name

    @classmethod
    def from_wire(cls, table: Mapping[str, str]) -> KeyTable:
        """Build from the wire form ``{alias: canonical}``."""
        try:
            return cls((str(name), str(alias)) for alias, name in table.items())
        except ValueError as exc:
            raise MalformedEnvelopeError(str(exc)) from exc

    @property
    def forward(self) -> Mapping[str, str]:
        return MappingProxyType(self._aliases)

    @property
    def reverse(self) -> Mapping[str, str]:
        return MappingProxyType(self._names)

    def alias_for(self, name: str) -> str:
        return self._aliases.get(name, name)

    def name_for(self, alias: str) -> str:
        return self._names.get(alias, alias)

    def to_wire(self) -> dict[str, str]:
        return dict(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyTable):
            return NotImplemented
        return list(self._names.items()) == list(other._names.items())

    def __repr__(self) -> str:
        return f"KeyTable({self._aliases!r})"


def clone_json(value: Any) -> Any:
    """Clone JSON-serializable data via round-trip."""
    return json.loads(json.dumps(value))


def is_compressible_array(value: Any) -> bool:
    """Non-empty list whose elements are all records. Never raises."""
    return (
        isinstance(value, list)
        and len(value) > 0
        and all(isinstance(item, Mapping) for item in value)
    )


# ---------------------------------------------------------------------------
# Key discovery
# ---------------------------------------------------------------------------


def _is_eligible(key: str, opts: CompressOptions) -> bool:
    if key in opts.exclude_keys:
        return False
    return key in opts.include_keys or len(key) >= opts.min_key_length


def _collect_level(
    records: Iterable[Any],
    opts: CompressOptions,
    effective_depth: int,
    depth: int,
) -> set[str]:
    if depth >= effective_depth:
        return set()

    counts: Counter[str] = Counter()
    nested: set[str] = set()
    siblings = 0
    for item in records:
        if not isinstance(item, Mapping):
            continue
        siblings += 1
        for key, value in item.items():
            if _is_eligible(key, opts):
                counts[key] += 1
            if is_compressible_array(value):
                nested |= _collect_level(value, opts, effective_depth, depth + 1)
            elif isinstance(value, Mapping) and opts.nested_handling not in ("shallow", "arrays"):
                nested |= _collect_level([value], opts, effective_depth, depth + 1)

    if opts.homogeneous_only:
        level = {key for key, count in counts.items() if count >= siblings}
    else:
        level = set(counts)
    return level | nested


def collect_keys(records: Iterable[Any], options: Optional[CompressOptions] = None) -> set[str]:
    """Return the flat set of field names eligible for aliasing."""
    opts = options or CompressOptions()
    return _collect_level(records, opts, opts.effective_depth, 0)


def _walk_keys(value: Any, max_depth: int, depth: int, found: set[str]) -> None:
    if isinstance(value, list):
        for item in value:
            if isinstance(item, Mapping):
                _walk_keys(item, max_depth, depth + 1, found)
        return
    if not isinstance(value, Mapping) or depth >= max_depth:
        return
    for key, child in value.items():
        found.add(key)
        if isinstance(child, (list, Mapping)):
            _walk_keys(child, max_depth, depth if isinstance(child, list) else depth + 1, found)


def tree_keys(records: Iterable[Any], max_depth: int = EXPAND_MAX_DEPTH) -> set[str]:
    """Every field name occurring in ``records`` down to ``max_depth``."""
    found: set[str] = set()
    for item in records:
        if isinstance(item, Mapping):
            _walk_keys(item, max_depth, 0, found)
    return found


# ---------------------------------------------------------------------------
# Namespace
# ---------------------------------------------------------------------------


def build_key_table(
    names: Iterable[str],
    generator: Optional[KeyGenerator] = None,
    *,
    reserved: Iterable[str] = (),
) -> KeyTable:
    """Assign aliases to ``names`` in sorted order.

    An alias is adopted only when it is strictly shorter than the name and
    does not coincide with a ``reserved`` field name.
    """
    generate = generator or alpha_key
    blocked = frozenset(reserved)
    pairs = []
    for index, name in enumerate(sorted(set(names))):
        alias = generate(index)
        if len(alias) < len(name) and alias not in blocked:
            pairs.append((name, alias))
    return KeyTable(pairs)


# ---------------------------------------------------------------------------
# Transform
# ---------------------------------------------------------------------------


def _rewrite_value(value: Any, mapping: Mapping[str, str], max_depth: int, depth: int) -> Any:
    if isinstance(value, list):
        return [
            rewrite_record(item, mapping, max_depth, depth + 1)
            if isinstance(item, Mapping)
            else item
            for item in value
        ]
    if isinstance(value, Mapping):
        return rewrite_record(value, mapping, max_depth, depth + 1)
    return value


def rewrite_record(
    record: Mapping[str, Any],
    mapping: Mapping[str, str],
    max_depth: int,
    depth: int = 0,
) -> Any:
    """Rename keys found in ``mapping``; subtrees past ``max_depth`` are returned as-is."""
    if depth >= max_depth:
        return record
    out: dict[str, Any] = {}
    for key, value in record.items():
        out[mapping.get(key, key)] = _rewrite_value(value, mapping, max_depth, depth)
    return out


def _rewrite_tree(data: Any, mapping: Mapping[str, str], max_depth: int) -> Any:
    if isinstance(data, list):
        return [
            rewrite_record(item, mapping, max_depth) if isinstance(item, Mapping) else item
            for item in data
        ]
    if isinstance(data, Mapping):
        return rewrite_record(data, mapping, max_depth)
    return data


def compress(data: Any, options: Optional[CompressOptions] = None) -> dict[str, Any]:
    """Compress a record or list of records into a REST envelope."""
    opts = options or CompressOptions()
    if isinstance(data, Mapping):
        records = [data]
    elif isinstance(data, list):
        records = data
    else:
        raise TypeError(f"compress expects a record or a list of records, got {type(data).__name__}")

    generator, pattern_name = create_key_generator(opts.key_pattern)
    depth = opts.effective_depth
    names = collect_keys(records, opts)
    table = build_key_table(
        names,
        generator,
        reserved=tree_keys(records, max(depth, EXPAND_MAX_DEPTH)),
    )

    envelope = {
        MARKER: True,
        VERSION: ENVELOPE_VERSION,
        TABLE: table.to_wire(),
        DATA: _rewrite_tree(data, table.forward, depth),
        PATTERN: pattern_name,
    }

    if logger.isEnabledFor(logging.DEBUG):
        original_bytes = json_size(data)
        compressed_bytes = json_size(envelope)
        saved = (1 - compressed_bytes / original_bytes) * 100 if original_bytes else 0.0
        logger.debug(
            "Compressed %d -> %d bytes (%.1f%% savings, %d aliases, pattern=%s)",
            original_bytes,
            compressed_bytes,
            saved,
            len(table),
            pattern_name,
        )
    return envelope


def expand(payload: Any) -> Any:
    """Fully expand a REST envelope back to canonical field names."""
    wire_table, data = require_envelope(payload)
    table = KeyTable.from_wire(wire_table)
    return _rewrite_tree(data, table.reverse, EXPAND_MAX_DEPTH)


def maybe_compress(
    data: Any,
    options: Optional[CompressOptions] = None,
    *,
    min_array_length: int = 2,
) -> Any:
    """Compress ``data`` when it is a compressible array, else return it untouched."""
    if not is_compressible_array(data) or len(data) < min_array_length:
        return data
    return compress(data, options)
