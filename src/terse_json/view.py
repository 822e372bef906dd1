"""Read-through view over compressed records.

A ``TerseView`` answers reads, membership tests, enumeration and
serialization in canonical field names while the underlying storage keeps
its aliases. Nested records are wrapped on each read (wrappers are not
cached); arrays of records are wrapped element by element when read.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Iterator, Optional

from .core import KeyTable
from .envelope import require_envelope


class TerseView(Mapping):
    """Mapping over a compressed record that speaks canonical names."""

    __slots__ = ("_record", "_table")

    def __init__(self, record: Mapping[str, Any], table: KeyTable):
        self._record = record
        self._table = table

    def _storage_key(self, name: str) -> Optional[str]:
        # Subtrees past the compression depth keep their canonical keys.
        alias = self._table.alias_for(name)
        if alias in self._record:
            return alias
        if name in self._record:
            return name
        return None

    def __getitem__(self, name: str) -> Any:
        key = self._storage_key(name)
        if key is None:
            raise KeyError(name)
        return _wrap_value(self._record[key], self._table)

    def __getattr__(self, name: str) -> Any:
        if name in ("_record", "_table") or (name.startswith("__") and name.endswith("__")):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(
                f"{type(self).__name__!r} object has no field {name!r}"
            ) from None

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        return self._storage_key(name) is not None

    def __iter__(self) -> Iterator[str]:
        for alias in self._record:
            yield self._table.name_for(alias)

    def __len__(self) -> int:
        return len(self._record)

    def to_dict(self) -> dict[str, Any]:
        """Materialize the whole subtree with canonical names."""
        return {name: _materialize(value) for name, value in self.items()}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_dict()!r})"


def _wrap_value(value: Any, table: KeyTable) -> Any:
    if isinstance(value, TerseView):
        return value
    if isinstance(value, Mapping):
        return TerseView(value, table)
    if isinstance(value, list):
        return [TerseView(item, table) if isinstance(item, Mapping) else item for item in value]
    return value


def _materialize(value: Any) -> Any:
    if isinstance(value, TerseView):
        return value.to_dict()
    if isinstance(value, list):
        return [_materialize(item) for item in value]
    return value


def wrap_records(data: Any, table: KeyTable) -> Any:
    """Wrap a compressed record, or each record of a compressed array."""
    return _wrap_value(data, table)


def wrap_payload(payload: Any) -> Any:
    """Wrap the data of a REST envelope in lazy views."""
    wire_table, data = require_envelope(payload)
    return wrap_records(data, KeyTable.from_wire(wire_table))


def json_default(value: Any) -> Any:
    """``json.dumps(default=...)`` hook that serializes views canonically."""
    if isinstance(value, TerseView):
        return value.to_dict()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(value: Any, **kwargs: Any) -> str:
    kwargs.setdefault("default", json_default)
    return json.dumps(value, **kwargs)
