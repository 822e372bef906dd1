"""Wire envelope shapes and their recognition predicates."""

from __future__ import annotations

from typing import Any, Mapping

ENVELOPE_VERSION = 1

# REST envelope fields
MARKER = "marker"
VERSION = "version"
TABLE = "table"
DATA = "data"
PATTERN = "pattern"

# Path-addressed envelope fields
META = "meta"
PATHS = "paths"


class TerseError(ValueError):
    """Base error for TerseJSON codec failures."""


class MalformedEnvelopeError(TerseError):
    """Raised when an expand/view call receives an incomplete envelope."""


def is_terse_payload(value: Any) -> bool:
    """True when ``value`` carries the REST envelope marker and fields."""
    return (
        isinstance(value, Mapping)
        and value.get(MARKER) is True
        and VERSION in value
        and TABLE in value
        and DATA in value
    )


def is_path_payload(value: Any) -> bool:
    """True when ``value`` is a path-addressed (GraphQL) envelope."""
    if not isinstance(value, Mapping) or DATA not in value:
        return False
    meta = value.get(META)
    return (
        isinstance(meta, Mapping)
        and VERSION in meta
        and TABLE in meta
        and PATHS in meta
    )


def require_envelope(payload: Any) -> tuple[dict[str, str], Any]:
    """Validate a REST envelope and return ``(table, data)``."""
    if not isinstance(payload, Mapping):
        raise MalformedEnvelopeError(
            f"Envelope must be a mapping, got {type(payload).__name__}"
        )
    missing = [name for name in (TABLE, DATA) if name not in payload]
    if missing:
        raise MalformedEnvelopeError(f"Envelope is missing field(s): {', '.join(missing)}")
    table = payload[TABLE]
    if not isinstance(table, Mapping):
        raise MalformedEnvelopeError("Envelope key table must be a mapping")
    version = payload.get(VERSION, ENVELOPE_VERSION)
    if version != ENVELOPE_VERSION:
        raise MalformedEnvelopeError(f"Unsupported envelope version: {version!r}")
    return {str(alias): str(name) for alias, name in table.items()}, payload[DATA]
