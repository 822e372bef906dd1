"""Path-addressed compression for GraphQL-style responses.

Every qualifying array of records inside ``response["data"]`` is located,
one key table is built across all of them, and each array is rewritten in
a clone of the tree. ``meta.paths`` records where the arrays live so a
consumer can find and re-wrap them.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from .core import (
    EXPAND_MAX_DEPTH,
    CompressOptions,
    KeyTable,
    build_key_table,
    clone_json,
    collect_keys,
    is_compressible_array,
    rewrite_record,
    tree_keys,
)
from .envelope import DATA, ENVELOPE_VERSION, META, PATHS, TABLE, VERSION, MalformedEnvelopeError, is_path_payload
from .keygen import create_key_generator
from .stats import json_size
from .view import wrap_records

logger = logging.getLogger(__name__)

_PATH_TOKEN = re.compile(r"([^.\[\]]+)|\[(\d+)\]")

PathPart = Union[str, int]


@dataclass
class PathCompressOptions(CompressOptions):
    min_array_length: int = 2
    exclude_paths: frozenset = field(default_factory=frozenset)
    should_compress: Optional[Callable[[list, str], bool]] = None

    def __post_init__(self) -> None:
        super().__post_init__()
        self.exclude_paths = frozenset(self.exclude_paths)
        if self.min_array_length < 0:
            raise ValueError("min_array_length must be >= 0")


def parse_path(path: str) -> list[PathPart]:
    """``data.users[0].orders`` -> ``["data", "users", 0, "orders"]``."""
    parts: list[PathPart] = []
    for match in _PATH_TOKEN.finditer(path):
        name, index = match.groups()
        parts.append(int(index) if index is not None else name)
    return parts


def _step(current: Any, part: PathPart) -> Any:
    if isinstance(part, int):
        if isinstance(current, list) and 0 <= part < len(current):
            return current[part]
        return None
    if isinstance(current, Mapping):
        return current.get(part)
    return None


def get_at_path(obj: Any, path: str) -> Any:
    current = obj
    for part in parse_path(path):
        if current is None:
            return None
        current = _step(current, part)
    return current


def set_at_path(obj: Any, path: str, value: Any) -> None:
    """Assign ``value`` at ``path`` inside ``obj`` (mutates ``obj``)."""
    parts = parse_path(path)
    if not parts:
        raise ValueError("Empty path")
    parent = obj
    for part in parts[:-1]:
        parent = _step(parent, part)
        if parent is None:
            raise KeyError(path)
    parent[parts[-1]] = value


def _path_depth(path: str) -> int:
    return path.count(".") + path.count("[")


def find_compressible_arrays(
    data: Any,
    base_path: str = DATA,
    *,
    min_array_length: int = 2,
    exclude_paths: Iterable[str] = (),
    max_depth: int = 10,
    _depth: int = 0,
) -> list[tuple[str, list]]:
    """Locate arrays of records worth compressing, with their paths."""
    results: list[tuple[str, list]] = []
    if _depth >= max_depth:
        return results
    excluded = exclude_paths if isinstance(exclude_paths, frozenset) else frozenset(exclude_paths)

    if isinstance(data, list):
        if (
            is_compressible_array(data)
            and len(data) >= min_array_length
            and base_path not in excluded
        ):
            results.append((base_path, data))
        for index, item in enumerate(data):
            if isinstance(item, (list, Mapping)):
                results.extend(
                    find_compressible_arrays(
                        item,
                        f"{base_path}[{index}]",
                        min_array_length=min_array_length,
                        exclude_paths=excluded,
                        max_depth=max_depth,
                        _depth=_depth + 1,
                    )
                )
    elif isinstance(data, Mapping):
        for key, value in data.items():
            results.extend(
                find_compressible_arrays(
                    value,
                    f"{base_path}.{key}",
                    min_array_length=min_array_length,
                    exclude_paths=excluded,
                    max_depth=max_depth,
                    _depth=_depth + 1,
                )
            )
    return results


def compress_graphql_response(
    response: Any,
    options: Optional[PathCompressOptions] = None,
) -> Any:
    """Compress every qualifying array in ``response["data"]`` with one shared table.

    Returns ``response`` untouched when there is nothing to compress.
    """
    opts = options or PathCompressOptions()
    if not isinstance(response, Mapping) or not response.get(DATA):
        return response

    arrays = find_compressible_arrays(
        response[DATA],
        DATA,
        min_array_length=opts.min_array_length,
        exclude_paths=opts.exclude_paths,
        max_depth=opts.max_depth,
    )
    if opts.should_compress is not None:
        arrays = [(path, array) for path, array in arrays if opts.should_compress(array, path)]
    if not arrays:
        return response

    depth = opts.effective_depth
    names: set[str] = set()
    reserved: set[str] = set()
    for _, array in arrays:
        names |= collect_keys(array, opts)
        reserved |= tree_keys(array, max(depth, EXPAND_MAX_DEPTH))

    generator, _ = create_key_generator(opts.key_pattern)
    table = build_key_table(names, generator, reserved=reserved)
    if not len(table):
        return response

    root = {DATA: clone_json(response[DATA])}
    paths: list[str] = []
    # Deepest first, reading back from the clone so an ancestor keeps its
    # already rewritten children. Rewriting twice is a no-op since no alias
    # matches a field name.
    for path, _ in sorted(arrays, key=lambda item: _path_depth(item[0]), reverse=True):
        current = get_at_path(root, path)
        set_at_path(root, path, [rewrite_record(item, table.forward, depth) for item in current])
        paths.append(path)

    result: dict[str, Any] = {
        DATA: root[DATA],
        META: {VERSION: ENVELOPE_VERSION, TABLE: table.to_wire(), PATHS: paths},
    }
    for extra in ("errors", "extensions"):
        if response.get(extra):
            result[extra] = response[extra]

    if logger.isEnabledFor(logging.DEBUG):
        original_bytes = json_size(response)
        compressed_bytes = json_size(result)
        saved = (1 - compressed_bytes / original_bytes) * 100 if original_bytes else 0.0
        logger.debug(
            "Compressed %d -> %d bytes (%.1f%% savings), paths: %s",
            original_bytes,
            compressed_bytes,
            saved,
            ", ".join(paths),
        )
    return result


def _covered(path: str, done: list[str]) -> bool:
    return any(path.startswith(f"{parent}.") or path.startswith(f"{parent}[") for parent in done)


def process_graphql_response(response: Any, *, use_view: bool = True) -> Any:
    """Re-locate compressed arrays and wrap (or fully expand) them.

    Non-envelope input is returned as-is.
    """
    if not is_path_payload(response):
        return response

    meta = response[META]
    if not isinstance(meta[TABLE], Mapping):
        raise MalformedEnvelopeError("Envelope key table must be a mapping")
    if meta[VERSION] != ENVELOPE_VERSION:
        raise MalformedEnvelopeError(f"Unsupported envelope version: {meta[VERSION]!r}")
    table = KeyTable.from_wire(meta[TABLE])

    result: dict[str, Any] = {DATA: clone_json(response[DATA])}
    for key, value in response.items():
        if key not in (DATA, META):
            result[key] = value

    # An ancestor array already covers every array nested inside it.
    done: list[str] = []
    for path in sorted(meta[PATHS], key=_path_depth):
        if _covered(path, done):
            continue
        array = get_at_path(result, path)
        if not isinstance(array, list):
            logger.debug("Path not found or not an array: %s", path)
            continue
        if use_view:
            restored = wrap_records(array, table)
        else:
            restored = [
                rewrite_record(item, table.reverse, EXPAND_MAX_DEPTH) if isinstance(item, Mapping) else item
                for item in array
            ]
        set_at_path(result, path, restored)
        done.append(path)
    return result
