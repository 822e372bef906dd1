"""TerseJSON: transparent JSON key compression."""

__version__ = "0.1.0"

from .config import TerseConfig, load_config
from .core import (
    CompressOptions,
    KeyTable,
    build_key_table,
    collect_keys,
    compress,
    expand,
    is_compressible_array,
    maybe_compress,
)
from .envelope import MalformedEnvelopeError, TerseError, is_path_payload, is_terse_payload
from .graphql import (
    PathCompressOptions,
    compress_graphql_response,
    find_compressible_arrays,
    process_graphql_response,
)
from .keygen import PrefixedPattern, create_key_generator
from .memory import TerseCache, acompress_stream, compress_rows, compress_stream, terse_rows
from .stats import CompressionStats, TokenCounter, measure
from .view import TerseView, dumps, json_default, wrap_payload

__all__ = [
    "TerseConfig",
    "load_config",
    "CompressOptions",
    "KeyTable",
    "build_key_table",
    "collect_keys",
    "compress",
    "expand",
    "is_compressible_array",
    "maybe_compress",
    "TerseError",
    "MalformedEnvelopeError",
    "is_terse_payload",
    "is_path_payload",
    "PathCompressOptions",
    "compress_graphql_response",
    "find_compressible_arrays",
    "process_graphql_response",
    "PrefixedPattern",
    "create_key_generator",
    "TerseCache",
    "compress_stream",
    "acompress_stream",
    "compress_rows",
    "terse_rows",
    "TokenCounter",
    "CompressionStats",
    "measure",
    "TerseView",
    "wrap_payload",
    "json_default",
    "dumps",
]
