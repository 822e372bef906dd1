"""CLI entry point for TerseJSON."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Optional

from .config import TerseConfig, load_config
from .core import compress, expand
from .envelope import is_path_payload
from .graphql import compress_graphql_response, process_graphql_response
from .stats import measure
from .view import dumps, wrap_payload

logger = logging.getLogger(__name__)


def _add_input_output(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", nargs="?", default="-", help="JSON input file (default: stdin)")
    parser.add_argument("--output", "-o", help="Write result to this file instead of stdout")
    parser.add_argument("--config", help="Path to TerseJSON config (JSON or YAML)")
    parser.add_argument("--indent", type=int, help="Indent output JSON")
    parser.add_argument("--verbose", "-v", action="store_true", default=None, help="Enable debug logging")
    parser.add_argument("--dump-effective-config", action="store_true", help="Print resolved config to stderr")


def _add_compress_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--key-pattern",
        choices=["alpha", "numeric", "alphanumeric", "short"],
        help="Alias generator preset",
    )
    parser.add_argument("--prefix", help="Use prefixed aliases with this prefix")
    parser.add_argument("--prefix-style", choices=["numeric", "alpha"], help="Suffix style for --prefix")
    parser.add_argument("--min-key-length", type=int, help="Shortest key name eligible for aliasing")
    parser.add_argument("--max-depth", type=int, help="Recursion ceiling")
    parser.add_argument("--nested", dest="nested_handling", help="deep | shallow | arrays | <depth>")
    parser.add_argument(
        "--homogeneous-only",
        action="store_true",
        default=None,
        help="Only alias keys present on every sibling record",
    )
    parser.add_argument("--exclude-key", dest="exclude_keys", action="append", metavar="NAME", help="Never alias NAME (repeatable)")
    parser.add_argument("--include-key", dest="include_keys", action="append", metavar="NAME", help="Always consider NAME (repeatable)")
    parser.add_argument("--graphql", action="store_true", help="Treat input as a GraphQL response (path-addressed mode)")
    parser.add_argument("--min-array-length", type=int, help="Smallest array compressed in --graphql mode")
    parser.add_argument("--exclude-path", dest="exclude_paths", action="append", metavar="PATH", help="Skip array at PATH (repeatable)")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="terse-json",
        description="TerseJSON - shorten repeated JSON keys with a shipped key table",
    )
    sub = parser.add_subparsers(dest="command")

    p_compress = sub.add_parser("compress", help="Compress an array of records (or a GraphQL response)")
    _add_input_output(p_compress)
    _add_compress_options(p_compress)
    p_compress.add_argument("--stats", action="store_true", default=None, help="Log savings to stderr")

    p_expand = sub.add_parser("expand", help="Expand a TerseJSON envelope back to the original keys")
    _add_input_output(p_expand)
    p_expand.add_argument("--lazy", action="store_true", help="Serialize through lazy views instead of eager expansion")

    p_stats = sub.add_parser("stats", help="Report byte and token savings for an input")
    _add_input_output(p_stats)
    _add_compress_options(p_stats)
    return parser


def _read_json(source: str) -> Any:
    if source == "-":
        return json.load(sys.stdin)
    with open(source, encoding="utf-8") as fh:
        return json.load(fh)


def _write_output(text: str, target: Optional[str]) -> None:
    if target:
        with open(target, "w", encoding="utf-8") as fh:
            fh.write(text)
            fh.write("\n")
    else:
        print(text)


def _cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    names = [
        "verbose",
        "stats",
        "indent",
        "key_pattern",
        "prefix",
        "prefix_style",
        "min_key_length",
        "max_depth",
        "nested_handling",
        "homogeneous_only",
        "exclude_keys",
        "include_keys",
        "min_array_length",
        "exclude_paths",
    ]
    overrides = {name: getattr(args, name, None) for name in names}
    overrides["config_path"] = args.config
    return overrides


def _compress(data: Any, config: TerseConfig, graphql: bool) -> Any:
    if graphql:
        return compress_graphql_response(data, config.path_options())
    return compress(data, config.compress_options())


def _expand(data: Any, lazy: bool) -> Any:
    if is_path_payload(data):
        return process_graphql_response(data, use_view=lazy)
    if lazy:
        return wrap_payload(data)
    return expand(data)


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    try:
        config = load_config(config_path=args.config, cli_overrides=_cli_overrides(args))
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    level = logging.DEBUG if config.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    if args.dump_effective_config:
        print(json.dumps(config.to_dict(), indent=2), file=sys.stderr)

    try:
        data = _read_json(args.input)
        if args.command == "compress":
            result = _compress(data, config, args.graphql)
        elif args.command == "expand":
            result = _expand(data, args.lazy)
        else:
            compressed = _compress(data, config, args.graphql)
            result = measure(data, compressed).to_dict()
        _write_output(dumps(result, indent=config.indent, ensure_ascii=False), args.output)
    except (OSError, ValueError, TypeError) as exc:
        # json.JSONDecodeError is a ValueError.
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if config.stats and args.command == "compress":
        logger.info("%s", json.dumps(measure(data, result).to_dict()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
