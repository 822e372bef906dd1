"""Runtime configuration for TerseJSON tooling."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from .core import NESTED_MODES, CompressOptions
from .graphql import PathCompressOptions


def _parse_bool(value: Any, default: Optional[bool] = None) -> Optional[bool]:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _parse_nested(value: Any) -> Any:
    """``"2"`` -> ``2``; mode names pass through."""
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return value


def _parse_key_list(value: Any) -> Optional[list[str]]:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple)):
        return [str(part) for part in value]
    return None


def _read_config_file(path: str) -> dict[str, Any]:
    data = Path(path).read_text(encoding="utf-8")
    suffix = Path(path).suffix.lower()
    if suffix in {".yml", ".yaml"}:
        try:
            import yaml  # type: ignore
        except ImportError as exc:
            raise ValueError(
                "YAML config requested but PyYAML is not installed. "
                "Install `pyyaml` or use JSON config."
            ) from exc
        parsed = yaml.safe_load(data) or {}
    else:
        parsed = json.loads(data)
    if not isinstance(parsed, dict):
        raise ValueError("TerseJSON config must be a mapping object")
    return parsed


@dataclass
class TerseConfig:
    """Resolved config after file/env/CLI merge."""

    verbose: bool = False
    stats: bool = False
    indent: Optional[int] = None

    min_key_length: int = 3
    max_depth: int = 10
    key_pattern: Any = "alpha"
    nested_handling: Any = "deep"
    homogeneous_only: bool = False
    exclude_keys: list[str] = field(default_factory=list)
    include_keys: list[str] = field(default_factory=list)

    min_array_length: int = 2
    exclude_paths: list[str] = field(default_factory=list)

    batch_size: int = 100
    cache_max_size: Optional[int] = None
    cache_ttl_seconds: Optional[float] = None

    source_path: Optional[str] = None

    def compress_options(self) -> CompressOptions:
        return CompressOptions(
            min_key_length=self.min_key_length,
            max_depth=self.max_depth,
            key_pattern=self.key_pattern,
            nested_handling=self.nested_handling,
            homogeneous_only=self.homogeneous_only,
            exclude_keys=frozenset(self.exclude_keys),
            include_keys=frozenset(self.include_keys),
        )

    def path_options(self) -> PathCompressOptions:
        return PathCompressOptions(
            min_key_length=self.min_key_length,
            max_depth=self.max_depth,
            key_pattern=self.key_pattern,
            nested_handling=self.nested_handling,
            homogeneous_only=self.homogeneous_only,
            exclude_keys=frozenset(self.exclude_keys),
            include_keys=frozenset(self.include_keys),
            min_array_length=self.min_array_length,
            exclude_paths=frozenset(self.exclude_paths),
        )

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        if callable(self.key_pattern):
            out["key_pattern"] = "custom"
        return out


def _apply_file_config(cfg: TerseConfig, config_data: dict) -> TerseConfig:
    ccfg = config_data.get("compression", {})
    if isinstance(ccfg, dict):
        if isinstance(ccfg.get("min_key_length"), int):
            cfg.min_key_length = max(0, ccfg["min_key_length"])
        if isinstance(ccfg.get("max_depth"), int):
            cfg.max_depth = max(1, ccfg["max_depth"])
        if isinstance(ccfg.get("key_pattern"), (str, dict)):
            cfg.key_pattern = ccfg["key_pattern"]
        if "nested_handling" in ccfg:
            cfg.nested_handling = _parse_nested(ccfg["nested_handling"])
        if _parse_bool(ccfg.get("homogeneous_only")) is not None:
            cfg.homogeneous_only = bool(_parse_bool(ccfg.get("homogeneous_only")))
        if _parse_key_list(ccfg.get("exclude_keys")) is not None:
            cfg.exclude_keys = _parse_key_list(ccfg["exclude_keys"]) or []
        if _parse_key_list(ccfg.get("include_keys")) is not None:
            cfg.include_keys = _parse_key_list(ccfg["include_keys"]) or []

    gcfg = config_data.get("graphql", {})
    if isinstance(gcfg, dict):
        if isinstance(gcfg.get("min_array_length"), int):
            cfg.min_array_length = max(0, gcfg["min_array_length"])
        if _parse_key_list(gcfg.get("exclude_paths")) is not None:
            cfg.exclude_paths = _parse_key_list(gcfg["exclude_paths"]) or []

    scfg = config_data.get("streaming", {})
    if isinstance(scfg, dict) and isinstance(scfg.get("batch_size"), int):
        cfg.batch_size = max(1, scfg["batch_size"])

    kcfg = config_data.get("cache", {})
    if isinstance(kcfg, dict):
        if isinstance(kcfg.get("max_size"), int):
            cfg.cache_max_size = max(1, kcfg["max_size"])
        if isinstance(kcfg.get("ttl_seconds"), (int, float)):
            cfg.cache_ttl_seconds = max(0.0, float(kcfg["ttl_seconds"]))

    ocfg = config_data.get("output", {})
    if isinstance(ocfg, dict):
        if _parse_bool(ocfg.get("verbose")) is not None:
            cfg.verbose = bool(_parse_bool(ocfg.get("verbose")))
        if _parse_bool(ocfg.get("stats")) is not None:
            cfg.stats = bool(_parse_bool(ocfg.get("stats")))
        if isinstance(ocfg.get("indent"), int):
            cfg.indent = max(0, ocfg["indent"])
    return cfg


def _apply_env(cfg: TerseConfig, env: Mapping[str, str]) -> TerseConfig:
    if _parse_bool(env.get("TERSE_JSON_VERBOSE")) is not None:
        cfg.verbose = bool(_parse_bool(env.get("TERSE_JSON_VERBOSE")))
    if _parse_bool(env.get("TERSE_JSON_STATS")) is not None:
        cfg.stats = bool(_parse_bool(env.get("TERSE_JSON_STATS")))
    if env.get("TERSE_JSON_MIN_KEY_LENGTH"):
        try:
            cfg.min_key_length = max(0, int(env["TERSE_JSON_MIN_KEY_LENGTH"]))
        except ValueError:
            pass
    if env.get("TERSE_JSON_MAX_DEPTH"):
        try:
            cfg.max_depth = max(1, int(env["TERSE_JSON_MAX_DEPTH"]))
        except ValueError:
            pass
    if env.get("TERSE_JSON_KEY_PATTERN"):
        cfg.key_pattern = env["TERSE_JSON_KEY_PATTERN"]
    if env.get("TERSE_JSON_NESTED_HANDLING"):
        cfg.nested_handling = _parse_nested(env["TERSE_JSON_NESTED_HANDLING"])
    if _parse_bool(env.get("TERSE_JSON_HOMOGENEOUS_ONLY")) is not None:
        cfg.homogeneous_only = bool(_parse_bool(env.get("TERSE_JSON_HOMOGENEOUS_ONLY")))
    if env.get("TERSE_JSON_EXCLUDE_KEYS"):
        cfg.exclude_keys = _parse_key_list(env["TERSE_JSON_EXCLUDE_KEYS"]) or []
    if env.get("TERSE_JSON_INCLUDE_KEYS"):
        cfg.include_keys = _parse_key_list(env["TERSE_JSON_INCLUDE_KEYS"]) or []
    if env.get("TERSE_JSON_MIN_ARRAY_LENGTH"):
        try:
            cfg.min_array_length = max(0, int(env["TERSE_JSON_MIN_ARRAY_LENGTH"]))
        except ValueError:
            pass
    if env.get("TERSE_JSON_BATCH_SIZE"):
        try:
            cfg.batch_size = max(1, int(env["TERSE_JSON_BATCH_SIZE"]))
        except ValueError:
            pass
    return cfg


def _apply_cli_overrides(cfg: TerseConfig, cli: Mapping[str, Any]) -> TerseConfig:
    def _set_bool(name: str, target_attr: str):
        value = cli.get(name)
        if value is not None:
            setattr(cfg, target_attr, bool(value))

    _set_bool("verbose", "verbose")
    _set_bool("stats", "stats")
    _set_bool("homogeneous_only", "homogeneous_only")

    if cli.get("min_key_length") is not None:
        cfg.min_key_length = max(0, int(cli["min_key_length"]))
    if cli.get("max_depth") is not None:
        cfg.max_depth = max(1, int(cli["max_depth"]))
    if cli.get("prefix"):
        cfg.key_pattern = {"prefix": str(cli["prefix"]), "style": str(cli.get("prefix_style") or "numeric")}
    elif cli.get("key_pattern"):
        cfg.key_pattern = str(cli["key_pattern"])
    if cli.get("nested_handling") is not None:
        cfg.nested_handling = _parse_nested(cli["nested_handling"])
    if cli.get("exclude_keys"):
        cfg.exclude_keys = list(cli["exclude_keys"])
    if cli.get("include_keys"):
        cfg.include_keys = list(cli["include_keys"])
    if cli.get("min_array_length") is not None:
        cfg.min_array_length = max(0, int(cli["min_array_length"]))
    if cli.get("exclude_paths"):
        cfg.exclude_paths = list(cli["exclude_paths"])
    if cli.get("indent") is not None:
        cfg.indent = max(0, int(cli["indent"]))
    return cfg


def load_config(
    config_path: Optional[str] = None,
    cli_overrides: Optional[Mapping[str, Any]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> TerseConfig:
    """Resolve config from defaults + file + env + CLI."""
    env_map = env if env is not None else os.environ
    cli = dict(cli_overrides or {})
    cfg = TerseConfig()

    resolved_path = config_path or cli.get("config_path") or env_map.get("TERSE_JSON_CONFIG")
    if resolved_path:
        cfg = _apply_file_config(cfg, _read_config_file(resolved_path))
        cfg.source_path = resolved_path

    cfg = _apply_env(cfg, env_map)
    cfg = _apply_cli_overrides(cfg, cli)

    if isinstance(cfg.nested_handling, str) and cfg.nested_handling not in NESTED_MODES:
        raise ValueError(f"Invalid nested handling: {cfg.nested_handling}")
    # Surfaces bad key patterns and depths at load time.
    cfg.compress_options()
    return cfg
