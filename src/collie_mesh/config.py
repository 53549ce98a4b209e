from __future__ import annotations

import argparse
import json
import os
import warnings
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .api.cache import DEFAULT_CACHE_TTL
from .util.time import parse_iso_date

# --------
# Defaults
# --------
DEFAULT_WORKERS = 8
DEFAULT_TIMEOUT = 300.0
DEFAULT_LOG_LEVEL = "WARNING"
OUTPUT_FORMATS = ("table", "json", "yaml", "csv")
ALLOWED_CONFIG_KEYS = {
    "repo",
    "output",
    "refresh",
    "timeout",
    "command_timeout",
    "workers",
    "cache_ttl",
    "no_cache",
    "json_logs",
    "log_level",
}
BOOL_CONFIG_KEYS = {"refresh", "no_cache", "json_logs"}
INT_CONFIG_KEYS = {"workers", "cache_ttl"}
FLOAT_CONFIG_KEYS = {"timeout", "command_timeout"}
PATH_CONFIG_KEYS = {"repo"}
STR_CONFIG_KEYS = {"output", "log_level"}

COMMANDS = (
    "foundation list",
    "foundation validate",
    "platform list",
    "platform show",
    "tenant list",
    "tenant tags",
    "tenant cost",
)


@dataclass(frozen=True)
class RunConfig:
    # Repository selection
    repo: Path
    foundation: Optional[str] = None
    platform: Optional[str] = None

    # Queries
    refresh: bool = False
    start: Optional[date] = None
    end: Optional[date] = None
    timeout: Optional[float] = DEFAULT_TIMEOUT  # run deadline, seconds
    command_timeout: Optional[float] = None  # per CLI invocation, seconds
    workers: int = DEFAULT_WORKERS
    cache_ttl: int = DEFAULT_CACHE_TTL
    no_cache: bool = False

    # Output
    output: str = "table"
    parquet: Optional[Path] = None
    stats: bool = False

    # Logging
    log_level: str = DEFAULT_LOG_LEVEL
    json_logs: bool = False
    log_file: Optional[Path] = None
    verbose: bool = False
    debug: bool = False


def _parse_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text) or {}
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ValueError(f"Failed to parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Top-level config must be an object")
    return data


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    return raw


def _env_bool(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip().lower()
    if not raw:
        return None
    return raw in {"1", "true", "yes", "on"}


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in {"1", "true", "yes", "on"}:
            return True
        if raw in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"Config field '{key}' must be a boolean")


def _coerce_int(key: str, value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return int(value)
        except ValueError:
            pass
    raise ValueError(f"Config field '{key}' must be an integer")


def _coerce_float(key: str, value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value)
        except ValueError:
            pass
    raise ValueError(f"Config field '{key}' must be a number")


def _normalize_config_file(data: Dict[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(data.keys()) - ALLOWED_CONFIG_KEYS)
    if unknown:
        warnings.warn(f"Unknown config keys ignored: {', '.join(unknown)}")
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in ALLOWED_CONFIG_KEYS:
            continue
        if value is None:
            normalized[key] = None
        elif key in BOOL_CONFIG_KEYS:
            normalized[key] = _coerce_bool(key, value)
        elif key in INT_CONFIG_KEYS:
            normalized[key] = _coerce_int(key, value)
        elif key in FLOAT_CONFIG_KEYS:
            normalized[key] = _coerce_float(key, value)
        elif key in PATH_CONFIG_KEYS:
            if isinstance(value, (str, Path)):
                normalized[key] = value
            else:
                raise ValueError(f"Config field '{key}' must be a string path")
        elif key in STR_CONFIG_KEYS:
            if isinstance(value, str):
                normalized[key] = value
            else:
                raise ValueError(f"Config field '{key}' must be a string")
    return _compact_dict(normalized)


def _compact_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop keys with None values so they don't override lower-precedence config.
    """
    return {k: v for k, v in data.items() if v is not None}


def _merge_dicts(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shallow merge: values in b override a.
    """
    merged = dict(a)
    merged.update(b)
    return merged


def _date_arg(value: str) -> date:
    try:
        return parse_iso_date(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="collie-mesh", description="Multi-cloud foundation and tenant governance")
    groups = parser.add_subparsers(dest="group", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", type=Path, help="Optional YAML/JSON config file")
        p.add_argument("--repo", type=Path, default=None, help="Collie repository root (default: current directory)")
        p.add_argument(
            "-o",
            "--output",
            default=None,
            choices=OUTPUT_FORMATS,
            help="Output format (default: table)",
        )
        p.add_argument(
            "--json-logs",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Enable JSON logs",
        )
        p.add_argument("--log-level", default=None, help="Log level (WARNING, INFO, DEBUG, ...)")
        p.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file")
        p.add_argument("-v", "--verbose", action="store_true", default=None, help="Log at INFO level")
        p.add_argument("--debug", action="store_true", default=None, help="Log at DEBUG level")

    def add_query(p: argparse.ArgumentParser) -> None:
        p.add_argument("foundation", help="Foundation name")
        p.add_argument("--platform", default=None, help="Only query this platform (by name)")
        p.add_argument(
            "--refresh",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Bypass the query cache and fetch live data",
        )
        p.add_argument("--no-cache", action="store_true", default=None, help="Disable the query cache entirely")
        p.add_argument("--timeout", type=float, default=None, help=f"Run deadline in seconds (default {DEFAULT_TIMEOUT:g})")
        p.add_argument("--command-timeout", type=float, default=None, help="Per-CLI-invocation timeout in seconds")
        p.add_argument("--workers", type=int, default=None, help=f"Max parallel queries (default {DEFAULT_WORKERS})")
        p.add_argument("--cache-ttl", type=int, default=None, help=f"Cache TTL in seconds (default {DEFAULT_CACHE_TTL})")
        p.add_argument("--parquet", type=Path, default=None, help="Also write results as Parquet (pyarrow)")
        p.add_argument("--stats", action="store_true", default=None, help="Print the per-platform query summary")

    # foundation
    p_foundation = groups.add_parser("foundation", help="Inspect foundations")
    foundation_cmds = p_foundation.add_subparsers(dest="action", required=True)
    p = foundation_cmds.add_parser("list", help="List foundations in the repository")
    add_common(p)
    p = foundation_cmds.add_parser("validate", help="Validate a foundation and all of its platforms")
    add_common(p)
    p.add_argument("foundation", help="Foundation name")

    # platform
    p_platform = groups.add_parser("platform", help="Inspect platform configuration")
    platform_cmds = p_platform.add_subparsers(dest="action", required=True)
    p = platform_cmds.add_parser("list", help="List the platforms of a foundation")
    add_common(p)
    p.add_argument("foundation", help="Foundation name")
    p = platform_cmds.add_parser("show", help="Show one platform's configuration")
    add_common(p)
    p.add_argument("foundation", help="Foundation name")
    p.add_argument("platform", help="Platform name")

    # tenant
    p_tenant = groups.add_parser("tenant", help="Query tenants across all platforms")
    tenant_cmds = p_tenant.add_subparsers(dest="action", required=True)
    p = tenant_cmds.add_parser("list", help="List tenants of every platform")
    add_common(p)
    add_query(p)
    p = tenant_cmds.add_parser("tags", help="List tenants with their tags")
    add_common(p)
    add_query(p)
    p = tenant_cmds.add_parser("cost", help="Cost per tenant for a date range")
    add_common(p)
    add_query(p)
    p.add_argument("--from", dest="start", type=_date_arg, required=True, help="Start date (YYYY-MM-DD)")
    p.add_argument("--to", dest="end", type=_date_arg, required=True, help="End date (YYYY-MM-DD)")

    return parser


def load_run_config(
    args: Optional[argparse.Namespace] = None,
    argv: Optional[List[str]] = None,
) -> Tuple[str, RunConfig]:
    """
    Build RunConfig by merging defaults, optional config file, env vars, and CLI args.
    Precedence (low -> high): defaults < config file < env < CLI.

    Returns:
      (command, RunConfig) where command is "<group> <action>", e.g. "tenant cost"
    """
    ns = args if args is not None else build_parser().parse_args(argv)
    command = f"{ns.group} {ns.action}"

    # defaults
    base: Dict[str, Any] = {
        "repo": ".",
        "output": "table",
        "refresh": False,
        "timeout": DEFAULT_TIMEOUT,
        "command_timeout": None,
        "workers": DEFAULT_WORKERS,
        "cache_ttl": DEFAULT_CACHE_TTL,
        "no_cache": False,
        "json_logs": False,
        "log_level": DEFAULT_LOG_LEVEL,
    }

    # config file
    file_cfg: Dict[str, Any] = {}
    if getattr(ns, "config", None):
        file_cfg = _normalize_config_file(_parse_config_file(Path(ns.config)))

    # env
    env_cfg: Dict[str, Any] = _compact_dict(
        {
            "repo": _env_str("COLLIE_REPO"),
            "output": _env_str("COLLIE_OUTPUT"),
            "refresh": _env_bool("COLLIE_REFRESH"),
            "timeout": _env_float("COLLIE_TIMEOUT"),
            "command_timeout": _env_float("COLLIE_COMMAND_TIMEOUT"),
            "workers": _env_int("COLLIE_WORKERS"),
            "cache_ttl": _env_int("COLLIE_CACHE_TTL"),
            "no_cache": _env_bool("COLLIE_NO_CACHE"),
            "json_logs": _env_bool("COLLIE_JSON_LOGS"),
            "log_level": _env_str("COLLIE_LOG_LEVEL"),
        }
    )

    # CLI
    cli_cfg: Dict[str, Any] = _compact_dict(
        {
            "repo": getattr(ns, "repo", None),
            "output": getattr(ns, "output", None),
            "refresh": getattr(ns, "refresh", None),
            "timeout": getattr(ns, "timeout", None),
            "command_timeout": getattr(ns, "command_timeout", None),
            "workers": getattr(ns, "workers", None),
            "cache_ttl": getattr(ns, "cache_ttl", None),
            "no_cache": getattr(ns, "no_cache", None),
            "json_logs": getattr(ns, "json_logs", None),
            "log_level": getattr(ns, "log_level", None),
        }
    )

    merged = _merge_dicts(base, _merge_dicts(file_cfg, _merge_dicts(env_cfg, cli_cfg)))

    output = str(merged["output"]).lower()
    if output not in OUTPUT_FORMATS:
        raise ValueError(f"Output format must be one of: {', '.join(OUTPUT_FORMATS)}")
    workers = int(merged["workers"])
    if workers < 1:
        raise ValueError("workers must be at least 1")
    timeout = float(merged["timeout"]) if merged.get("timeout") is not None else None
    if timeout is not None and timeout <= 0:
        timeout = None

    verbose = bool(getattr(ns, "verbose", None))
    debug = bool(getattr(ns, "debug", None))
    log_level = str(merged["log_level"] or DEFAULT_LOG_LEVEL).upper()
    if debug:
        log_level = "DEBUG"
    elif verbose and log_level != "DEBUG":
        log_level = "INFO"

    start = getattr(ns, "start", None)
    end = getattr(ns, "end", None)
    if start is not None and end is not None and start > end:
        raise ValueError(f"--from {start.isoformat()} is after --to {end.isoformat()}")

    cfg = RunConfig(
        repo=Path(merged["repo"]),
        foundation=getattr(ns, "foundation", None),
        platform=getattr(ns, "platform", None),
        refresh=bool(merged["refresh"]),
        start=start,
        end=end,
        timeout=timeout,
        command_timeout=merged.get("command_timeout"),
        workers=workers,
        cache_ttl=int(merged["cache_ttl"]),
        no_cache=bool(merged["no_cache"]),
        output=output,
        parquet=getattr(ns, "parquet", None),
        stats=bool(getattr(ns, "stats", None)),
        log_level=log_level,
        json_logs=bool(merged["json_logs"]),
        log_file=getattr(ns, "log_file", None),
        verbose=verbose,
        debug=debug,
    )
    return command, cfg


def dump_config(cfg: RunConfig) -> Dict[str, Any]:
    return {
        "repo": str(cfg.repo),
        "foundation": cfg.foundation,
        "platform": cfg.platform,
        "refresh": cfg.refresh,
        "start": cfg.start.isoformat() if cfg.start else None,
        "end": cfg.end.isoformat() if cfg.end else None,
        "timeout": cfg.timeout,
        "command_timeout": cfg.command_timeout,
        "workers": cfg.workers,
        "cache_ttl": cfg.cache_ttl,
        "no_cache": cfg.no_cache,
        "output": cfg.output,
        "parquet": str(cfg.parquet) if cfg.parquet else None,
        "stats": cfg.stats,
        "log_level": cfg.log_level,
        "json_logs": cfg.json_logs,
        "log_file": str(cfg.log_file) if cfg.log_file else None,
        "verbose": cfg.verbose,
        "debug": cfg.debug,
    }
