from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Sequence, Tuple

from rich.console import Console
from rich.markup import escape

from .config import RunConfig, dump_config, load_run_config
from .export.parquet import write_parquet
from .export.rows import (
    COST_FIELDS,
    PLATFORM_FIELDS,
    TENANT_FIELDS,
    cost_row,
    failure_row,
    platform_detail,
    platform_row,
    statistics_row,
    tenant_row,
)
from .logging import LogConfig, add_run_log_file, get_logger, setup_logging
from .mesh.aggregate import AggregateResult, AggregatingMeshAdapter, PlatformFailure
from .mesh.factory import build_aggregator
from .mesh.statistics import QueryStatistics
from .model.foundation import FoundationRepository
from .model.platform import PlatformConfig
from .model.repository import CollieRepository
from .model.validator import ModelValidator
from .presentation import tables
from .presentation.output import emit
from .util.errors import (
    CollieModelValidationError,
    ConfigError,
    DocumentParseError,
    ExitCode,
    as_exit_code,
)
from .util.time import utc_now_iso

LOG = get_logger(__name__)


def _stdout() -> Console:
    return Console()


def _stderr() -> Console:
    return Console(stderr=True)


def _load(cfg: RunConfig) -> Tuple[CollieRepository, FoundationRepository]:
    if not cfg.foundation:
        raise ConfigError("A foundation name is required")
    repo = CollieRepository.load(cfg.repo)
    return repo, FoundationRepository.load(repo, cfg.foundation, ModelValidator())


def cmd_foundation_list(cfg: RunConfig) -> int:
    repo = CollieRepository.load(cfg.repo)
    names = repo.list_foundations()
    if cfg.output == "table":
        tables.render_foundations(names, console=_stdout())
    else:
        emit({"foundations": names}, cfg.output, rows=[{"foundation": n} for n in names], fields=("foundation",))
    return 0


def cmd_foundation_validate(cfg: RunConfig) -> int:
    try:
        _, foundation = _load(cfg)
    except CollieModelValidationError as e:
        if cfg.output == "table":
            console = _stdout()
            console.print(f"[bold red]INVALID:[/bold red] {escape(e.message)}", soft_wrap=True, highlight=False)
            for err in e.errors:
                console.print(f"  - {escape(str(err))}", soft_wrap=True, highlight=False)
        else:
            errors = [{"path": err.path, "message": err.message} for err in e.errors]
            emit(
                {"foundation": cfg.foundation, "valid": False, "message": e.message, "errors": errors},
                cfg.output,
                rows=errors,
                fields=("path", "message"),
            )
        return int(ExitCode.MODEL_ERROR)
    except DocumentParseError as e:
        if cfg.output == "table":
            _stdout().print(f"[bold red]INVALID:[/bold red] {escape(str(e))}", soft_wrap=True, highlight=False)
        else:
            error = {"path": "", "message": str(e)}
            emit(
                {"foundation": cfg.foundation, "valid": False, "message": str(e), "errors": [error]},
                cfg.output,
                rows=[error],
                fields=("path", "message"),
            )
        return int(ExitCode.MODEL_ERROR)

    if cfg.output == "table":
        _stdout().print(
            f"[bold green]OK:[/bold green] foundation {escape(foundation.name)} is valid "
            f"({len(foundation.platforms)} platforms)",
            soft_wrap=True,
            highlight=False,
        )
    else:
        emit(
            {"foundation": foundation.name, "valid": True, "platforms": [p.id for p in foundation.platforms]},
            cfg.output,
            rows=[],
            fields=("path", "message"),
        )
    return 0


def cmd_platform_list(cfg: RunConfig) -> int:
    _, foundation = _load(cfg)
    if cfg.output == "table":
        tables.render_platforms(foundation, console=_stdout())
    else:
        rows = [platform_row(p) for p in foundation.platforms]
        emit({"foundation": foundation.name, "platforms": rows}, cfg.output, rows=rows, fields=PLATFORM_FIELDS)
    return 0


def cmd_platform_show(cfg: RunConfig) -> int:
    _, foundation = _load(cfg)
    if not cfg.platform:
        raise ConfigError("A platform name is required")
    platform = foundation.find_platform(cfg.platform)
    if cfg.output == "table":
        tables.render_platform(platform, console=_stdout())
    else:
        emit(platform_detail(platform), cfg.output, rows=[platform_row(platform)], fields=PLATFORM_FIELDS)
    return 0


@dataclass(frozen=True)
class TenantCommand:
    foundation: FoundationRepository
    platforms: Tuple[PlatformConfig, ...]
    statistics: QueryStatistics
    aggregator: AggregatingMeshAdapter


def _prepare_tenant_command(cfg: RunConfig) -> TenantCommand:
    repo, foundation = _load(cfg)
    if cfg.platform:
        platforms: Sequence[PlatformConfig] = (foundation.find_platform(cfg.platform),)
    else:
        platforms = foundation.platforms
    statistics = QueryStatistics()
    aggregator = build_aggregator(
        repo,
        foundation,
        platforms,
        cfg.refresh,
        statistics=statistics,
        timeout=cfg.timeout,
        max_workers=cfg.workers,
        cache_ttl=cfg.cache_ttl,
        use_cache=not cfg.no_cache,
        command_timeout=cfg.command_timeout,
    )
    LOG.info(
        "Querying platforms",
        extra={
            "step": "tenant",
            "phase": "start",
            "foundation": foundation.name,
            "platforms": [p.id for p in platforms],
            "refresh": cfg.refresh,
        },
    )
    return TenantCommand(foundation, tuple(platforms), statistics, aggregator)


def _warn_failures(failures: Sequence[PlatformFailure]) -> None:
    for f in failures:
        LOG.warning(
            "Platform %s failed %s: %s",
            f.platform_id,
            f.query,
            f.error,
            extra={"step": f.query, "phase": "error", "platform": f.platform_id, "kind": f.kind},
        )


def _finish_tenant_command(
    cfg: RunConfig,
    prepared: TenantCommand,
    result: AggregateResult[Any],
    *,
    key: str,
    rows: List[Dict[str, Any]],
    fields: Sequence[str],
    render: Callable[[], None],
) -> int:
    if cfg.output == "table":
        render()
        tables.render_failures(result.failures, console=_stderr())
        if cfg.stats:
            tables.render_statistics(prepared.statistics, console=_stderr())
    else:
        _warn_failures(result.failures)
        doc: Dict[str, Any] = {
            "foundation": prepared.foundation.name,
            "generatedAt": utc_now_iso(),
            key: rows,
            "failures": [failure_row(f) for f in result.failures],
        }
        if cfg.stats:
            doc["statistics"] = prepared.statistics.summary()
            doc["queries"] = [statistics_row(r) for r in prepared.statistics.records]
        emit(doc, cfg.output, rows=rows, fields=fields)

    if cfg.parquet:
        write_parquet(rows, cfg.parquet)

    LOG.info(
        "Tenant command complete",
        extra={
            "step": "tenant",
            "phase": "complete",
            "results": len(result.results),
            "failures": len(result.failures),
            "queries": len(prepared.statistics),
        },
    )
    if result.failures and not result.results and prepared.platforms:
        return int(ExitCode.PLATFORM_ERROR)
    return 0


def cmd_tenant_list(cfg: RunConfig) -> int:
    prepared = _prepare_tenant_command(cfg)
    result = prepared.aggregator.list_tenants()
    rows = [tenant_row(t, native=cfg.output != "csv") for t in result.results]
    return _finish_tenant_command(
        cfg,
        prepared,
        result,
        key="tenants",
        rows=rows,
        fields=TENANT_FIELDS,
        render=lambda: tables.render_tenants(result.results, console=_stdout()),
    )


def cmd_tenant_tags(cfg: RunConfig) -> int:
    prepared = _prepare_tenant_command(cfg)
    result = prepared.aggregator.get_tags()
    rows = [tenant_row(t) for t in result.results]
    return _finish_tenant_command(
        cfg,
        prepared,
        result,
        key="tenants",
        rows=rows,
        fields=TENANT_FIELDS,
        render=lambda: tables.render_tenants(result.results, show_tags=True, console=_stdout()),
    )


def cmd_tenant_cost(cfg: RunConfig) -> int:
    if cfg.start is None or cfg.end is None:
        raise ConfigError("tenant cost requires --from and --to")
    prepared = _prepare_tenant_command(cfg)
    result = prepared.aggregator.get_cost(cfg.start, cfg.end)
    rows = [cost_row(r) for r in result.results]
    return _finish_tenant_command(
        cfg,
        prepared,
        result,
        key="costs",
        rows=rows,
        fields=COST_FIELDS,
        render=lambda: tables.render_costs(result.results, console=_stdout()),
    )


COMMANDS: Mapping[str, Callable[[RunConfig], int]] = {
    "foundation list": cmd_foundation_list,
    "foundation validate": cmd_foundation_validate,
    "platform list": cmd_platform_list,
    "platform show": cmd_platform_show,
    "tenant list": cmd_tenant_list,
    "tenant tags": cmd_tenant_tags,
    "tenant cost": cmd_tenant_cost,
}


def main() -> None:
    try:
        command, cfg = load_run_config()
        setup_logging(LogConfig(level=cfg.log_level, json_logs=cfg.json_logs))
        if cfg.log_file:
            add_run_log_file(cfg.log_file)
        LOG.debug("Effective configuration", extra={"step": "config", "command": command, "config": dump_config(cfg)})

        handler = COMMANDS.get(command)
        if handler is None:
            raise ConfigError(f"Unknown command: {command}")
        sys.exit(handler(cfg))
    except SystemExit:
        raise
    except BrokenPipeError:
        # Common when users pipe to `head` or similar tools.
        sys.exit(0)
    except Exception as e:
        setup_logging(LogConfig())
        LOG.error("Execution failed: %s", e, extra={"error_type": type(e).__name__})
        sys.exit(as_exit_code(e))


if __name__ == "__main__":
    main()
