from __future__ import annotations

from decimal import Decimal
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..mesh.aggregate import PlatformFailure
from ..mesh.statistics import QueryStatistics
from ..mesh.tenant import MeshCostRecord, MeshTenant, total_cost
from ..model.foundation import FoundationRepository
from ..model.platform import PlatformConfig, config_to_frontmatter, platform_scope
from .output import to_yaml


def _console(console: Optional[Console]) -> Console:
    return console or Console()


def _tags_cell(tags: Mapping[str, Iterable[str]]) -> str:
    return escape("\n".join(f"{name}: {', '.join(sorted(values))}" for name, values in sorted(tags.items())))


def render_foundations(names: Sequence[str], *, console: Optional[Console] = None) -> None:
    table = Table(title="Foundations", show_header=True, header_style="bold")
    table.add_column("Foundation", style="cyan")
    for name in names:
        table.add_row(name)
    _console(console).print(table)


def render_platforms(foundation: FoundationRepository, *, console: Optional[Console] = None) -> None:
    table = Table(title=f"Platforms of {foundation.name}", show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Kind", style="magenta")
    table.add_column("Scope")
    for p in foundation.platforms:
        table.add_row(p.id, p.name, p.kind, platform_scope(p))
    _console(console).print(table)


def render_platform(platform: PlatformConfig, *, console: Optional[Console] = None) -> None:
    c = _console(console)
    c.print(f"[bold]{escape(platform.name)}[/bold] ({platform.kind}, id={platform.id})")
    c.print(to_yaml(config_to_frontmatter(platform)), end="", markup=False, highlight=False)


def render_tenants(tenants: Iterable[MeshTenant], *, show_tags: bool = False, console: Optional[Console] = None) -> None:
    table = Table(title="Tenants", show_header=True, header_style="bold")
    table.add_column("Platform", style="cyan")
    table.add_column("Tenant ID")
    table.add_column("Name")
    table.add_column("Default", justify="center")
    if show_tags:
        table.add_column("Tags")
    for t in tenants:
        row = [t.platform_id, t.tenant_id, escape(t.tenant_name), "*" if t.is_default else ""]
        if show_tags:
            row.append(_tags_cell(t.tags))
        table.add_row(*row)
    _console(console).print(table)


def render_costs(records: Iterable[MeshCostRecord], *, console: Optional[Console] = None) -> None:
    """Totals per tenant and currency; daily rows are available via the machine outputs."""
    totals: Dict[Tuple[str, str, str], Decimal] = total_cost(records)
    table = Table(title="Cost", show_header=True, header_style="bold")
    table.add_column("Platform", style="cyan")
    table.add_column("Tenant ID")
    table.add_column("Amount", justify="right")
    table.add_column("Currency")
    for (platform_id, tenant_id, currency), amount in totals.items():
        table.add_row(platform_id, tenant_id, f"{amount:.2f}", currency)
    _console(console).print(table)


def render_failures(failures: Sequence[PlatformFailure], *, console: Optional[Console] = None) -> None:
    if not failures:
        return
    table = Table(title="Failed platform queries", show_header=True, header_style="bold red")
    table.add_column("Platform", style="cyan")
    table.add_column("Query")
    table.add_column("Tenant")
    table.add_column("Kind", style="yellow")
    table.add_column("Error", style="red")
    for f in failures:
        table.add_row(f.platform_id, f.query, f.tenant_id or "", f.kind, escape(f.error))
    _console(console).print(table)


def render_statistics(statistics: QueryStatistics, *, console: Optional[Console] = None) -> None:
    table = Table(title="Query Summary", show_header=True, header_style="bold")
    table.add_column("Platform", style="cyan")
    table.add_column("Queries", justify="right")
    table.add_column("Failures", justify="right")
    table.add_column("Duration (ms)", justify="right")
    for platform_id, entry in statistics.summary().items():
        table.add_row(platform_id, str(entry["queries"]), str(entry["failures"]), str(entry["duration_ms"]))
    _console(console).print(table)
