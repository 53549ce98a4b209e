from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping

from ..mesh.aggregate import PlatformFailure
from ..mesh.statistics import QueryRecord
from ..mesh.tenant import MeshCostRecord, MeshTenant
from ..model.platform import PlatformConfig, config_to_frontmatter, platform_scope

Row = Dict[str, Any]

TENANT_FIELDS = ("platformId", "tenantId", "tenantName", "isDefault", "tags")
COST_FIELDS = ("platformId", "tenantId", "date", "amount", "currency")
PLATFORM_FIELDS = ("id", "name", "kind", "scope")


def _tags(tags: Mapping[str, Iterable[str]]) -> Dict[str, List[str]]:
    return {name: sorted(values) for name, values in sorted(tags.items())}


def tenant_row(tenant: MeshTenant, *, native: bool = False) -> Row:
    row: Row = {
        "platformId": tenant.platform_id,
        "tenantId": tenant.tenant_id,
        "tenantName": tenant.tenant_name,
        "isDefault": tenant.is_default,
        "tags": _tags(tenant.tags),
    }
    if native:
        row["native"] = dict(tenant.native)
    return row


def cost_row(record: MeshCostRecord) -> Row:
    return {
        "platformId": record.platform_id,
        "tenantId": record.tenant_id,
        "date": record.date,
        "amount": record.amount,
        "currency": record.currency,
    }


def platform_row(platform: PlatformConfig) -> Row:
    return {"id": platform.id, "name": platform.name, "kind": platform.kind, "scope": platform_scope(platform)}


def platform_detail(platform: PlatformConfig) -> Row:
    return {"id": platform.id, **config_to_frontmatter(platform)}


def failure_row(failure: PlatformFailure) -> Row:
    return {
        "platformId": failure.platform_id,
        "query": failure.query,
        "kind": failure.kind,
        "tenantId": failure.tenant_id,
        "error": failure.error,
    }


def statistics_row(record: QueryRecord) -> Row:
    return {
        "platformId": record.platform_id,
        "query": record.query,
        "startedAt": record.started_at,
        "durationMs": record.duration_ms,
        "outcome": record.outcome,
        "errorKind": record.error_kind,
        "error": record.error,
    }


def flatten_tags(tags: Mapping[str, Iterable[str]]) -> str:
    """Render tags as `k=v1|v2;k2=v` for single-cell outputs."""
    return ";".join(f"{name}={'|'.join(sorted(values))}" for name, values in sorted(tags.items()))
