from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Tuple


@dataclass(frozen=True)
class MeshTag:
    platform_id: str
    tenant_id: str
    name: str
    values: FrozenSet[str]


@dataclass(frozen=True)
class MeshTenant:
    """
    Provider-neutral view of an Azure subscription, AWS account or GCP project.
    Provider fields with no unified counterpart are kept in `native`.
    """

    platform_id: str
    tenant_id: str
    tenant_name: str
    tags: Mapping[str, FrozenSet[str]] = field(default_factory=dict)
    is_default: bool = False
    native: Mapping[str, Any] = field(default_factory=dict)

    def with_tags(self, tags: Iterable[MeshTag]) -> MeshTenant:
        merged: Dict[str, FrozenSet[str]] = dict(self.tags)
        for tag in tags:
            merged[tag.name] = merged.get(tag.name, frozenset()) | tag.values
        return MeshTenant(
            platform_id=self.platform_id,
            tenant_id=self.tenant_id,
            tenant_name=self.tenant_name,
            tags=merged,
            is_default=self.is_default,
            native=self.native,
        )


@dataclass(frozen=True)
class MeshCostRecord:
    platform_id: str
    tenant_id: str
    amount: Decimal
    currency: str
    date: date


def tags_from_mapping(platform_id: str, tenant_id: str, tags: Mapping[str, Any]) -> List[MeshTag]:
    """Single-valued provider tags/labels ({key: value}) to MeshTags, sorted by name."""
    return [
        MeshTag(platform_id=platform_id, tenant_id=tenant_id, name=str(k), values=frozenset({"" if v is None else str(v)}))
        for k, v in sorted(tags.items(), key=lambda kv: str(kv[0]))
    ]


def tag_map(tags: Iterable[MeshTag]) -> Dict[str, FrozenSet[str]]:
    out: Dict[str, FrozenSet[str]] = {}
    for tag in tags:
        out[tag.name] = out.get(tag.name, frozenset()) | tag.values
    return out


def total_cost(records: Iterable[MeshCostRecord]) -> Dict[Tuple[str, str, str], Decimal]:
    """Sum amounts per (platform_id, tenant_id, currency)."""
    totals: Dict[Tuple[str, str, str], Decimal] = {}
    for r in records:
        key = (r.platform_id, r.tenant_id, r.currency)
        totals[key] = totals.get(key, Decimal("0")) + r.amount
    return totals
