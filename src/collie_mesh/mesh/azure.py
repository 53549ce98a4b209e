from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List

from ..api.az_model import COST_COLUMNS, CostManagementInfo, SimpleCostManagementInfo
from ..util.errors import CostSchemaError
from ..util.time import parse_compact_date
from .adapter import PlatformMeshAdapter
from .tenant import MeshCostRecord, MeshTag, MeshTenant


def cost_records_from_azure(platform_id: str, info: CostManagementInfo) -> List[MeshCostRecord]:
    """
    Convert a columnar cost table into MeshCostRecords.

    Rows are positional, so the column metadata must match COST_COLUMNS exactly and
    every row must have that many cells; anything else is rejected, never guessed.
    """
    names = tuple(c.name for c in info.columns)
    if names != COST_COLUMNS:
        raise CostSchemaError(
            f"Unexpected cost columns [{', '.join(names)}], expected [{', '.join(COST_COLUMNS)}]",
            platform_id=platform_id,
        )
    records: List[MeshCostRecord] = []
    for idx, row in enumerate(info.rows):
        if len(row) != len(COST_COLUMNS):
            raise CostSchemaError(
                f"Cost row {idx} has {len(row)} cells, expected {len(COST_COLUMNS)}", platform_id=platform_id
            )
        simple = SimpleCostManagementInfo(*row)
        if isinstance(simple.amount, bool) or not isinstance(simple.amount, (int, float, str)):
            raise CostSchemaError(f"Cost row {idx} has a non-numeric PreTaxCost", platform_id=platform_id)
        try:
            value = Decimal(str(simple.amount))
            day = parse_compact_date(simple.date)
        except (InvalidOperation, ValueError) as e:
            raise CostSchemaError(f"Cost row {idx} is malformed: {e}", platform_id=platform_id) from e
        if not isinstance(simple.subscription_id, str) or not isinstance(simple.currency, str):
            raise CostSchemaError(f"Cost row {idx} has non-string SubscriptionId/Currency", platform_id=platform_id)
        records.append(
            MeshCostRecord(
                platform_id=platform_id,
                tenant_id=simple.subscription_id,
                amount=value,
                currency=simple.currency,
                date=day,
            )
        )
    return records


class AzureMeshAdapter(PlatformMeshAdapter):
    """Tenants are the subscriptions of the platform's AAD tenant."""

    def _list_tenants(self) -> List[MeshTenant]:
        aad_tenant = self.platform.azure.aad_tenant_id  # type: ignore[union-attr]
        tenants = []
        for sub in self.facade.list_subscriptions():
            if sub.tenant_id != aad_tenant:
                continue
            tenants.append(
                MeshTenant(
                    platform_id=self.platform_id,
                    tenant_id=sub.id,
                    tenant_name=sub.name,
                    is_default=sub.is_default,
                    native={
                        "aadTenantId": sub.tenant_id,
                        "homeTenantId": sub.home_tenant_id,
                        "state": sub.state,
                        "cloudName": sub.cloud_name,
                    },
                )
            )
        return tenants

    def _get_tags(self, tenant_id: str) -> List[MeshTag]:
        return [
            MeshTag(
                platform_id=self.platform_id,
                tenant_id=tenant_id,
                name=tag.tag_name,
                values=frozenset(v.tag_value for v in tag.values),
            )
            for tag in self.facade.get_tags(tenant_id)
        ]

    def _get_cost(self, tenant_id: str, start: date, end: date) -> List[MeshCostRecord]:
        return cost_records_from_azure(self.platform_id, self.facade.get_cost(tenant_id, start, end))
