from __future__ import annotations

from datetime import date
from typing import List

from .adapter import PlatformMeshAdapter
from .tenant import MeshCostRecord, MeshTag, MeshTenant


class AwsMeshAdapter(PlatformMeshAdapter):
    """Tenants are the accounts of the platform's AWS organization."""

    def _list_tenants(self) -> List[MeshTenant]:
        management_account = self.platform.aws.account_id  # type: ignore[union-attr]
        return [
            MeshTenant(
                platform_id=self.platform_id,
                tenant_id=account.id,
                tenant_name=account.name,
                is_default=account.id == management_account,
                native={"email": account.email, "status": account.status, "arn": account.arn},
            )
            for account in self.facade.list_accounts()
        ]

    def _get_tags(self, tenant_id: str) -> List[MeshTag]:
        by_key = {}
        for tag in self.facade.list_tags(tenant_id):
            by_key.setdefault(tag.key, set()).add(tag.value)
        return [
            MeshTag(platform_id=self.platform_id, tenant_id=tenant_id, name=key, values=frozenset(values))
            for key, values in sorted(by_key.items())
        ]

    def _get_cost(self, tenant_id: str, start: date, end: date) -> List[MeshCostRecord]:
        return [
            MeshCostRecord(
                platform_id=self.platform_id,
                tenant_id=row.account_id,
                amount=row.amount,
                currency=row.unit,
                date=row.start,
            )
            for row in self.facade.get_cost(start, end, account_id=tenant_id)
            if row.account_id == tenant_id
        ]
