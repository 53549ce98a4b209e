from __future__ import annotations

from datetime import date
from typing import List

from .adapter import PlatformMeshAdapter
from .tenant import MeshCostRecord, MeshTag, MeshTenant, tag_map, tags_from_mapping


class GcpMeshAdapter(PlatformMeshAdapter):
    """Tenants are the projects visible to gcloud; labels become tags."""

    def _list_tenants(self) -> List[MeshTenant]:
        host_project = self.platform.gcp.project  # type: ignore[union-attr]
        return [
            MeshTenant(
                platform_id=self.platform_id,
                tenant_id=project.project_id,
                tenant_name=project.name,
                tags=tag_map(tags_from_mapping(self.platform_id, project.project_id, project.labels)),
                is_default=project.project_id == host_project,
                native={
                    "projectNumber": project.project_number,
                    "lifecycleState": project.lifecycle_state,
                    "parent": dict(project.parent),
                },
            )
            for project in self.facade.list_projects()
        ]

    def _get_tags(self, tenant_id: str) -> List[MeshTag]:
        return tags_from_mapping(self.platform_id, tenant_id, self.facade.get_project_labels(tenant_id))

    def _get_cost(self, tenant_id: str, start: date, end: date) -> List[MeshCostRecord]:
        self.facade.get_cost(tenant_id, start, end)
        return []
