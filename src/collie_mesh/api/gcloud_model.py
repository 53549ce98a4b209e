from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from ..util.errors import PlatformQueryError


@dataclass(frozen=True)
class Project:
    """Entry of `gcloud projects list --format json`."""

    project_id: str
    name: str
    project_number: str = ""
    lifecycle_state: str = ""
    labels: Dict[str, str] = field(default_factory=dict)
    parent: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Project:
        project_id = data.get("projectId")
        if not project_id:
            raise PlatformQueryError("project record is missing 'projectId'")
        labels = data.get("labels") or {}
        parent = data.get("parent") or {}
        if not isinstance(labels, Mapping) or not isinstance(parent, Mapping):
            raise PlatformQueryError(f"project {project_id} has malformed labels or parent")
        return cls(
            project_id=str(project_id),
            name=str(data.get("name") or ""),
            project_number=str(data.get("projectNumber") or ""),
            lifecycle_state=str(data.get("lifecycleState") or ""),
            labels={str(k): str(v) for k, v in labels.items()},
            parent={str(k): str(v) for k, v in parent.items()},
        )
