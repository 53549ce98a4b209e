from __future__ import annotations

from datetime import date
from typing import Dict, List

from ..util.errors import UnsupportedQueryError
from .base import CliFacade, expect_dict, expect_list
from .gcloud_model import Project


class GcloudCliFacade(CliFacade):
    """Typed accessors over the `gcloud` CLI."""

    tool = "gcloud"

    def list_projects(self) -> List[Project]:
        data = self.run_json(["projects", "list", "--format", "json"])
        return [Project.from_dict(expect_dict(p, "project")) for p in expect_list(data, "projects")]

    def get_project_labels(self, project_id: str) -> Dict[str, str]:
        project = Project.from_dict(expect_dict(self.run_json(["projects", "describe", project_id, "--format", "json"]), "project"))
        return dict(project.labels)

    def get_cost(self, project_id: str, start: date, end: date) -> None:
        # GCP only exposes cost through a BigQuery billing export, which platforms do not configure.
        raise UnsupportedQueryError(f"Cost data is not available from gcloud for project {project_id}")
