from __future__ import annotations

import json
from datetime import date
from typing import List

from .az_model import (
    Account,
    CostManagementInfo,
    ManagementGroup,
    RoleAssignment,
    Subscription,
    Tag,
    tags_from_resource,
)
from ..util.errors import PlatformQueryError
from .base import CliFacade, expect_dict, expect_list

COST_AGGREGATION = {"totalCost": {"name": "PreTaxCost", "function": "Sum"}}


class AzCliFacade(CliFacade):
    """Typed accessors over the `az` CLI."""

    tool = "az"

    def show_account(self) -> Account:
        return Account.from_dict(expect_dict(self.run_json(["account", "show", "--output", "json"]), "account"))

    def list_subscriptions(self) -> List[Subscription]:
        data = self.run_json(["account", "list", "--output", "json"])
        return [Subscription.from_dict(expect_dict(item, "subscription")) for item in expect_list(data, "subscriptions")]

    def get_tags(self, subscription_id: str) -> List[Tag]:
        data = self.run_json(["tag", "list", "--resource-id", f"/subscriptions/{subscription_id}", "--output", "json"])
        if isinstance(data, dict):
            return tags_from_resource(data)
        return [Tag.from_dict(expect_dict(item, "tag")) for item in expect_list(data, "tags")]

    def get_cost(self, subscription_id: str, start: date, end: date) -> CostManagementInfo:
        data = self.run_json(
            [
                "costmanagement",
                "query",
                "--type",
                "Usage",
                "--scope",
                f"/subscriptions/{subscription_id}",
                "--timeframe",
                "Custom",
                "--time-period",
                f"from={start.isoformat()}",
                f"to={end.isoformat()}",
                "--dataset-aggregation",
                json.dumps(COST_AGGREGATION, separators=(",", ":")),
                "--dataset-granularity",
                "Daily",
                "--dataset-grouping",
                "name=SubscriptionId",
                "type=Dimension",
                "--output",
                "json",
            ]
        )
        info = CostManagementInfo.from_dict(expect_dict(data, "cost management"))
        if info.next_link:
            raise PlatformQueryError(
                f"Cost result for subscription {subscription_id} is paged (nextLink set); narrow the date range"
            )
        return info

    def list_management_groups(self) -> List[ManagementGroup]:
        data = self.run_json(["account", "management-group", "list", "--output", "json"])
        return [ManagementGroup.from_dict(expect_dict(item, "management group")) for item in expect_list(data, "groups")]

    def list_role_assignments(self, subscription_id: str) -> List[RoleAssignment]:
        data = self.run_json(
            [
                "role",
                "assignment",
                "list",
                "--subscription",
                subscription_id,
                "--include-inherited",
                "--all",
                "--output",
                "json",
            ]
        )
        return [RoleAssignment.from_dict(expect_dict(item, "role assignment")) for item in expect_list(data, "roles")]
