from __future__ import annotations

import json
from datetime import date, timedelta
from typing import List, Optional

from .aws_model import Account, CostRow, Tag, cost_rows_from_response
from .base import CliFacade, expect_dict, expect_list

COST_METRIC = "BlendedCost"


class AwsCliFacade(CliFacade):
    """Typed accessors over the `aws` CLI (organizations and cost explorer)."""

    tool = "aws"

    def list_accounts(self) -> List[Account]:
        data = expect_dict(self.run_json(["organizations", "list-accounts", "--output", "json"]), "accounts")
        return [Account.from_dict(expect_dict(a, "account")) for a in expect_list(data.get("Accounts"), "accounts")]

    def list_tags(self, account_id: str) -> List[Tag]:
        data = expect_dict(
            self.run_json(["organizations", "list-tags-for-resource", "--resource-id", account_id, "--output", "json"]),
            "tags",
        )
        return [Tag.from_dict(expect_dict(t, "tag")) for t in expect_list(data.get("Tags"), "tags")]

    def get_cost(self, start: date, end: date, account_id: Optional[str] = None) -> List[CostRow]:
        args = [
            "ce",
            "get-cost-and-usage",
            "--time-period",
            # Cost Explorer treats End as exclusive
            f"Start={start.isoformat()},End={(end + timedelta(days=1)).isoformat()}",
            "--granularity",
            "DAILY",
            "--metrics",
            COST_METRIC,
            "--group-by",
            "Type=DIMENSION,Key=LINKED_ACCOUNT",
            "--output",
            "json",
        ]
        if account_id:
            account_filter = {"Dimensions": {"Key": "LINKED_ACCOUNT", "Values": [account_id]}}
            args[-2:-2] = ["--filter", json.dumps(account_filter, separators=(",", ":"))]
        data = expect_dict(self.run_json(args), "cost and usage")
        return cost_rows_from_response(data, COST_METRIC)
