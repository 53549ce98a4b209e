from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from collie_mesh.api.aws import AwsCliFacade
from collie_mesh.api.az import AzCliFacade
from collie_mesh.api.az_model import CostManagementInfo, RoleAssignment, Subscription, is_subscription
from collie_mesh.api.cache import QueryCache
from collie_mesh.api.gcloud import GcloudCliFacade
from collie_mesh.process.runner import ProcessResult
from collie_mesh.util.errors import PlatformQueryError, UnsupportedQueryError

SUBSCRIPTIONS = [
    {
        "id": "sub-1",
        "name": "Prod",
        "tenantId": "tenant-1",
        "homeTenantId": "tenant-1",
        "cloudName": "AzureCloud",
        "isDefault": True,
        "state": "Enabled",
        "user": {"name": "ops@example.com", "type": "user"},
    },
    {"id": "sub-2", "name": "Other", "tenantId": "tenant-2", "isDefault": False, "state": "Enabled"},
]


def test_az_list_subscriptions(fake_runner) -> None:
    runner = fake_runner({("az", "account", "list"): SUBSCRIPTIONS})
    subs = AzCliFacade(runner).list_subscriptions()
    assert [s.id for s in subs] == ["sub-1", "sub-2"]
    assert subs[0].is_default
    assert subs[0].user.name == "ops@example.com"
    assert subs[1].user is None


def test_az_show_account(fake_runner) -> None:
    runner = fake_runner({("az", "account", "show"): {"id": "sub-1", "tenantId": "tenant-1"}})
    account = AzCliFacade(runner).show_account()
    assert (account.id, account.tenant_id) == ("sub-1", "tenant-1")


def test_az_get_tags_accepts_resource_and_list_shapes(fake_runner) -> None:
    resource_shape = {"id": "/subscriptions/sub-1/providers/Microsoft.Resources/tags/default",
                      "properties": {"tags": {"env": "prod", "owner": "team-a"}}}
    runner = fake_runner({("az", "tag", "list"): resource_shape})
    tags = AzCliFacade(runner).get_tags("sub-1")
    assert [(t.tag_name, [v.tag_value for v in t.values]) for t in tags] == [("env", ["prod"]), ("owner", ["team-a"])]

    list_shape = [{"tagName": "env", "count": {"value": 2}, "values": [{"tagValue": "prod"}, {"tagValue": "dev"}]}]
    runner = fake_runner({("az", "tag", "list"): list_shape})
    tags = AzCliFacade(runner).get_tags("sub-1")
    assert tags[0].count == 2
    assert [v.tag_value for v in tags[0].values] == ["prod", "dev"]
    assert runner.calls[0][0][:5] == ["az", "tag", "list", "--resource-id", "/subscriptions/sub-1"]


def test_az_get_cost_parses_nested_properties(fake_runner) -> None:
    payload = {
        "id": "q1",
        "name": "q1",
        "properties": {
            "columns": [
                {"name": "PreTaxCost", "type": "Number"},
                {"name": "UsageDate", "type": "Number"},
                {"name": "SubscriptionId", "type": "String"},
                {"name": "Currency", "type": "String"},
            ],
            "rows": [[12.5, 20240101, "sub-1", "EUR"]],
            "nextLink": None,
        },
    }
    runner = fake_runner({("az", "costmanagement", "query"): payload})
    info = AzCliFacade(runner).get_cost("sub-1", date(2024, 1, 1), date(2024, 1, 31))
    assert [c.name for c in info.columns] == ["PreTaxCost", "UsageDate", "SubscriptionId", "Currency"]
    assert info.rows == ((12.5, 20240101, "sub-1", "EUR"),)
    argv = runner.calls[0][0]
    assert "from=2024-01-01" in argv and "to=2024-01-31" in argv


def test_az_cost_query_is_daily(fake_runner) -> None:
    payload = {"properties": {"columns": [], "rows": []}}
    runner = fake_runner({("az", "costmanagement", "query"): payload})
    AzCliFacade(runner).get_cost("sub-1", date(2024, 1, 1), date(2024, 1, 31))
    argv = runner.calls[0][0]
    assert argv[argv.index("--dataset-granularity") + 1] == "Daily"


def test_az_paged_cost_result_is_a_query_error(fake_runner) -> None:
    payload = {
        "properties": {
            "columns": [{"name": "PreTaxCost"}, {"name": "UsageDate"}, {"name": "SubscriptionId"}, {"name": "Currency"}],
            "rows": [[1.0, 20240101, "sub-1", "EUR"]],
            "nextLink": "https://management.azure.com/subscriptions/sub-1/providers/Microsoft.CostManagement/query?$skiptoken=abc",
        }
    }
    runner = fake_runner({("az", "costmanagement", "query"): payload})
    with pytest.raises(PlatformQueryError) as excinfo:
        AzCliFacade(runner).get_cost("sub-1", date(2024, 1, 1), date(2024, 1, 31))
    assert "paged" in str(excinfo.value)


def test_az_management_groups_and_role_assignments(fake_runner) -> None:
    runner = fake_runner(
        {
            ("az", "account", "management-group", "list"): [
                {"id": "/providers/Microsoft.Management/managementGroups/root", "name": "root",
                 "displayName": "Tenant Root Group", "tenantId": "tenant-1", "type": "Microsoft.Management/managementGroups"}
            ],
            ("az", "role", "assignment", "list"): [
                {"principalId": "p1", "principalName": "ops", "principalType": "User",
                 "roleDefinitionName": "Reader", "scope": "/subscriptions/sub-1"},
                {"principalId": "p2", "roleDefinitionName": "Owner",
                 "scope": "/providers/Microsoft.Management/managementGroups/root"},
                {"principalId": "p3", "roleDefinitionName": "Owner", "scope": "/"},
                {"principalId": "p4", "roleDefinitionName": "Owner", "scope": "/subscriptions/sub-1/resourceGroups/rg"},
            ],
        }
    )
    facade = AzCliFacade(runner)
    groups = facade.list_management_groups()
    assert groups[0].display_name == "Tenant Root Group"
    roles = facade.list_role_assignments("sub-1")
    assert [r.scope_kind for r in roles] == ["subscription", "managementGroup", "root", "other"]


def test_is_subscription_shape_check() -> None:
    assert is_subscription(SUBSCRIPTIONS[0])
    assert not is_subscription({"id": "x"})
    assert not is_subscription(["id", "tenantId"])
    with pytest.raises(PlatformQueryError):
        Subscription.from_dict({"name": "no ids"})


def test_role_assignment_defaults() -> None:
    role = RoleAssignment.from_dict({})
    assert role.scope_kind == "root"


def test_cost_info_rejects_non_list_rows() -> None:
    with pytest.raises(PlatformQueryError):
        CostManagementInfo.from_dict({"columns": [], "rows": ["not-a-row"]})


def test_nonzero_exit_is_a_query_error(fake_runner) -> None:
    runner = fake_runner({("az",): ProcessResult(argv=[], exit_code=1, stdout="", stderr="Please run 'az login'")})
    with pytest.raises(PlatformQueryError) as excinfo:
        AzCliFacade(runner).list_subscriptions()
    assert "exited with code 1" in str(excinfo.value)
    assert "az login" in str(excinfo.value)


def test_malformed_json_is_a_query_error(fake_runner) -> None:
    runner = fake_runner({("az",): ProcessResult(argv=[], exit_code=0, stdout="{not json", stderr="")})
    with pytest.raises(PlatformQueryError) as excinfo:
        AzCliFacade(runner).list_subscriptions()
    assert "malformed JSON" in str(excinfo.value)


def test_wrong_shape_is_a_query_error(fake_runner) -> None:
    runner = fake_runner({("az", "account", "list"): {"value": []}})
    with pytest.raises(PlatformQueryError):
        AzCliFacade(runner).list_subscriptions()


def test_aws_accounts_tags_and_cost(fake_runner) -> None:
    cost = {
        "ResultsByTime": [
            {
                "TimePeriod": {"Start": "2024-01-01", "End": "2024-01-02"},
                "Groups": [{"Keys": ["111"], "Metrics": {"BlendedCost": {"Amount": "3.50", "Unit": "USD"}}}],
            }
        ]
    }
    runner = fake_runner(
        {
            ("aws", "organizations", "list-accounts"): {
                "Accounts": [{"Id": "111", "Name": "prod", "Email": "a@example.com", "Status": "ACTIVE"}]
            },
            ("aws", "organizations", "list-tags-for-resource"): {"Tags": [{"Key": "env", "Value": "prod"}]},
            ("aws", "ce", "get-cost-and-usage"): cost,
        }
    )
    facade = AwsCliFacade(runner)
    assert [a.id for a in facade.list_accounts()] == ["111"]
    assert [(t.key, t.value) for t in facade.list_tags("111")] == [("env", "prod")]
    rows = facade.get_cost(date(2024, 1, 1), date(2024, 1, 2), account_id="111")
    assert rows[0].amount == Decimal("3.50")
    assert rows[0].start == date(2024, 1, 1)
    argv = runner.calls[-1][0]
    assert "--filter" in argv
    assert argv[-2:] == ["--output", "json"]
    assert argv[argv.index("--time-period") + 1] == "Start=2024-01-01,End=2024-01-03"


@pytest.mark.parametrize(
    "start, end, period",
    [
        (date(2024, 1, 1), date(2024, 1, 31), "Start=2024-01-01,End=2024-02-01"),
        (date(2024, 1, 5), date(2024, 1, 5), "Start=2024-01-05,End=2024-01-06"),
    ],
)
def test_aws_cost_period_includes_the_end_day(fake_runner, start, end, period) -> None:
    runner = fake_runner({("aws", "ce"): {"ResultsByTime": []}})
    assert AwsCliFacade(runner).get_cost(start, end) == []
    argv = runner.calls[0][0]
    assert argv[argv.index("--time-period") + 1] == period


def test_aws_cost_rejects_unexpected_group_keys(fake_runner) -> None:
    cost = {"ResultsByTime": [{"TimePeriod": {"Start": "2024-01-01"}, "Groups": [{"Keys": ["111", "EC2"]}]}]}
    runner = fake_runner({("aws", "ce"): cost})
    with pytest.raises(PlatformQueryError):
        AwsCliFacade(runner).get_cost(date(2024, 1, 1), date(2024, 1, 2))


def test_gcloud_projects_labels_and_unsupported_cost(fake_runner) -> None:
    project = {
        "projectId": "acme-prod",
        "name": "Acme Prod",
        "projectNumber": "123",
        "lifecycleState": "ACTIVE",
        "labels": {"env": "prod"},
        "parent": {"type": "folder", "id": "42"},
    }
    runner = fake_runner({("gcloud", "projects", "list"): [project], ("gcloud", "projects", "describe"): project})
    facade = GcloudCliFacade(runner)
    projects = facade.list_projects()
    assert projects[0].project_id == "acme-prod"
    assert projects[0].parent == {"type": "folder", "id": "42"}
    assert facade.get_project_labels("acme-prod") == {"env": "prod"}
    with pytest.raises(UnsupportedQueryError):
        facade.get_cost("acme-prod", date(2024, 1, 1), date(2024, 1, 2))


def test_facade_serves_cache_and_refresh_bypasses_it(fake_runner, tmp_path) -> None:
    runner = fake_runner({("az", "account", "list"): SUBSCRIPTIONS})
    facade = AzCliFacade(runner, cache=QueryCache(tmp_path))
    facade.list_subscriptions()
    facade.list_subscriptions()
    assert len(runner.calls) == 1

    refreshing = AzCliFacade(runner, cache=QueryCache(tmp_path, refresh=True))
    refreshing.list_subscriptions()
    assert len(runner.calls) == 2


def test_facade_passes_env_overrides(fake_runner) -> None:
    runner = fake_runner({("az",): []})
    AzCliFacade(runner, env={"AZURE_CONFIG_DIR": "/tmp/az"}).list_subscriptions()
    assert runner.calls[0][1] == {"AZURE_CONFIG_DIR": "/tmp/az"}
