from __future__ import annotations

import types
from datetime import date
from decimal import Decimal

import pytest

from collie_mesh.api.az_model import CostColumn, CostManagementInfo, Subscription, Tag, TagValue
from collie_mesh.api.aws_model import Account, CostRow
from collie_mesh.api.aws_model import Tag as AwsTag
from collie_mesh.api.gcloud_model import Project
from collie_mesh.mesh.aws import AwsMeshAdapter
from collie_mesh.mesh.azure import AzureMeshAdapter, cost_records_from_azure
from collie_mesh.mesh.gcp import GcpMeshAdapter
from collie_mesh.mesh.statistics import QueryStatistics
from collie_mesh.model.platform import (
    AwsConfig,
    AwsPlatformConfig,
    AzureConfig,
    AzurePlatformConfig,
    GcpConfig,
    GcpPlatformConfig,
)
from collie_mesh.util.errors import CostSchemaError, PlatformQueryError, ProcessRunnerError, UnsupportedQueryError

AZ1 = AzurePlatformConfig(id="az1", name="az1", azure=AzureConfig(aad_tenant_id="tenant-1", subscription_id="sub-1"))
AWS1 = AwsPlatformConfig(id="aws1", name="aws1", aws=AwsConfig(account_id="111", account_access_role="Admin"))
GCP1 = GcpPlatformConfig(id="gcp1", name="gcp1", gcp=GcpConfig(project="acme-prod"))

COLUMNS = tuple(CostColumn(name=n, type="") for n in ("PreTaxCost", "UsageDate", "SubscriptionId", "Currency"))


def _cost_info(rows, columns=COLUMNS) -> CostManagementInfo:
    return CostManagementInfo(id="q", name="q", columns=tuple(columns), rows=tuple(tuple(r) for r in rows))


def test_azure_cost_rows_are_positional() -> None:
    records = cost_records_from_azure("az1", _cost_info([[1.25, 20240102, "sub-1", "EUR"], ["2", "20240103", "sub-1", "EUR"]]))
    assert [(r.tenant_id, r.amount, r.currency, r.date) for r in records] == [
        ("sub-1", Decimal("1.25"), "EUR", date(2024, 1, 2)),
        ("sub-1", Decimal("2"), "EUR", date(2024, 1, 3)),
    ]


def test_azure_cost_rejects_reordered_columns() -> None:
    reordered = (COLUMNS[1], COLUMNS[0], COLUMNS[2], COLUMNS[3])
    with pytest.raises(CostSchemaError) as excinfo:
        cost_records_from_azure("az1", _cost_info([[20240102, 1.25, "sub-1", "EUR"]], columns=reordered))
    assert "Unexpected cost columns" in str(excinfo.value)


def test_azure_cost_rejects_extra_column() -> None:
    extra = COLUMNS + (CostColumn(name="ResourceGroup", type="String"),)
    with pytest.raises(CostSchemaError):
        cost_records_from_azure("az1", _cost_info([], columns=extra))


def test_azure_cost_rejects_short_row() -> None:
    with pytest.raises(CostSchemaError) as excinfo:
        cost_records_from_azure("az1", _cost_info([[1.25, 20240102, "sub-1"]]))
    assert "has 3 cells, expected 4" in str(excinfo.value)


def test_azure_cost_rejects_bad_cells() -> None:
    with pytest.raises(CostSchemaError):
        cost_records_from_azure("az1", _cost_info([["n/a", 20240102, "sub-1", "EUR"]]))
    with pytest.raises(CostSchemaError):
        cost_records_from_azure("az1", _cost_info([[1, "yesterday", "sub-1", "EUR"]]))
    with pytest.raises(CostSchemaError):
        cost_records_from_azure("az1", _cost_info([[True, 20240102, "sub-1", "EUR"]]))


def test_azure_tenants_are_subscriptions_of_the_aad_tenant() -> None:
    facade = types.SimpleNamespace(
        list_subscriptions=lambda: [
            Subscription(id="sub-1", name="Prod", tenant_id="tenant-1", is_default=True, state="Enabled"),
            Subscription(id="sub-9", name="Foreign", tenant_id="tenant-9"),
        ]
    )
    stats = QueryStatistics()
    outcome = AzureMeshAdapter(AZ1, facade, stats).list_tenants()
    assert outcome.ok
    assert [(t.tenant_id, t.tenant_name, t.is_default) for t in outcome.value] == [("sub-1", "Prod", True)]
    assert outcome.value[0].native["state"] == "Enabled"
    assert len(stats) == 1 and stats.records[0].ok


def test_azure_tags_keep_every_value() -> None:
    facade = types.SimpleNamespace(
        get_tags=lambda sub: [Tag(tag_name="env", values=(TagValue("prod"), TagValue("shared")))]
    )
    outcome = AzureMeshAdapter(AZ1, facade, QueryStatistics()).get_tags("sub-1")
    assert outcome.value[0].name == "env"
    assert outcome.value[0].values == frozenset({"prod", "shared"})


def test_azure_cost_schema_error_is_returned_as_data() -> None:
    bad = _cost_info([[1.0, 20240101, "sub-1"]])
    facade = types.SimpleNamespace(get_cost=lambda sub, start, end: bad)
    stats = QueryStatistics()
    outcome = AzureMeshAdapter(AZ1, facade, stats).get_cost("sub-1", date(2024, 1, 1), date(2024, 1, 31))
    assert not outcome.ok
    assert isinstance(outcome.error, CostSchemaError)
    assert outcome.error.platform_id == "az1"
    assert outcome.error.query == "get_cost"
    assert stats.records[0].outcome == "failure"


def test_aws_tenants_and_default_account() -> None:
    facade = types.SimpleNamespace(
        list_accounts=lambda: [Account(id="111", name="management"), Account(id="222", name="workload")]
    )
    outcome = AwsMeshAdapter(AWS1, facade, QueryStatistics()).list_tenants()
    assert [(t.tenant_id, t.is_default) for t in outcome.value] == [("111", True), ("222", False)]


def test_aws_tags_and_cost() -> None:
    facade = types.SimpleNamespace(
        list_tags=lambda account_id: [AwsTag("env", "prod"), AwsTag("team", "a")],
        get_cost=lambda start, end, account_id=None: [
            CostRow(account_id="111", start=date(2024, 1, 1), amount=Decimal("3.5"), unit="USD"),
            CostRow(account_id="222", start=date(2024, 1, 1), amount=Decimal("9"), unit="USD"),
        ],
    )
    adapter = AwsMeshAdapter(AWS1, facade, QueryStatistics())
    tags = adapter.get_tags("111").value
    assert [(t.name, t.values) for t in tags] == [("env", frozenset({"prod"})), ("team", frozenset({"a"}))]
    costs = adapter.get_cost("111", date(2024, 1, 1), date(2024, 1, 2)).value
    assert [(c.tenant_id, c.amount, c.currency) for c in costs] == [("111", Decimal("3.5"), "USD")]


def test_gcp_projects_carry_labels_as_tags() -> None:
    facade = types.SimpleNamespace(
        list_projects=lambda: [
            Project(project_id="acme-prod", name="Acme Prod", labels={"env": "prod"}),
            Project(project_id="acme-dev", name="Acme Dev"),
        ]
    )
    tenants = GcpMeshAdapter(GCP1, facade, QueryStatistics()).list_tenants().value
    assert tenants[0].tags == {"env": frozenset({"prod"})}
    assert tenants[0].is_default
    assert not tenants[1].is_default


def test_gcp_cost_is_reported_unsupported() -> None:
    def get_cost(project_id, start, end):
        raise UnsupportedQueryError("no billing export")

    stats = QueryStatistics()
    outcome = GcpMeshAdapter(GCP1, types.SimpleNamespace(get_cost=get_cost), stats).get_cost(
        "acme-prod", date(2024, 1, 1), date(2024, 1, 2)
    )
    assert outcome.error.kind == "unsupported"
    assert stats.records[0].error_kind == "unsupported"


def test_unexpected_exceptions_are_wrapped() -> None:
    def boom():
        raise ProcessRunnerError("Failed to start az: No such file or directory")

    stats = QueryStatistics()
    outcome = AzureMeshAdapter(AZ1, types.SimpleNamespace(list_subscriptions=boom), stats).list_tenants()
    assert isinstance(outcome.error, PlatformQueryError)
    assert isinstance(outcome.error.__cause__, ProcessRunnerError)
    assert outcome.error.platform_id == "az1"
    assert stats.records[0].error_kind == "query_failed"
