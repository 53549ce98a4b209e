from __future__ import annotations

import threading

from collie_mesh.mesh.statistics import FAILURE, SUCCESS, QueryStatistics
from collie_mesh.util.errors import PlatformQueryError, UnsupportedQueryError


def test_records_success_and_failure() -> None:
    stats = QueryStatistics()
    stats.begin("aws1", "list_tenants").succeed()
    stats.begin("az1", "list_tenants").fail(PlatformQueryError("az exited with code 1"))

    assert len(stats) == 2
    ok, bad = stats.records
    assert ok.outcome == SUCCESS and ok.error is None
    assert bad.outcome == FAILURE
    assert bad.error_kind == "query_failed"
    assert bad.error == "az exited with code 1"
    assert [r.platform_id for r in stats.successes] == ["aws1"]
    assert [r.platform_id for r in stats.failures] == ["az1"]


def test_first_finish_wins() -> None:
    stats = QueryStatistics()
    pending = stats.begin("gcp1", "get_cost")
    assert pending.fail(UnsupportedQueryError("no billing export")) is not None
    assert pending.succeed() is None
    assert len(stats) == 1
    assert stats.records[0].error_kind == "unsupported"


def test_cancel_pending_records_only_unfinished() -> None:
    stats = QueryStatistics()
    stats.begin("aws1", "list_tenants").succeed()
    hung = stats.begin("az1", "list_tenants")

    cancelled = stats.cancel_pending("deadline")
    assert [r.platform_id for r in cancelled] == ["az1"]
    assert cancelled[0].error_kind == "cancelled"

    # the worker finishing late does not add a second record
    assert hung.succeed() is None
    assert len(stats) == 2
    assert stats.cancel_pending() == []


def test_concurrent_appends_are_not_lost() -> None:
    stats = QueryStatistics()

    def worker(i: int) -> None:
        for j in range(50):
            stats.begin(f"p{i}", f"q{j}").succeed()

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(stats) == 400


def test_summary_per_platform() -> None:
    stats = QueryStatistics()
    stats.begin("aws1", "list_tenants").succeed()
    stats.begin("aws1", "get_tags").fail(RuntimeError("nope"))
    stats.begin("az1", "list_tenants").succeed()

    summary = stats.summary()
    assert list(summary) == ["aws1", "az1"]
    assert summary["aws1"]["queries"] == 2
    assert summary["aws1"]["failures"] == 1
    assert summary["az1"]["failures"] == 0
    assert stats.duration_ms("aws1") == summary["aws1"]["duration_ms"]
