from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import date
from time import perf_counter
from typing import Any, Callable, Generic, List, Optional, Sequence, Set, Tuple, TypeVar

from ..logging import get_logger
from ..util.cancel import CancelToken
from ..util.concurrency import settle_all
from ..util.errors import QueryCancelledError
from .adapter import GET_COST, GET_TAGS, LIST_TENANTS, PlatformMeshAdapter, QueryOutcome, as_query_error
from .statistics import QueryStatistics
from .tenant import MeshCostRecord, MeshTenant

LOG = get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_WORKERS = 8
# seconds to wait for killed queries to report after the deadline
DEFAULT_GRACE = 2.0

_DEADLINE_MESSAGE = "Query did not finish before the run deadline"


@dataclass(frozen=True)
class PlatformFailure:
    platform_id: str
    query: str
    kind: str
    error: str
    tenant_id: Optional[str] = None


@dataclass(frozen=True)
class AggregateResult(Generic[T]):
    """Merged successes in platform declaration order, plus every failure of the run."""

    results: Tuple[T, ...]
    failures: Tuple[PlatformFailure, ...]

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def failed_platforms(self) -> List[str]:
        seen: List[str] = []
        for f in self.failures:
            if f.platform_id not in seen:
                seen.append(f.platform_id)
        return seen


@dataclass(frozen=True)
class _Call:
    adapter: PlatformMeshAdapter
    query: str
    tenant_id: Optional[str]
    run: Callable[[], QueryOutcome[Any]]


def _cancelled_outcome(call: _Call) -> QueryOutcome[Any]:
    pid = call.adapter.platform_id
    error = QueryCancelledError(_DEADLINE_MESSAGE, platform_id=pid, query=call.query)
    return QueryOutcome(platform_id=pid, query=call.query, error=error, tenant_id=call.tenant_id)


def _failure(outcome: QueryOutcome[Any]) -> PlatformFailure:
    assert outcome.error is not None
    return PlatformFailure(
        platform_id=outcome.platform_id,
        query=outcome.query,
        kind=outcome.error.kind,
        error=str(outcome.error),
        tenant_id=outcome.tenant_id,
    )


class AggregatingMeshAdapter:
    """
    Fans one logical query out to every platform adapter concurrently and joins on a
    barrier that waits for all of them. One platform failing never hides the results
    of the others; failures come back next to the merged results.

    The run deadline comes from the CancelToken. When it passes, the token is
    cancelled (killing in-flight CLI processes) and queries that still have not
    settled are recorded as cancelled.
    """

    def __init__(
        self,
        adapters: Sequence[PlatformMeshAdapter],
        statistics: QueryStatistics,
        *,
        token: Optional[CancelToken] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        grace: float = DEFAULT_GRACE,
    ) -> None:
        self.adapters = list(adapters)
        self.statistics = statistics
        self.token = token or CancelToken()
        self.max_workers = max_workers
        self.grace = grace

    def _cancel(self) -> None:
        LOG.warning("Run deadline reached; cancelling in-flight queries", extra={"step": "aggregate", "phase": "timeout"})
        self.token.cancel()

    def _fan_out(self, calls: List[_Call]) -> List[QueryOutcome[Any]]:
        if not calls:
            return []
        t0 = perf_counter()
        gate = threading.Lock()
        started: Set[int] = set()
        abandoned = False

        def run(call: _Call) -> QueryOutcome[Any]:
            with gate:
                if abandoned:
                    return _cancelled_outcome(call)
                started.add(id(call))
            return call.run()

        settled = settle_all(
            run,
            calls,
            self.max_workers,
            timeout=self.token.remaining(),
            on_timeout=self._cancel,
            grace=self.grace,
        )
        with gate:
            abandoned = True
        if any(not s.done for s in settled):
            self.statistics.cancel_pending(_DEADLINE_MESSAGE)

        outcomes: List[QueryOutcome[Any]] = []
        for s in settled:
            call = s.item
            pid = call.adapter.platform_id
            if not s.done:
                outcome = _cancelled_outcome(call)
                if id(call) not in started:
                    # never reached the adapter, so nothing recorded it yet
                    self.statistics.begin(pid, call.query).fail(outcome.error)
                outcomes.append(outcome)
            elif s.error is not None:
                outcomes.append(
                    QueryOutcome(
                        platform_id=pid,
                        query=call.query,
                        error=as_query_error(s.error, pid, call.query),
                        tenant_id=call.tenant_id,
                    )
                )
            else:
                outcomes.append(s.value)
        LOG.info(
            "Fan-out complete",
            extra={
                "step": "aggregate",
                "phase": "complete",
                "queries": len(calls),
                "failures": sum(1 for o in outcomes if not o.ok),
                "duration_ms": int((perf_counter() - t0) * 1000),
            },
        )
        return outcomes

    def _tenants_by_platform(self) -> Tuple[List[Tuple[PlatformMeshAdapter, List[MeshTenant]]], List[PlatformFailure]]:
        calls = [_Call(a, LIST_TENANTS, None, a.list_tenants) for a in self.adapters]
        found: List[Tuple[PlatformMeshAdapter, List[MeshTenant]]] = []
        failures: List[PlatformFailure] = []
        for call, outcome in zip(calls, self._fan_out(calls)):
            if outcome.ok:
                found.append((call.adapter, list(outcome.value or [])))
            else:
                failures.append(_failure(outcome))
        return found, failures

    def list_tenants(self) -> AggregateResult[MeshTenant]:
        found, failures = self._tenants_by_platform()
        tenants = [t for _, ts in found for t in ts]
        return AggregateResult(results=tuple(tenants), failures=tuple(failures))

    def get_tags(self) -> AggregateResult[MeshTenant]:
        """List tenants, then fetch each tenant's tags and merge them into the tenant."""
        found, failures = self._tenants_by_platform()
        calls = [
            _Call(adapter, GET_TAGS, t.tenant_id, (lambda a=adapter, tid=t.tenant_id: a.get_tags(tid)))
            for adapter, ts in found
            for t in ts
        ]
        outcomes = iter(self._fan_out(calls))
        tenants: List[MeshTenant] = []
        for _, ts in found:
            for tenant in ts:
                outcome = next(outcomes)
                if outcome.ok:
                    tenants.append(tenant.with_tags(outcome.value or []))
                else:
                    tenants.append(tenant)
                    failures.append(_failure(outcome))
        return AggregateResult(results=tuple(tenants), failures=tuple(failures))

    def get_cost(self, start: date, end: date) -> AggregateResult[MeshCostRecord]:
        """List tenants, then fetch each tenant's cost for [start, end]."""
        found, failures = self._tenants_by_platform()
        calls = [
            _Call(adapter, GET_COST, t.tenant_id, (lambda a=adapter, tid=t.tenant_id: a.get_cost(tid, start, end)))
            for adapter, ts in found
            for t in ts
        ]
        records: List[MeshCostRecord] = []
        for outcome in self._fan_out(calls):
            if outcome.ok:
                records.extend(outcome.value or [])
            else:
                failures.append(_failure(outcome))
        return AggregateResult(results=tuple(records), failures=tuple(failures))
