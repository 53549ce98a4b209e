from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Generic, List, Optional, TypeVar

from ..logging import get_logger
from ..model.platform import PlatformConfig
from ..util.errors import PlatformQueryError
from .statistics import QueryStatistics
from .tenant import MeshCostRecord, MeshTag, MeshTenant

LOG = get_logger(__name__)

T = TypeVar("T")

LIST_TENANTS = "list_tenants"
GET_TAGS = "get_tags"
GET_COST = "get_cost"


@dataclass(frozen=True)
class QueryOutcome(Generic[T]):
    """Result of one adapter call: either value or error is set."""

    platform_id: str
    query: str
    value: Optional[T] = None
    error: Optional[PlatformQueryError] = None
    tenant_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def as_query_error(exc: BaseException, platform_id: str, query: str) -> PlatformQueryError:
    if isinstance(exc, PlatformQueryError):
        if exc.platform_id is None:
            exc.platform_id = platform_id
        if exc.query is None:
            exc.query = query
        return exc
    wrapped = PlatformQueryError(str(exc) or type(exc).__name__, platform_id=platform_id, query=query)
    wrapped.__cause__ = exc
    return wrapped


class PlatformMeshAdapter:
    """
    Query executor for one platform. Every call appends exactly one record to the
    shared QueryStatistics and returns a QueryOutcome; provider failures never
    propagate as exceptions.
    """

    def __init__(self, platform: PlatformConfig, facade: Any, statistics: QueryStatistics) -> None:
        self.platform = platform
        self.facade = facade
        self.statistics = statistics

    @property
    def platform_id(self) -> str:
        return self.platform.id

    def list_tenants(self) -> QueryOutcome[List[MeshTenant]]:
        return self._query(LIST_TENANTS, None, self._list_tenants)

    def get_tags(self, tenant_id: str) -> QueryOutcome[List[MeshTag]]:
        return self._query(GET_TAGS, tenant_id, lambda: self._get_tags(tenant_id))

    def get_cost(self, tenant_id: str, start: date, end: date) -> QueryOutcome[List[MeshCostRecord]]:
        return self._query(GET_COST, tenant_id, lambda: self._get_cost(tenant_id, start, end))

    def _query(self, query: str, tenant_id: Optional[str], func: Callable[[], T]) -> QueryOutcome[T]:
        pending = self.statistics.begin(self.platform_id, query)
        try:
            value = func()
        except Exception as e:
            error = as_query_error(e, self.platform_id, query)
            record = pending.fail(error)
            LOG.warning(
                "Platform query failed",
                extra={
                    "step": query,
                    "phase": "error",
                    "platform": self.platform_id,
                    "tenant": tenant_id,
                    "error": str(error),
                    "duration_ms": record.duration_ms if record else None,
                },
            )
            return QueryOutcome(platform_id=self.platform_id, query=query, error=error, tenant_id=tenant_id)

        record = pending.succeed()
        LOG.info(
            "Platform query complete",
            extra={
                "step": query,
                "phase": "complete",
                "platform": self.platform_id,
                "tenant": tenant_id,
                "duration_ms": record.duration_ms if record else None,
            },
        )
        return QueryOutcome(platform_id=self.platform_id, query=query, value=value, tenant_id=tenant_id)

    def _list_tenants(self) -> List[MeshTenant]:
        raise NotImplementedError

    def _get_tags(self, tenant_id: str) -> List[MeshTag]:
        raise NotImplementedError

    def _get_cost(self, tenant_id: str, start: date, end: date) -> List[MeshCostRecord]:
        raise NotImplementedError
