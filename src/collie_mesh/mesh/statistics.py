from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from time import perf_counter
from typing import Dict, List, Optional, Tuple

from ..util.errors import PlatformQueryError, QueryCancelledError
from ..util.time import utc_now

SUCCESS = "success"
FAILURE = "failure"


@dataclass(frozen=True)
class QueryRecord:
    platform_id: str
    query: str
    started_at: datetime
    duration_ms: int
    outcome: str
    error_kind: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome == SUCCESS


class PendingQuery:
    """
    Handle for one in-flight adapter call. The first finish wins: later calls are
    ignored, so a query cancelled by the aggregation barrier is recorded exactly once
    even if its worker thread completes afterwards.
    """

    def __init__(self, ledger: QueryStatistics, platform_id: str, query: str) -> None:
        self._ledger = ledger
        self.platform_id = platform_id
        self.query = query
        self.started_at = utc_now()
        self._started = perf_counter()
        self._lock = threading.Lock()
        self._record: Optional[QueryRecord] = None

    @property
    def finished(self) -> bool:
        return self._record is not None

    def succeed(self) -> Optional[QueryRecord]:
        return self._finish(SUCCESS, None, None)

    def fail(self, error: BaseException) -> Optional[QueryRecord]:
        kind = error.kind if isinstance(error, PlatformQueryError) else "query_failed"
        return self._finish(FAILURE, kind, str(error) or type(error).__name__)

    def _finish(self, outcome: str, kind: Optional[str], error: Optional[str]) -> Optional[QueryRecord]:
        with self._lock:
            if self._record is not None:
                return None
            self._record = QueryRecord(
                platform_id=self.platform_id,
                query=self.query,
                started_at=self.started_at,
                duration_ms=int((perf_counter() - self._started) * 1000),
                outcome=outcome,
                error_kind=kind,
                error=error,
            )
        self._ledger._append(self, self._record)
        return self._record


class QueryStatistics:
    """
    Append-only ledger of adapter query outcomes for one command run.
    Created once per command and passed explicitly to every adapter.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: List[QueryRecord] = []
        self._pending: Dict[int, PendingQuery] = {}

    def begin(self, platform_id: str, query: str) -> PendingQuery:
        pending = PendingQuery(self, platform_id, query)
        with self._lock:
            self._pending[id(pending)] = pending
        return pending

    def _append(self, pending: PendingQuery, record: QueryRecord) -> None:
        with self._lock:
            self._pending.pop(id(pending), None)
            self._records.append(record)

    def cancel_pending(self, reason: str = "Query cancelled before completion") -> List[QueryRecord]:
        """Record every still-running query as a cancelled failure."""
        with self._lock:
            pending = list(self._pending.values())
        records = []
        for p in pending:
            record = p.fail(QueryCancelledError(reason, platform_id=p.platform_id, query=p.query))
            if record is not None:
                records.append(record)
        return records

    @property
    def records(self) -> Tuple[QueryRecord, ...]:
        with self._lock:
            return tuple(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    @property
    def successes(self) -> Tuple[QueryRecord, ...]:
        return tuple(r for r in self.records if r.ok)

    @property
    def failures(self) -> Tuple[QueryRecord, ...]:
        return tuple(r for r in self.records if not r.ok)

    def duration_ms(self, platform_id: str) -> int:
        """Total time spent querying one platform."""
        return sum(r.duration_ms for r in self.records if r.platform_id == platform_id)

    def summary(self) -> Dict[str, Dict[str, int]]:
        """platform_id -> {queries, failures, duration_ms}, in first-seen order."""
        out: Dict[str, Dict[str, int]] = {}
        for r in self.records:
            entry = out.setdefault(r.platform_id, {"queries": 0, "failures": 0, "duration_ms": 0})
            entry["queries"] += 1
            entry["duration_ms"] += r.duration_ms
            if not r.ok:
                entry["failures"] += 1
        return out
