from __future__ import annotations

from concurrent.futures import ALL_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Dict, Generic, List, Optional, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class Settled(Generic[T, R]):
    """
    Outcome of one item in settle_all. Exactly one of the following holds:
    - done and error is None: value holds the result
    - done and error is set: the worker raised
    - not done: the barrier timed out before the worker finished
    """

    item: T
    value: Optional[R] = None
    error: Optional[BaseException] = None
    done: bool = True

    @property
    def ok(self) -> bool:
        return self.done and self.error is None


def settle_all(
    func: Callable[[T], R],
    items: Sequence[T],
    max_workers: int,
    *,
    timeout: Optional[float] = None,
    on_timeout: Optional[Callable[[], None]] = None,
    grace: float = 2.0,
) -> List[Settled[T, R]]:
    """
    Execute func over items in a thread pool and wait for every call to settle.
    Never short-circuits on the first error; results preserve the input order
    regardless of completion order.

    When timeout elapses, on_timeout is invoked (used to cancel in-flight work) and
    the barrier waits up to `grace` seconds more. Calls still running after that are
    reported with done=False and left behind; the executor does not block on them.
    """
    items = list(items)
    if not items:
        return []
    workers = max(1, min(max_workers, len(items)))
    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="collie-query")
    futures: Dict[Future[R], int] = {}
    try:
        for idx, item in enumerate(items):
            futures[executor.submit(func, item)] = idx

        _, pending = wait(futures.keys(), timeout=timeout, return_when=ALL_COMPLETED)
        if pending:
            if on_timeout is not None:
                on_timeout()
            _, pending = wait(pending, timeout=grace, return_when=ALL_COMPLETED)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    results: List[Optional[Settled[T, R]]] = [None] * len(items)
    for fut, idx in futures.items():
        item = items[idx]
        if not fut.done() or fut.cancelled():
            results[idx] = Settled(item=item, done=False)
        else:
            exc = fut.exception()
            if exc is not None:
                results[idx] = Settled(item=item, error=exc)
            else:
                results[idx] = Settled(item=item, value=fut.result())
    return [r for r in results if r is not None]
