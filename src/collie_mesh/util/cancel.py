from __future__ import annotations

import threading
from time import monotonic
from typing import Optional


class CancelToken:
    """
    Run-level cancellation shared by every in-flight query.
    A token is cancelled explicitly via cancel() or implicitly once its deadline passes.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._event = threading.Event()
        self._deadline = monotonic() + timeout if timeout and timeout > 0 else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and monotonic() >= self._deadline:
            self._event.set()
            return True
        return False

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, None when unbounded."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - monotonic())

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`, returning True early if cancelled."""
        if self.cancelled:
            return True
        return self._event.wait(seconds)
