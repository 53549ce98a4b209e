from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional, Sequence

from ..logging import get_logger
from ..process.runner import ProcessRunner
from ..util.errors import PlatformQueryError
from .cache import QueryCache

LOG = get_logger(__name__)


class CliFacade:
    """
    Shared plumbing for provider CLI facades: run a command that prints JSON, fail on a
    non-zero exit or unparsable output, and optionally serve/store results in a cache.
    """

    tool = ""

    def __init__(
        self,
        runner: ProcessRunner,
        *,
        env: Optional[Mapping[str, str]] = None,
        cache: Optional[QueryCache] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.runner = runner
        self.env: Dict[str, str] = dict(env or {})
        self.cache = cache
        self.timeout = timeout

    def run_json(self, args: Sequence[str]) -> Any:
        argv = [self.tool, *args]
        if self.cache is not None:
            cached = self.cache.get(argv)
            if cached is not None:
                LOG.debug("Serving cached CLI output", extra={"step": "cache", "phase": "hit", "argv": argv})
                return cached

        result = self.runner.run(argv, env=self.env or None, timeout=self.timeout)
        if not result.ok:
            detail = (result.stderr or "").strip() or (result.stdout or "").strip()
            raise PlatformQueryError(
                f"{' '.join(argv)} exited with code {result.exit_code}" + (f": {detail}" if detail else "")
            )
        text = (result.stdout or "").strip()
        if not text:
            data: Any = None
        else:
            try:
                data = json.loads(text)
            except ValueError as e:
                raise PlatformQueryError(f"{' '.join(argv)} returned malformed JSON: {e}") from e

        if self.cache is not None and data is not None:
            self.cache.put(argv, data)
        return data


def expect_list(data: Any, what: str) -> list:
    if data is None:
        return []
    if not isinstance(data, list):
        raise PlatformQueryError(f"Expected a list of {what}, got {type(data).__name__}")
    return data


def expect_dict(data: Any, what: str) -> dict:
    if not isinstance(data, dict):
        raise PlatformQueryError(f"Expected {what} object, got {type(data).__name__}")
    return data
