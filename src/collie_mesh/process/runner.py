from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from time import perf_counter
from typing import Mapping, Optional, Protocol, Sequence, Union

from ..logging import get_logger
from ..util.cancel import CancelToken
from ..util.errors import PlatformQueryError, ProcessRunnerError, QueryCancelledError

LOG = get_logger(__name__)

POLL_INTERVAL = 0.1


@dataclass(frozen=True)
class ProcessResult:
    argv: Sequence[str]
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ProcessRunner(Protocol):
    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Optional[Union[str, Path]] = None,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> ProcessResult:
        ...


class SubprocessRunner:
    """
    Runs external commands and captures their output as text.

    A CancelToken shared across the run bounds every invocation: once the token is
    cancelled (explicitly or by its deadline) the child process is killed and
    QueryCancelledError is raised.
    """

    def __init__(self, token: Optional[CancelToken] = None) -> None:
        self._token = token

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Optional[Union[str, Path]] = None,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> ProcessResult:
        merged_env = dict(os.environ)
        if env:
            merged_env.update(env)
        started = perf_counter()
        LOG.debug("Running command", extra={"step": "process", "phase": "start", "argv": list(argv)})
        try:
            proc = subprocess.Popen(
                list(argv),
                cwd=cwd,
                env=merged_env,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as e:
            raise ProcessRunnerError(f"Failed to start {argv[0]}: {e}") from e

        stdout, stderr = self._communicate(proc, argv, timeout, started)
        duration_ms = int((perf_counter() - started) * 1000)
        LOG.debug(
            "Command finished",
            extra={
                "step": "process",
                "phase": "complete",
                "argv": list(argv),
                "exit_code": proc.returncode,
                "duration_ms": duration_ms,
            },
        )
        return ProcessResult(argv=list(argv), exit_code=proc.returncode, stdout=stdout or "", stderr=stderr or "")

    def _communicate(self, proc: subprocess.Popen, argv: Sequence[str], timeout: Optional[float], started: float):
        while True:
            try:
                return proc.communicate(timeout=POLL_INTERVAL)
            except subprocess.TimeoutExpired:
                pass
            if self._token is not None and self._token.cancelled:
                self._kill(proc)
                raise QueryCancelledError(f"Cancelled while running {' '.join(argv)}")
            if timeout is not None and perf_counter() - started >= timeout:
                self._kill(proc)
                raise PlatformQueryError(f"Timed out after {timeout:.0f}s running {' '.join(argv)}", kind="timeout")

    @staticmethod
    def _kill(proc: subprocess.Popen) -> None:
        proc.kill()
        try:
            proc.communicate(timeout=5)
        except subprocess.TimeoutExpired:
            LOG.warning("Killed process did not exit", extra={"pid": proc.pid})
