from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import pytest
import yaml

from collie_mesh.process.runner import ProcessResult


def _readme(frontmatter: Optional[Mapping[str, Any]], body: str = "") -> str:
    if frontmatter is None:
        return body
    return "---\n" + yaml.safe_dump(dict(frontmatter), sort_keys=False) + "---\n" + body


@pytest.fixture
def write_repo(tmp_path) -> Callable[..., Path]:
    """
    Build a collie repository on disk:
        write_repo("prod", {"name": "prod"}, {"az1": {...}, "aws1": {...}})
    """

    def _write(
        foundation: str,
        foundation_fm: Optional[Mapping[str, Any]],
        platforms: Optional[Mapping[str, Optional[Mapping[str, Any]]]] = None,
    ) -> Path:
        fdir = tmp_path / "foundations" / foundation
        fdir.mkdir(parents=True, exist_ok=True)
        (fdir / "README.md").write_text(_readme(foundation_fm, "# Foundation\n"), encoding="utf-8")
        for name, fm in (platforms or {}).items():
            pdir = fdir / "platforms" / name
            pdir.mkdir(parents=True, exist_ok=True)
            (pdir / "README.md").write_text(_readme(fm, f"# {name}\n"), encoding="utf-8")
        return tmp_path

    return _write


class FakeRunner:
    """
    ProcessRunner double. Responses are matched on the longest argv prefix; values are
    either JSON-able data (exit 0) or a ProcessResult.
    """

    def __init__(self, responses: Mapping[Tuple[str, ...], Any]) -> None:
        self.responses = dict(responses)
        self.calls: List[Tuple[List[str], Dict[str, str]]] = []

    def run(self, argv: Sequence[str], *, cwd=None, env=None, timeout=None) -> ProcessResult:
        self.calls.append((list(argv), dict(env or {})))
        best: Optional[Tuple[str, ...]] = None
        for prefix in self.responses:
            if tuple(argv[: len(prefix)]) == prefix and (best is None or len(prefix) > len(best)):
                best = prefix
        if best is None:
            return ProcessResult(argv=list(argv), exit_code=127, stdout="", stderr=f"unexpected command {argv}")
        value = self.responses[best]
        if isinstance(value, ProcessResult):
            return value
        return ProcessResult(argv=list(argv), exit_code=0, stdout=json.dumps(value), stderr="")


@pytest.fixture
def fake_runner() -> Callable[[Mapping[Tuple[str, ...], Any]], FakeRunner]:
    return FakeRunner


def failed(stderr: str = "boom", exit_code: int = 1) -> ProcessResult:
    return ProcessResult(argv=[], exit_code=exit_code, stdout="", stderr=stderr)


@pytest.fixture
def process_failure() -> Callable[..., ProcessResult]:
    return failed
