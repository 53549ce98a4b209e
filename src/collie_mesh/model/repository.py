from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

from ..util.errors import ConfigError

PathLike = Union[str, Path]


@dataclass(frozen=True)
class CollieRepository:
    """
    Root of a configuration tree on disk. All path resolution is relative to root.
    """

    root: Path

    @classmethod
    def load(cls, path: PathLike = "./") -> CollieRepository:
        root = Path(path).expanduser().resolve()
        if not root.is_dir():
            raise ConfigError(f"Collie repository not found: {root}")
        return cls(root=root)

    def resolve_path(self, *segments: PathLike) -> Path:
        return self.root.joinpath(*segments)

    def relative_path(self, path: PathLike) -> str:
        """
        Render a path relative to the repository root for user-facing messages.
        Paths outside the repository are returned unchanged.
        """
        p = Path(path)
        try:
            return p.resolve().relative_to(self.root).as_posix()
        except ValueError:
            return os.fspath(p)

    def list_foundations(self) -> List[str]:
        base = self.resolve_path("foundations")
        if not base.is_dir():
            return []
        return sorted(p.parent.name for p in base.glob("*/README.md") if p.is_file())
