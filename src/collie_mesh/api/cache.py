from __future__ import annotations

import hashlib
import json
import threading
from pathlib import Path
from time import time
from typing import Any, Optional, Sequence

from ..logging import get_logger

LOG = get_logger(__name__)

DEFAULT_CACHE_TTL = 60 * 60


def cache_key(argv: Sequence[str]) -> str:
    return hashlib.sha1("\0".join(argv).encode("utf-8")).hexdigest()[:16]


class QueryCache:
    """
    On-disk cache of parsed CLI output, one JSON file per command line.

    With refresh=True reads are bypassed and every entry is rewritten from a live
    query. Entries older than ttl seconds are treated as missing.
    """

    def __init__(self, directory: Path, *, ttl: int = DEFAULT_CACHE_TTL, refresh: bool = False) -> None:
        self.directory = directory
        self.ttl = ttl
        self.refresh = refresh
        self._lock = threading.Lock()

    def _path(self, argv: Sequence[str]) -> Path:
        return self.directory / f"{cache_key(argv)}.json"

    def get(self, argv: Sequence[str]) -> Optional[Any]:
        if self.refresh or self.ttl <= 0:
            return None
        path = self._path(argv)
        try:
            entry = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            LOG.debug("Ignoring unreadable cache entry", extra={"path": str(path), "error": str(e)})
            return None
        if not isinstance(entry, dict) or entry.get("argv") != list(argv):
            return None
        if time() - float(entry.get("stored_at") or 0) > self.ttl:
            return None
        return entry.get("data")

    def put(self, argv: Sequence[str], data: Any) -> None:
        path = self._path(argv)
        entry = {"argv": list(argv), "stored_at": time(), "data": data}
        with self._lock:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_text(json.dumps(entry, sort_keys=True), encoding="utf-8")
            tmp.replace(path)
