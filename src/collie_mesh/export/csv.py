from __future__ import annotations

import csv
from typing import Any, Iterable, List, Mapping, Sequence, TextIO

from ..util.serialization import sanitize_for_json
from .rows import flatten_tags


def _cell(field: str, value: Any) -> str:
    if value is None:
        return ""
    if field == "tags" and isinstance(value, Mapping):
        return flatten_tags(value)
    value = sanitize_for_json(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def write_csv(rows: Iterable[Mapping[str, Any]], fields: Sequence[str], out: TextIO) -> None:
    """
    Write rows to an open text stream with a header row. Row order is preserved;
    callers pass rows already in platform declaration order.
    """
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(fields)
    for rec in rows:
        row: List[str] = [_cell(field, rec.get(field)) for field in fields]
        writer.writerow(row)
