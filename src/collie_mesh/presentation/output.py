from __future__ import annotations

import json
import sys
from typing import Any, Iterable, Mapping, Optional, Sequence, TextIO

import yaml

from ..export.csv import write_csv
from ..util.serialization import sanitize_for_json


def to_json(data: Any) -> str:
    return json.dumps(sanitize_for_json(data), indent=2, ensure_ascii=False) + "\n"


def to_yaml(data: Any) -> str:
    return yaml.safe_dump(sanitize_for_json(data), sort_keys=False, allow_unicode=True)


def emit(
    data: Any,
    fmt: str,
    *,
    rows: Optional[Iterable[Mapping[str, Any]]] = None,
    fields: Optional[Sequence[str]] = None,
    out: Optional[TextIO] = None,
) -> None:
    """
    Write machine-readable output to stdout. json/yaml render `data` as a document;
    csv renders `rows` (defaulting to `data`) with the given header fields.
    """
    stream = out or sys.stdout
    if fmt == "json":
        stream.write(to_json(data))
    elif fmt == "yaml":
        stream.write(to_yaml(data))
    elif fmt == "csv":
        if fields is None:
            raise ValueError("csv output needs a field list")
        write_csv(rows if rows is not None else data, fields, stream)
    else:
        raise ValueError(f"Unsupported output format: {fmt}")
