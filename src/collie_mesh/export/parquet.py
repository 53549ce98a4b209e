from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..logging import get_logger
from ..util.errors import ExportError
from ..util.serialization import sanitize_for_json

LOG = get_logger(__name__)


class ParquetNotAvailable(ExportError):
    pass


def _require_pyarrow():
    try:
        import pyarrow as pa  # type: ignore
        import pyarrow.parquet as pq  # type: ignore
    except ImportError as e:  # pragma: no cover
        raise ParquetNotAvailable(
            "pyarrow is required for Parquet export. Install with: pip install .[parquet]"
        ) from e
    return pa, pq


def _parquet_row(record: Mapping[str, Any]) -> Dict[str, Any]:
    """
    JSON-safe row with tag maps turned into lists of {name, values}: tag names differ
    per tenant, so a map would not infer one struct schema.
    """
    row: Dict[str, Any] = {}
    for key, value in record.items():
        if key == "tags" and isinstance(value, Mapping):
            row[key] = [{"name": k, "values": sorted(v)} for k, v in sorted(value.items())]
        elif key == "native":
            continue
        else:
            row[key] = sanitize_for_json(value)
    return row


def write_parquet(records: Iterable[Mapping[str, Any]], path: Path, *, batch_size: int = 1000) -> int:
    """
    Write rows to a Parquet file in batches. The first batch fixes the schema.
    Returns the number of rows written.
    """
    pa, pq = _require_pyarrow()
    path.parent.mkdir(parents=True, exist_ok=True)
    if batch_size < 1:
        batch_size = 1000

    writer: Optional[Any] = None
    rows: List[Dict[str, Any]] = []
    written = 0

    def _flush_rows() -> None:
        nonlocal writer, rows, written
        if not rows:
            return
        try:
            if writer is None:
                table = pa.Table.from_pylist(rows)
            else:
                table = pa.Table.from_pylist(rows, schema=writer.schema)
        except (pa.ArrowInvalid, pa.ArrowTypeError) as exc:
            LOG.error(
                "Parquet batch write failed",
                extra={"step": "export", "phase": "error", "artifact": "parquet", "error": str(exc)},
            )
            raise ExportError(f"Failed to write Parquet file {path}: {exc}") from exc
        if writer is None:
            writer = pq.ParquetWriter(path, table.schema)
        writer.write_table(table)
        written += len(rows)
        rows = []

    try:
        for rec in records:
            rows.append(_parquet_row(rec))
            if len(rows) >= batch_size:
                _flush_rows()
        if rows:
            _flush_rows()
        elif writer is None:
            pq.write_table(pa.Table.from_pylist([]), path)
    finally:
        if writer is not None:
            writer.close()

    LOG.info("Wrote Parquet export", extra={"step": "export", "phase": "complete", "artifact": "parquet", "rows": written})
    return written
