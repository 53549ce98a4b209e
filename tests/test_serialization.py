from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal

from collie_mesh.logging import JsonFormatter, LogConfig, PlainFormatter, add_run_log_file, setup_logging
from collie_mesh.mesh.tenant import MeshTag
from collie_mesh.util.serialization import REDACTED_VALUE, sanitize_for_json


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="unit",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Platform query failed",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_sanitize_for_json_redacts_sensitive_fields() -> None:
    env = {"AWS_SECRET_ACCESS_KEY": "x", "AZURE_CONFIG_DIR": "/tmp/az", "nested": {"client_token": "t"}}
    sanitized = sanitize_for_json(env)
    assert sanitized["AWS_SECRET_ACCESS_KEY"] == REDACTED_VALUE
    assert sanitized["AZURE_CONFIG_DIR"] == "/tmp/az"
    assert sanitized["nested"]["client_token"] == REDACTED_VALUE


def test_sanitize_for_json_handles_domain_values() -> None:
    tag = MeshTag(platform_id="az1", tenant_id="sub-1", name="env", values=frozenset({"prod", "dev"}))
    sanitized = sanitize_for_json(
        {"day": date(2024, 1, 2), "at": datetime(2024, 1, 1, tzinfo=timezone.utc), "amount": Decimal("1.10"), "tag": tag}
    )
    assert sanitized["day"] == "2024-01-02"
    assert sanitized["at"] == "2024-01-01T00:00:00+00:00"
    assert sanitized["amount"] == "1.10"
    assert sanitized["tag"]["values"] == ["dev", "prod"]


def test_json_formatter_keeps_safe_extras_only() -> None:
    payload = json.loads(JsonFormatter().format(_record(platform="az1", step="list_tenants", blob=object())))
    assert payload["message"] == "Platform query failed"
    assert payload["level"] == "WARNING"
    assert payload["platform"] == "az1"
    assert payload["step"] == "list_tenants"
    assert "blob" not in payload


def test_plain_formatter_includes_step_and_platform() -> None:
    line = PlainFormatter().format(_record(step="get_cost", phase="error", platform="aws1", duration_ms=12))
    assert "[get_cost:error] Platform query failed platform=aws1 (duration_ms=12)" in line
    assert " WARNING unit: " in line


def test_run_log_file_is_added_once(tmp_path, monkeypatch) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    monkeypatch.setattr(setup_logging, "_configured", False, raising=False)
    try:
        setup_logging(LogConfig(level="INFO", json_logs=True))
        log_path = tmp_path / "logs" / "run.log"
        add_run_log_file(log_path)
        add_run_log_file(log_path)
        file_handlers = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1
        assert isinstance(file_handlers[0].formatter, JsonFormatter)

        logging.getLogger("collie_mesh.test").info("hello", extra={"platform": "gcp1"})
        file_handlers[0].flush()
        line = log_path.read_text(encoding="utf-8").strip().splitlines()[-1]
        assert json.loads(line)["platform"] == "gcp1"
    finally:
        for handler in root.handlers:
            if handler not in saved_handlers:
                handler.close()
        root.handlers = saved_handlers
        root.setLevel(saved_level)
