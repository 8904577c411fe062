import json
import logging

from app.database import normalize_url
from app.logging_config import JSONFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("vision", logging.INFO, __file__, 1, "Extracted %s", ("receipt",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_merges_extra_data():
    line = JSONFormatter().format(_record(extra_data={"step_id": "receipt", "duration_ms": 12}))
    entry = json.loads(line)
    assert entry["message"] == "Extracted receipt"
    assert entry["level"] == "INFO"
    assert entry["step_id"] == "receipt"
    assert entry["duration_ms"] == 12


def test_json_formatter_keeps_envelope():
    entry = json.loads(JSONFormatter().format(_record(extra_data={"level": "DEBUG"})))
    assert entry["level"] == "INFO"


def test_postgres_urls_are_normalized():
    assert normalize_url("postgres://u:p@db/vision") == "postgresql://u:p@db/vision"
    assert normalize_url("sqlite://") == "sqlite://"
