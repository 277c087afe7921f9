"""Unit tests for recordconcerns.config.logging_config."""
import io
import json
import logging

import structlog

from recordconcerns.config.logging_config import (
    configure_from_settings,
    configure_logging,
    get_logger,
)
from tests.models import Milestone


def test_configure_logging_sets_root_level():
    configure_logging(log_level="debug", json_logs=False)
    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)


def test_sql_loggers_stay_quiet():
    configure_logging(log_level="DEBUG")
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_configure_from_settings(monkeypatch):
    monkeypatch.setenv("RECORDCONCERNS_LOG_LEVEL", "WARNING")
    configure_from_settings()
    assert logging.getLogger().level == logging.WARNING


def test_get_logger_binds():
    log = get_logger("recordconcerns.test")
    assert log.bind(model="Task") is not None


def test_concern_events_render_as_json():
    buffer = io.StringIO()
    configure_logging(log_level="INFO", json_logs=True, stream=buffer)

    Milestone.sortable_by("position", use_automatic_maintenance=False)

    events = [json.loads(line) for line in buffer.getvalue().splitlines()]
    declared = [e for e in events if e["event"] == "concern_declared"]
    assert declared[-1]["model"] == "Milestone"
    assert declared[-1]["concern"] == "Sortable"
    assert declared[-1]["level"] == "info"
