"""
Тесты структурированного логирования.
"""

import io
import json
import logging

import pytest

from bmc_inventory.core.context import RunContext, set_current_context
from bmc_inventory.core.logging import (
    HumanFormatter,
    JSONFormatter,
    LogConfig,
    RotationType,
    get_logger,
    setup_logging,
)


@pytest.fixture
def stream():
    """Поток, в который пишет root logger; после теста handlers снимаются."""
    buffer = io.StringIO()
    setup_logging(json_format=True, level=logging.DEBUG, stream=buffer)
    yield buffer
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    set_current_context(None)


def _records(buffer):
    return [json.loads(line) for line in buffer.getvalue().splitlines() if line]


class TestStructuredLogger:

    def test_extra_fields_in_json(self, stream):
        get_logger("bmc_inventory.test").info("Reconcile snapshot", snapshot="ds-1", phase="Pending")

        record = _records(stream)[-1]
        assert record["message"] == "Reconcile snapshot"
        assert record["snapshot"] == "ds-1"
        assert record["phase"] == "Pending"
        assert record["level"] == "INFO"

    def test_bind(self, stream):
        log = get_logger("bmc_inventory.test").bind(snapshot="ds-2")
        log.warning("Processing")

        assert _records(stream)[-1]["snapshot"] == "ds-2"

    def test_run_id_from_context(self, stream):
        ctx = RunContext.create(triggered_by="test", use_timestamp_id=False)
        set_current_context(ctx)

        get_logger("bmc_inventory.test").info("with context")

        assert _records(stream)[-1]["run_id"] == ctx.run_id

    def test_exception_traceback(self, stream):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            get_logger("bmc_inventory.test").exception("failed")

        assert "RuntimeError: boom" in _records(stream)[-1]["exception"]

    def test_logger_cache(self):
        assert get_logger("bmc_inventory.same") is get_logger("bmc_inventory.same")


class TestFormatters:

    def _record(self, **extra):
        record = logging.LogRecord("bmc_inventory", logging.INFO, __file__, 1, "hello", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_human_format(self):
        line = HumanFormatter().format(self._record(run_id="r1", snapshot="ds-1", endpoint="10.0.0.5"))
        assert "[r1] hello" in line
        assert "(snapshot=ds-1, endpoint=10.0.0.5)" in line

    def test_json_format(self):
        data = json.loads(JSONFormatter().format(self._record(endpoint="10.0.0.5")))
        assert data["endpoint"] == "10.0.0.5"
        assert data["logger"] == "bmc_inventory"


class TestLogConfig:

    def test_from_dict(self):
        config = LogConfig.from_dict({"level": "debug", "rotation": "time", "file_path": "/tmp/x.log"})
        assert config.level == logging.DEBUG
        assert config.rotation == RotationType.TIME
        assert config.file_path == "/tmp/x.log"

    def test_defaults(self):
        config = LogConfig.from_dict({})
        assert config.level == logging.INFO
        assert config.console is True
