"""
Tests for logging setup and solve timing helpers.
"""

import json
import logging

import pytest

from kinempc.logging import (
    JsonFormatter,
    LoggingSettings,
    SolveTimer,
    TimingSummary,
    get_logger,
    profile_scope,
    setup_logging,
    timed,
)


class _ListHandler(logging.Handler):

    def __init__(self):
        super().__init__()
        self.messages = []

    def emit(self, record):
        self.messages.append(record.getMessage())


@pytest.fixture
def records():
    logger = setup_logging(level=logging.DEBUG, force=True)
    handler = _ListHandler()
    logger.addHandler(handler)
    yield handler.messages
    logger.removeHandler(handler)
    setup_logging(force=True)


class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in ("KINEMPC_LOG_LEVEL", "KINEMPC_LOG_FORMAT", "KINEMPC_LOG_FILE"):
            monkeypatch.delenv(name, raising=False)
        assert LoggingSettings.from_env() == LoggingSettings()

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("KINEMPC_LOG_LEVEL", "debug")
        monkeypatch.setenv("KINEMPC_LOG_FORMAT", "JSON")
        monkeypatch.setenv("KINEMPC_LOG_FILE", str(tmp_path / "run.log"))

        settings = LoggingSettings.from_env()
        assert settings.level == logging.DEBUG
        assert settings.json_format
        assert settings.log_file == str(tmp_path / "run.log")
        assert isinstance(settings.formatter(), JsonFormatter)

    def test_unknown_level_defaults_to_info(self, monkeypatch):
        monkeypatch.setenv("KINEMPC_LOG_LEVEL", "chatty")
        assert LoggingSettings.from_env().level == logging.INFO

    def test_json_formatter_escapes_messages(self):
        record = logging.LogRecord("kinempc", logging.WARNING, __file__, 1,
                                   'status "Infeasible_Problem_Detected"', None, None)
        entry = json.loads(JsonFormatter().format(record))
        assert entry["level"] == "WARNING"
        assert entry["message"] == 'status "Infeasible_Problem_Detected"'


class TestLoggers:

    def test_child_logger_name(self):
        assert get_logger("solver").name == "kinempc.solver"
        assert get_logger().name == "kinempc"

    def test_force_replaces_own_handlers(self):
        first = setup_logging(force=True)
        count = len(first.handlers)
        second = setup_logging(force=True)
        assert second is first
        assert len(second.handlers) == count

    def test_log_file(self, tmp_path):
        path = tmp_path / "kinempc.log"
        logger = setup_logging(level=logging.INFO, log_file=str(path), force=True)
        logger.info("written to file")
        for handler in logger.handlers:
            handler.flush()
        setup_logging(force=True)

        assert "written to file" in path.read_text()


class TestProfiling:

    def test_profile_scope(self, records):
        with profile_scope("nlp solve"):
            pass
        assert any(m.startswith("nlp solve took") for m in records)

    def test_timed(self, records):
        @timed
        def build():
            return 42

        assert build() == 42
        assert any(m.startswith("build took") for m in records)


class TestSolveTimer:

    def test_empty(self):
        assert SolveTimer("cycle").summary() == TimingSummary(0.0, 0.0, 0, 0)

    def test_summary(self):
        timer = SolveTimer("cycle", budget_ms=25.0)
        for elapsed in (10.0, 30.0, 20.0):
            timer.record(elapsed)

        summary = timer.summary()
        assert summary.count == 3
        assert summary.mean_ms == pytest.approx(20.0)
        assert summary.max_ms == 30.0
        assert summary.over_budget == 1

    def test_measure(self):
        timer = SolveTimer("cycle")
        with timer.measure():
            pass
        assert len(timer) == 1
        assert timer.summary().over_budget == 0

    def test_log_summary_warns_over_budget(self, records):
        timer = SolveTimer("closed loop", budget_ms=1.0)
        timer.record(5.0)
        timer.log_summary()

        assert any(m.startswith("closed loop: 1 solves") for m in records)
        assert any("exceeded the 1 ms budget" in m for m in records)

        timer.reset()
        assert len(timer) == 0
