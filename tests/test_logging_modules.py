"""
Unit tests for logging modules.

Tests cover:
1. Correlation context (ids, nesting, threads)
2. JSON formatter and structured adapter
3. Logging configuration (levels, env overrides)
4. setup_logging handlers
5. Output formatting helpers
"""

import pytest
import logging
import json
import threading

from mixlab.common.logging.correlation import (
    get_correlation_id,
    set_correlation_id,
    generate_correlation_id,
    get_track_id,
    correlation_context,
    CorrelationLogFilter,
)
from mixlab.common.logging.formatters import JSONFormatter, StructuredLogAdapter


def _record(name="mixlab.modules.analysis.tasks.mood_analysis", msg="hello", **attrs):
    record = logging.LogRecord(name, logging.INFO, "mood_analysis.py", 10, msg, None, None)
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


# =============================================================================
# Correlation Context Tests
# =============================================================================

class TestCorrelationContext:
    """Tests for correlation ID management."""

    def test_generate_correlation_id(self):
        ids = [generate_correlation_id() for _ in range(10)]

        assert all(isinstance(cid, str) and len(cid) == 8 for cid in ids)
        assert len(set(ids)) == len(ids)

    def test_set_and_get_correlation_id(self):
        set_correlation_id("test-correlation-123")
        try:
            assert get_correlation_id() == "test-correlation-123"
        finally:
            set_correlation_id(None)

    def test_context_binds_and_restores(self):
        assert get_track_id() is None

        with correlation_context(track_id="track-a") as cid:
            assert get_correlation_id() == cid
            assert get_track_id() == "track-a"

            # Nested context keeps the outer correlation id
            with correlation_context(track_id="track-b") as inner:
                assert inner == cid
                assert get_track_id() == "track-b"

            assert get_track_id() == "track-a"

        assert get_track_id() is None
        assert get_correlation_id() is None

    def test_explicit_correlation_id(self):
        with correlation_context(correlation_id="abc12345") as cid:
            assert cid == "abc12345"

    def test_threads_do_not_share_context(self):
        """
        ЧТО ПРОВЕРЯЕМ:
            A worker thread sees its own context, not the caller's
        """
        seen = {}

        def worker():
            seen["before"] = get_track_id()
            with correlation_context(track_id="worker-track"):
                seen["inside"] = get_track_id()

        with correlation_context(track_id="main-track"):
            thread = threading.Thread(target=worker)
            thread.start()
            thread.join()
            assert get_track_id() == "main-track"

        assert seen == {"before": None, "inside": "worker-track"}

    def test_filter_injects_context(self):
        record = _record()
        with correlation_context(track_id="track-a", job_id="job-1") as cid:
            assert CorrelationLogFilter().filter(record) is True

        assert record.correlation_id == cid
        assert record.track_id == "track-a"
        assert record.job_id == "job-1"


# =============================================================================
# JSON Formatter Tests
# =============================================================================

class TestJSONFormatter:
    """Tests for JSON log formatter."""

    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))

        assert entry["level"] == "INFO"
        assert entry["message"] == "hello"
        assert entry["logger"] == "mixlab.modules.analysis.tasks.mood_analysis"
        assert entry["component"] == "analysis.tasks.mood_analysis"
        assert "timestamp" in entry
        assert "path" not in entry

    @pytest.mark.parametrize("name,component", [
        ("__main__", "main"),
        ("mixlab.common.logging.logger", "common.logging.logger"),
        ("soundfile", "soundfile"),
    ])
    def test_component_extraction(self, name, component):
        assert JSONFormatter._extract_component(name) == component

    def test_context_and_data(self):
        record = _record(correlation_id="cid-1", track_id="track-a", structured_data={"frames": 1024})
        entry = json.loads(JSONFormatter(extra_fields={"service": "mixlab"}).format(record))

        assert entry["correlation_id"] == "cid-1"
        assert entry["track_id"] == "track-a"
        assert entry["data"] == {"frames": 1024}
        assert entry["service"] == "mixlab"

    def test_exception_info(self):
        try:
            raise ValueError("bad frame")
        except ValueError:
            import sys
            record = _record(exc_info=sys.exc_info())

        entry = json.loads(JSONFormatter().format(record))
        assert entry["exception"]["type"] == "ValueError"
        assert entry["exception"]["message"] == "bad frame"

    def test_non_serializable_data_is_stringified(self):
        record = _record(structured_data={"path": object()})
        entry = json.loads(JSONFormatter().format(record))
        assert isinstance(entry["data"]["path"], str)


# =============================================================================
# Structured Adapter Tests
# =============================================================================

class TestStructuredLogAdapter:

    def test_data_kwarg_becomes_structured_data(self, caplog):
        logger = StructuredLogAdapter(logging.getLogger("mixlab.test.adapter"))
        logger.set_track_id("track-9")

        with caplog.at_level(logging.INFO, logger="mixlab.test.adapter"):
            logger.info("Analyzing", data={"stage": "spectral"})

        record = caplog.records[-1]
        assert record.structured_data == {"stage": "spectral"}
        assert record.track_id == "track-9"

    def test_clear_context(self, caplog):
        logger = StructuredLogAdapter(logging.getLogger("mixlab.test.adapter"))
        logger.set_job_id("job-1")
        logger.clear_context()

        with caplog.at_level(logging.WARNING, logger="mixlab.test.adapter"):
            logger.warning("plain")

        assert getattr(caplog.records[-1], "job_id", None) is None


# =============================================================================
# Logging Configuration Tests
# =============================================================================

class TestLoggingConfig:

    @pytest.fixture
    def config_file(self, tmp_path):
        path = tmp_path / "logging-config.yaml"
        path.write_text(
            "default_level: WARNING\n"
            "components:\n"
            "  cli:\n"
            "    level: debug\n"
            "    json_format: true\n"
            "  batch: ERROR\n"
            "libraries:\n"
            "  librosa: warning\n"
            "modules:\n"
            "  mixlab.core.errors: debug\n"
        )
        return str(path)

    def test_levels(self, config_file, monkeypatch):
        from mixlab.common.logging.logging_config import LoggingConfig

        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.delenv("LOG_LEVEL_CLI", raising=False)
        config = LoggingConfig(config_file)

        assert config.get_level("cli") == "DEBUG"
        assert config.get_level("batch") == "ERROR"
        assert config.get_level("unknown") == "WARNING"
        assert config.get_module_level("mixlab.core.errors") == "DEBUG"
        assert config.get_module_level("mixlab.main") is None
        assert config.get_library_levels() == {"librosa": "WARNING"}

    def test_env_overrides(self, config_file, monkeypatch):
        from mixlab.common.logging.logging_config import LoggingConfig

        monkeypatch.setenv("LOG_LEVEL_CLI", "error")
        monkeypatch.setenv("LOG_JSON_FORMAT_CLI", "no")
        config = LoggingConfig(config_file)

        assert config.get_level("cli") == "ERROR"
        assert config.get_json_format("cli") is False

    def test_json_format_from_file(self, config_file, monkeypatch):
        from mixlab.common.logging.logging_config import LoggingConfig

        monkeypatch.delenv("LOG_JSON_FORMAT_CLI", raising=False)
        config = LoggingConfig(config_file)

        assert config.get_json_format("cli") is True
        assert config.get_json_format("batch") is False

    def test_missing_file_defaults(self, tmp_path, monkeypatch):
        from mixlab.common.logging.logging_config import LoggingConfig

        monkeypatch.delenv("LOG_LEVEL", raising=False)
        config = LoggingConfig(str(tmp_path / "missing.yaml"))
        assert config.get_level() == "INFO"


# =============================================================================
# setup_logging Tests
# =============================================================================

class TestSetupLogging:

    @pytest.fixture(autouse=True)
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_file_handler_writes_json(self, tmp_path):
        from mixlab.common.logging import setup_logging, get_logger

        log_file = tmp_path / "logs" / "mixlab.log"
        setup_logging(level="INFO", log_file=str(log_file), json_format=False, force=True)

        with correlation_context(track_id="track-a"):
            get_logger("mixlab.test.setup").info("written", data={"n": 1})
        for handler in logging.getLogger().handlers:
            handler.flush()

        entry = json.loads(log_file.read_text(encoding="utf-8").strip().splitlines()[-1])
        assert entry["message"] == "written"
        assert entry["track_id"] == "track-a"
        assert entry["data"] == {"n": 1}

    def test_level_applied(self):
        from mixlab.common.logging import setup_logging

        setup_logging(level="ERROR", force=True)
        root = logging.getLogger()

        assert root.level == logging.ERROR
        assert len(root.handlers) == 1


# =============================================================================
# Format Helper Tests
# =============================================================================

class TestFormatHelpers:

    def test_format_time(self):
        from mixlab.common.logging import format_time, format_time_range

        assert format_time(65.5) == "01:05"
        assert format_time(3665.5) == "01:01:05"
        assert format_time(3665.5, include_hours=False) == "61:05"
        assert format_time(-5) == "-00:05"
        assert format_time_range(0, 90) == "00:00 - 01:30"

    def test_format_values(self):
        from mixlab.common.logging import format_bpm, format_confidence

        assert format_bpm(127.96) == "128.0 BPM"
        assert format_confidence(0.85) == "85% (HIGH)"
        assert format_confidence(0.6) == "60% (MED)"
        assert format_confidence(0.2) == "20% (LOW)"
