"""
Unit tests for observability module (logging, correlation IDs).
"""

import json
import logging
import threading

import pytest

from skin_api.observability import (
    setup_logging, get_logger, get_correlation_id,
    set_correlation_id, correlation_scope, accept_correlation_id
)


@pytest.mark.usefixtures("restore_root_logging")
class TestLogging:
    """Test structured logging functionality."""

    def test_setup_logging_creates_log_directory(self, tmp_path):
        """Test that setup_logging creates log directory if it doesn't exist."""
        log_dir = tmp_path / "test_logs"
        assert not log_dir.exists()

        setup_logging(log_level="INFO", log_format="json", log_dir=str(log_dir))

        assert log_dir.exists()

    def test_console_only_without_log_dir(self):
        setup_logging(log_level="INFO", log_format="text", log_dir=None)

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.StreamHandler)

    def test_get_logger_returns_logger(self):
        """Test that get_logger returns a valid logger instance."""
        logger = get_logger("test_component")

        assert logger is not None
        assert logger.name == "test_component"

    def test_json_log_format(self, tmp_path):
        """Test that JSON log format produces valid JSON with request metadata."""
        log_dir = tmp_path / "logs"
        setup_logging(log_level="INFO", log_format="json", log_dir=str(log_dir))

        logger = get_logger("test")
        snapshot = {"query": {"x": ["1"]}, "url": "http://localhost/x?x=1", "params": {}}
        with correlation_scope("req_json"):
            logger.info("Test JSON logging", extra={"request": snapshot})

        with open(log_dir / "app.log") as f:
            entries = [json.loads(line) for line in f]

        entry = entries[-1]
        assert entry["message"] == "Test JSON logging"
        assert entry["correlation_id"] == "req_json"
        assert entry["component"] == "test"
        assert entry["level"] == "INFO"
        assert list(entry["request"]) == ["url", "params", "query"]
        assert entry["request"]["url"] == "http://localhost/x?x=1"
        assert entry["timestamp"].endswith("Z")

    def test_text_format_renders_request_snapshot(self, tmp_path):
        log_dir = tmp_path / "logs"
        setup_logging(log_level="INFO", log_format="text", log_dir=str(log_dir))

        snapshot = {"url": "http://localhost/items/7", "params": {"item_id": "7"}, "query": {}}
        get_logger("test").info("fetching 7", extra={"request": snapshot})

        line = (log_dir / "app.log").read_text().splitlines()[-1]
        assert line.endswith(
            "fetching 7 [url=http://localhost/items/7 params={'item_id': '7'} query={}]"
        )

    def test_errors_go_to_error_log(self, tmp_path):
        log_dir = tmp_path / "logs"
        setup_logging(log_level="INFO", log_format="text", log_dir=str(log_dir))

        logger = get_logger("test")
        logger.info("routine")
        logger.error("broken")

        error_log = (log_dir / "error.log").read_text()
        assert "broken" in error_log
        assert "routine" not in error_log

    def test_explicit_correlation_id_is_kept(self, tmp_path):
        log_dir = tmp_path / "logs"
        setup_logging(log_level="INFO", log_format="json", log_dir=str(log_dir))

        get_logger("test").info("from a worker", extra={"correlation_id": "req_explicit"})

        with open(log_dir / "app.log") as f:
            entry = [json.loads(line) for line in f][-1]
        assert entry["correlation_id"] == "req_explicit"

    def test_library_log_level(self):
        setup_logging(log_level="DEBUG", log_format="text", library_log_level="ERROR")

        assert logging.getLogger("werkzeug").level == logging.ERROR
        assert logging.getLogger("flask_cors").level == logging.ERROR
        assert logging.getLogger().level == logging.DEBUG


class TestCorrelationID:
    """Test correlation ID context management."""

    def test_set_and_get_correlation_id(self):
        """Test setting and retrieving correlation ID."""
        set_correlation_id("test_correlation_123")
        assert get_correlation_id() == "test_correlation_123"

    def test_correlation_id_with_context_manager(self):
        """Test correlation ID with context manager."""
        set_correlation_id("outside_id")

        with correlation_scope("inside_id") as scope:
            assert get_correlation_id() == "inside_id"
            assert scope.correlation_id == "inside_id"

        assert get_correlation_id() == "outside_id"

    def test_generated_correlation_id(self):
        with correlation_scope() as scope:
            assert scope.correlation_id.startswith("req_")
            assert scope.elapsed_ms >= 0

    def test_correlation_id_is_thread_local(self):
        """Test that correlation IDs are isolated per thread."""
        ids = {}

        def set_and_get(thread_id):
            set_correlation_id(f"thread_{thread_id}")
            ids[thread_id] = get_correlation_id()

        threads = [threading.Thread(target=set_and_get, args=(i,)) for i in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert ids == {i: f"thread_{i}" for i in range(5)}

    @pytest.mark.parametrize("header", [
        "",
        "x" * 129,
        "req 1",
        "req\nforged log line",
    ])
    def test_unsafe_header_value_is_replaced(self, header):
        assert accept_correlation_id(header) is None
        with correlation_scope(header) as scope:
            assert scope.correlation_id.startswith("req_")
            assert scope.correlation_id != header

    def test_safe_header_value_is_kept(self):
        assert accept_correlation_id("trace-01:ab.CD_9") == "trace-01:ab.CD_9"
