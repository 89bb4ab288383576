"""
Tests for structured logging.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from respcache.logging import (
    ContextLogger,
    JSONFormatter,
    get_logger,
    get_namespace,
    get_operation,
    log_context,
    setup_logging,
)


class _ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture
def captured() -> tuple[ContextLogger, _ListHandler]:
    """Provide a context logger whose records are captured."""
    logger = get_logger("tests.logging")
    handler = _ListHandler()
    std_logger = logging.getLogger(logger.name)
    std_logger.addHandler(handler)
    std_logger.setLevel(logging.DEBUG)
    yield logger, handler
    std_logger.removeHandler(handler)


class TestLogContext:
    """Tests for scoped logging context."""

    def test_context_set_and_restored(self) -> None:
        """Test that log_context sets values only inside the block."""
        assert get_operation() is None
        with log_context(operation="get", namespace="report"):
            assert get_operation() == "get"
            assert get_namespace() == "report"
            with log_context(operation="set"):
                assert get_operation() == "set"
                assert get_namespace() == "report"
            assert get_operation() == "get"
        assert get_operation() is None
        assert get_namespace() is None


class TestContextLogger:
    """Tests for the context-aware logger."""

    def test_names_are_namespaced(self) -> None:
        """Test that loggers live under the package logger."""
        assert get_logger("foo").name == "respcache.foo"
        assert get_logger("respcache.cache").name == "respcache.cache"

    def test_fields_and_context_in_extra(
        self, captured: tuple[ContextLogger, _ListHandler]
    ) -> None:
        """Test that keyword fields and context land on the record."""
        logger, handler = captured
        with log_context(operation="get", namespace="icpProfile"):
            logger.warning("Cache read failed", key="icpProfile:a", error="boom")

        record = handler.records[-1]
        assert record.levelno == logging.WARNING
        assert record.extra == {
            "operation": "get",
            "namespace": "icpProfile",
            "key": "icpProfile:a",
            "error": "boom",
        }


class TestJSONFormatter:
    """Tests for JSON log lines."""

    def test_format(self) -> None:
        """Test the JSON layout of a record."""
        record = logging.LogRecord(
            "respcache.test", logging.INFO, __file__, 1, "Cache cleared", None, None
        )
        record.extra = {"removed": 3}

        with log_context(operation="clear_all"):
            line = JSONFormatter().format(record)

        payload = json.loads(line)
        assert payload["level"] == "INFO"
        assert payload["logger"] == "respcache.test"
        assert payload["message"] == "Cache cleared"
        assert payload["operation"] == "clear_all"
        assert payload["extra"] == {"removed": 3}

    def test_setup_logging_writes_file(self, temp_dir: Path) -> None:
        """Test that a log file receives JSON lines."""
        log_file = temp_dir / "logs" / "cache.jsonl"
        setup_logging(log_level="DEBUG", log_file=log_file, console_output=False)
        try:
            get_logger("tests.file").info("Cache store opened", db_path="x.db")
            for handler in logging.getLogger("respcache").handlers:
                handler.flush()

            lines = log_file.read_text(encoding="utf-8").strip().splitlines()
            payload = json.loads(lines[-1])
            assert payload["message"] == "Cache store opened"
            assert payload["extra"]["db_path"] == "x.db"
        finally:
            for handler in logging.getLogger("respcache").handlers:
                handler.close()
            setup_logging()
