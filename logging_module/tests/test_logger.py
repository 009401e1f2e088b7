"""Unit tests for logging_module.logger."""

import json
import logging
import sys
from logging.handlers import RotatingFileHandler

from logging_module.config import LoggingConfig
from logging_module.logger import JsonFormatter, setup_logging


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_console_only(self):
        root = setup_logging(LoggingConfig(log_level="WARNING"))

        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0], logging.StreamHandler)

    def test_file_handler_writes_json(self, test_config):
        root = setup_logging(test_config)

        file_handlers = [h for h in root.handlers if isinstance(h, RotatingFileHandler)]
        assert len(file_handlers) == 1

        logging.getLogger("stream_engine.test").info(
            "Stream demo started", extra={"stream_id": "demo"}
        )
        file_handlers[0].flush()

        with open(file_handlers[0].baseFilename) as f:
            record = json.loads(f.readlines()[-1])

        assert record["message"] == "Stream demo started"
        assert record["level"] == "INFO"
        assert record["logger"] == "stream_engine.test"
        assert record["stream_id"] == "demo"


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def _record(self, **kwargs) -> logging.LogRecord:
        return logging.LogRecord(
            name="stream_engine.supervisor",
            level=logging.ERROR,
            pathname=__file__,
            lineno=10,
            msg="Stream %s error",
            args=("demo",),
            exc_info=kwargs.get("exc_info"),
        )

    def test_basic_fields(self):
        data = json.loads(JsonFormatter().format(self._record()))

        assert data["message"] == "Stream demo error"
        assert data["level"] == "ERROR"
        assert data["logger"] == "stream_engine.supervisor"
        assert "timestamp" in data

    def test_exception_info(self):
        try:
            raise RuntimeError("ffmpeg exited")
        except RuntimeError:
            record = self._record(exc_info=sys.exc_info())

        data = json.loads(JsonFormatter().format(record))

        assert "RuntimeError: ffmpeg exited" in data["exception"]
