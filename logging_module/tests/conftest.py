"""Pytest configuration and fixtures for logging_module tests."""

import logging

import pytest

from logging_module.config import LoggingConfig


@pytest.fixture
def test_config(tmp_path):
    """Create test configuration writing JSON logs to a temp directory."""
    return LoggingConfig(
        log_level="DEBUG",
        log_path=str(tmp_path / "logs"),
        log_file_max_bytes=1024 * 1024,
        log_file_backup_count=2,
    )


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Restore root logger handlers and level after each test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
