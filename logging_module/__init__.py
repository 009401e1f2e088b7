"""Logging Module for the stream engine.

Main Components:
    - setup_logging: Installs console and rotating JSON file handlers
    - JsonFormatter: One JSON object per log record
    - LoggingConfig: Configuration management

Example:
    >>> from logging_module import LoggingConfig, setup_logging
    >>> setup_logging(LoggingConfig(log_level="DEBUG"))
"""

from logging_module.config import LoggingConfig
from logging_module.logger import JsonFormatter, setup_logging

__version__ = "1.0.0"
__all__ = ["setup_logging", "LoggingConfig", "JsonFormatter"]
