"""
Rakit Utilities
===============
"""

from rakit.utils.logger import (
    CaptureHandler,
    JsonFormatter,
    Logger,
    LogLevel,
    StreamHandler,
    TextFormatter,
    configure_logging,
    get_logger,
)

__all__ = [
    "CaptureHandler",
    "JsonFormatter",
    "Logger",
    "LogLevel",
    "StreamHandler",
    "TextFormatter",
    "configure_logging",
    "get_logger",
]
