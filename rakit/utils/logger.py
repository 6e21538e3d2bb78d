"""
Rakit Logger
============

Structured logging on top of the standard ``logging`` machinery.

Every call takes keyword context that travels with the record
(``record.context``) and is rendered by the formatters: ``key=value``
pairs for text, a nested object for JSON. Loggers built here are not
attached to the global ``logging`` hierarchy, so two apps never share
handlers by accident.

Example:
    logger = get_logger("rakit.blog")

    logger.info("Route matched", method="GET", path="/posts/1")
    logger.error("Unhandled error", exception=e, path="/posts/1")

    request_logger = logger.with_context(request_id="abc123")
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from enum import IntEnum
from typing import Any, Dict, List, Optional, TextIO

import orjson


class LogLevel(IntEnum):
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    return getattr(record, "context", None) or {}


class TextFormatter(logging.Formatter):
    """
    One line per record, context appended as ``key=value``.

    Example output:
        2024-01-15 10:30:45 [INFO] Route matched method=GET path=/users/1
    """

    _colors = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    _reset = "\033[0m"

    def __init__(
        self,
        fmt: str = "%(asctime)s [%(levelname)s] %(message)s",
        datefmt: str = "%Y-%m-%d %H:%M:%S",
        colors: bool = True,
    ) -> None:
        super().__init__(fmt, datefmt)
        self.line_format = fmt
        # Colour codes only make sense on a terminal
        self.colors = colors and sys.stderr.isatty()

    def formatMessage(self, record: logging.LogRecord) -> str:
        values = dict(record.__dict__)

        context = record_context(record)
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in context.items())
            values["message"] = f"{record.message} {pairs}"

        if self.colors:
            color = self._colors.get(record.levelno, "")
            values["levelname"] = f"{color}{record.levelname}{self._reset}"

        return self.line_format % values


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = record_context(record)
        if context:
            data["context"] = context

        if record.exc_info and record.exc_info[1] is not None:
            error = record.exc_info[1]
            data["exception"] = {
                "type": type(error).__name__,
                "message": str(error),
                "traceback": self.formatException(record.exc_info),
            }

        return orjson.dumps(data, default=str).decode("utf-8")


class StreamHandler(logging.StreamHandler):
    """
    Writes to ``stream``, or to whatever ``sys.stderr`` is at emit time.

    Looking stderr up late keeps long-lived loggers working when the
    process swaps its streams (test runners, daemonizers).
    """

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        formatter: Optional[logging.Formatter] = None,
        level: int = LogLevel.DEBUG,
    ) -> None:
        super().__init__(stream)
        self._follow_stderr = stream is None
        self.setLevel(level)
        self.setFormatter(formatter or TextFormatter())

    def emit(self, record: logging.LogRecord) -> None:
        if self._follow_stderr:
            self.stream = sys.stderr
        super().emit(record)


class CaptureHandler(logging.Handler):
    """Keeps records in memory; used by tests and debug tooling."""

    def __init__(self, level: int = LogLevel.DEBUG) -> None:
        super().__init__(level)
        self.records: List[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    def messages(self, level: Optional[int] = None) -> List[str]:
        return [
            record.getMessage()
            for record in self.records
            if level is None or record.levelno == level
        ]


class Logger:
    """
    Structured logger.

    Wraps a standalone ``logging.Logger``; ``with_context`` returns a
    view that shares the handlers and adds context to every record.
    """

    def __init__(
        self,
        name: str = "rakit",
        level: int = LogLevel.DEBUG,
        handlers: Optional[List[logging.Handler]] = None,
    ) -> None:
        self.name = name
        self._logger = logging.Logger(name, level)
        self._context: Dict[str, Any] = {}

        for handler in handlers or []:
            self._logger.addHandler(handler)

    @property
    def level(self) -> int:
        return self._logger.level

    def set_level(self, level: int) -> None:
        self._logger.setLevel(level)

    @property
    def handlers(self) -> List[logging.Handler]:
        return list(self._logger.handlers)

    def add_handler(self, handler: logging.Handler) -> "Logger":
        self._logger.addHandler(handler)
        return self

    def remove_handler(self, handler: logging.Handler) -> "Logger":
        self._logger.removeHandler(handler)
        return self

    def with_context(self, **context: Any) -> "Logger":
        view = Logger.__new__(Logger)
        view.name = self.name
        view._logger = self._logger
        view._context = {**self._context, **context}
        return view

    def log(
        self,
        level: int,
        message: str,
        exception: Optional[BaseException] = None,
        **context: Any,
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return

        exc_info = None
        if exception is not None:
            exc_info = (type(exception), exception, exception.__traceback__)

        self._logger.log(
            level,
            message,
            exc_info=exc_info,
            extra={"context": {**self._context, **context}},
        )

    def debug(self, message: str, **context: Any) -> None:
        self.log(LogLevel.DEBUG, message, **context)

    def info(self, message: str, **context: Any) -> None:
        self.log(LogLevel.INFO, message, **context)

    def warning(self, message: str, **context: Any) -> None:
        self.log(LogLevel.WARNING, message, **context)

    def error(self, message: str, exception: Optional[BaseException] = None, **context: Any) -> None:
        self.log(LogLevel.ERROR, message, exception, **context)

    def critical(self, message: str, exception: Optional[BaseException] = None, **context: Any) -> None:
        self.log(LogLevel.CRITICAL, message, exception, **context)

    def exception(self, message: str, **context: Any) -> None:
        """Error record for the exception currently being handled."""
        self.log(LogLevel.ERROR, message, sys.exc_info()[1], **context)

    def __repr__(self) -> str:
        return f"<Logger {self.name} {logging.getLevelName(self.level)}>"


_loggers: Dict[str, Logger] = {}


def get_logger(name: str = "rakit", level: Optional[int] = None) -> Logger:
    """
    Shared logger for ``name``, writing text to stderr.

    ``level`` only applies when the logger is first created.
    """
    if name not in _loggers:
        _loggers[name] = Logger(
            name,
            level if level is not None else LogLevel.INFO,
            handlers=[StreamHandler()],
        )
    return _loggers[name]


def configure_logging(
    name: str = "rakit",
    level: int = LogLevel.INFO,
    format: str = "text",
    colors: bool = True,
    stream: Optional[TextIO] = None,
) -> Logger:
    """
    Replace the shared logger for ``name``.

    Args:
        name: Logger name
        level: Minimum level
        format: "text" or "json"
        colors: Colour level names on a terminal
        stream: Output stream (stderr by default)
    """
    formatter: logging.Formatter = (
        JsonFormatter() if format == "json" else TextFormatter(colors=colors)
    )
    logger = Logger(
        name,
        level,
        handlers=[StreamHandler(stream=stream, formatter=formatter, level=level)],
    )
    _loggers[name] = logger
    return logger
