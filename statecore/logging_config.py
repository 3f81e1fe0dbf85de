"""
Structured logging configuration.

Provides JSON-formatted logs with a trace_id field. The dispatcher uses the
id of the event being processed as trace_id, so every line emitted while a
dispatch step runs can be correlated.

Environment Variables:
    STATECORE_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR) - default: INFO
    STATECORE_LOG_FORMAT: Log format (json, text) - default: json

Usage:
    from statecore.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__, trace_id="todos/add")
    logger.info("Handling event")
"""

import logging
import os
import sys
from typing import Optional

from pythonjsonlogger import jsonlogger


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """
    Configure root logger.

    Arguments override the environment:
    - STATECORE_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    - STATECORE_LOG_FORMAT: json, text (default: json)
    """
    log_level = (level or os.getenv("STATECORE_LOG_LEVEL", "INFO")).upper()
    log_format = (fmt or os.getenv("STATECORE_LOG_FORMAT", "json")).lower()

    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    resolved = level_map.get(log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(resolved)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(resolved)
    handler.addFilter(TraceIDFilter())

    if log_format == "json":
        formatter = jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s %(trace_id)s",
            rename_fields={
                "asctime": "timestamp",
                "name": "logger",
                "levelname": "level",
            },
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s [trace_id=%(trace_id)s]",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    logging.getLogger("prometheus_client").setLevel(logging.WARNING)


def get_logger(name: str, trace_id: Optional[str] = None) -> logging.LoggerAdapter:
    """
    Get a logger with optional trace_id for correlation.

    Args:
        name: Logger name (typically __name__)
        trace_id: Trace ID for correlating logs (typically an event id)
    """
    logger = logging.getLogger(name)
    return logging.LoggerAdapter(logger, {"trace_id": trace_id or "N/A"})


class TraceIDFilter(logging.Filter):
    """
    Logging filter that guarantees a trace_id on every record.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "trace_id"):
            record.trace_id = "N/A"  # type: ignore
        return True
