"""
Stdlib logging for the store and container layers.

Engine contracts log through structlog (see observability.py); the SQLite
store and the service container use plain ``logging`` loggers under the
``betledger`` namespace, configured here.
"""
import logging
import sys
from pathlib import Path
from typing import Optional

from pythonjsonlogger import jsonlogger

from betledger.config import ObservabilitySettings
from betledger.utils.observability import CORRELATION_ID


class CorrelationIdFilter(logging.Filter):
    """Stamp each record with the correlation id of the running command."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = CORRELATION_ID.get() or "-"
        return True


def _formatter(json_output: bool) -> logging.Formatter:
    if json_output:
        return jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(correlation_id)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    return logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(correlation_id).8s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def setup_logging(
    observability: Optional[ObservabilitySettings] = None,
    name: str = "betledger",
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure the ``betledger`` logger tree.

    Args:
        observability: Settings section; defaults to ``settings.observability``
        name: Root logger name for the package
        log_file: Optional file to mirror console output to

    Returns:
        The configured logger
    """
    if observability is None:
        from betledger.config import settings
        observability = settings.observability

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, observability.log_level.upper()))
    logger.handlers = []
    logger.propagate = False

    json_output = observability.environment == "production" or observability.log_format == "json"
    formatter = _formatter(json_output)
    correlation = CorrelationIdFilter()

    # stderr keeps command output on stdout clean
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(correlation)
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.addFilter(correlation)
        logger.addHandler(file_handler)

    return logger
