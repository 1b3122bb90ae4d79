# Utils module
from .logging import setup_logging
from .observability import CORRELATION_ID, Logger, MetricsRegistry, get_metrics, initialize_observability

__all__ = [
    "setup_logging",
    "CORRELATION_ID",
    "Logger",
    "MetricsRegistry",
    "get_metrics",
    "initialize_observability",
]
