# betledger/utils/observability.py
import logging
import contextvars
from typing import Optional

import structlog
from prometheus_client import Counter, Histogram, CollectorRegistry, generate_latest

from betledger.config import ObservabilitySettings

# Correlation ID for one CLI command / one action call
CORRELATION_ID = contextvars.ContextVar('correlation_id', default=None)


class MetricsRegistry:
    """Ledger metrics on a private registry, so tests can build as many as they like."""

    def __init__(self):
        self.registry = CollectorRegistry()

        self.unit_of_work_latency = Histogram(
            'ledger_unit_of_work_seconds',
            'Duration of one ledger contract, commit included',
            labelnames=['action'],
            buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
            registry=self.registry
        )
        self.operations = Counter(
            'ledger_operations_total',
            'Successfully committed ledger contracts',
            labelnames=['action'],
            registry=self.registry
        )
        self.failures = Counter(
            'ledger_failures_total',
            'Ledger contracts that were rolled back',
            labelnames=['action', 'error_type'],
            registry=self.registry
        )
        self.settled_return = Counter(
            'settled_return_total',
            'Sum of actual returns booked by settlements',
            registry=self.registry
        )

    def render(self) -> str:
        """Prometheus text exposition of every ledger metric."""
        return generate_latest(self.registry).decode("utf-8")


def configure_structlog(observability: ObservabilitySettings):
    """
    Console renderer for development, JSON lines for production
    (or whenever LOG_FORMAT=json).
    """
    json_output = observability.environment == 'production' or observability.log_format == 'json'

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt='iso'),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]
    if json_output:
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        processors += [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(observability.log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


class Logger:
    """structlog wrapper that tags every entry with module and correlation id."""

    def __init__(self, module_name: str):
        self.logger = structlog.get_logger(module_name)
        self.module_name = module_name

    def _context(self, fields: dict) -> dict:
        ctx = {'correlation_id': CORRELATION_ID.get(), 'module': self.module_name}
        ctx.update(fields)
        return ctx

    def log_event(self, event: str, **kwargs):
        return self.logger.info(event, **self._context(kwargs))

    def log_warning(self, event: str, **kwargs):
        """Rejected requests: the ledger was left untouched."""
        return self.logger.warning(event, **self._context(kwargs))

    def log_error(self, event: str, exc_info=None, **kwargs):
        return self.logger.error(event, exc_info=exc_info, **self._context(kwargs))


# Global metrics instance
METRICS: Optional[MetricsRegistry] = None


def initialize_observability(observability: Optional[ObservabilitySettings] = None) -> MetricsRegistry:
    """Configure structlog and install the process-wide metrics registry."""
    global METRICS
    if observability is None:
        from betledger.config import settings
        observability = settings.observability

    configure_structlog(observability)
    if METRICS is None:
        METRICS = MetricsRegistry()

    structlog.get_logger(__name__).info(
        'observability_initialized',
        environment=observability.environment,
        log_level=observability.log_level,
        metrics_enabled=observability.enable_metrics,
    )
    return METRICS


def get_metrics() -> MetricsRegistry:
    """Lazy-load metrics singleton."""
    global METRICS
    if METRICS is None:
        METRICS = MetricsRegistry()
    return METRICS
