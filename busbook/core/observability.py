"""Observability setup for business metrics and structured logging."""

import logging

import structlog
from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

from .config import settings

# Prometheus metrics
REGISTRY = CollectorRegistry()

SEARCHES_ISSUED = Counter(
    'busbook_searches_total',
    'Total route searches sent to the backend',
    registry=REGISTRY
)

STALE_RESPONSES_DISCARDED = Counter(
    'busbook_stale_responses_discarded_total',
    'Responses dropped because a newer request of the same operation was issued',
    ['operation'],
    registry=REGISTRY
)

BACKEND_CALL_DURATION = Histogram(
    'busbook_backend_call_duration_seconds',
    'Backend data service call duration in seconds',
    ['operation'],
    registry=REGISTRY
)

BOOKINGS_SUBMITTED = Counter(
    'busbook_bookings_submitted_total',
    'Total booking submissions that reached the backend',
    registry=REGISTRY
)

BOOKINGS_CONFIRMED = Counter(
    'busbook_bookings_confirmed_total',
    'Total bookings confirmed',
    ['route_offer_id'],
    registry=REGISTRY
)

BOOKINGS_FAILED = Counter(
    'busbook_bookings_failed_total',
    'Total booking submissions rejected by the backend',
    ['code'],
    registry=REGISTRY
)

BOOKINGS_CANCELLED = Counter(
    'busbook_bookings_cancelled_total',
    'Total bookings cancelled',
    registry=REGISTRY
)

VALIDATION_REJECTIONS = Counter(
    'busbook_validation_rejections_total',
    'Submissions blocked by local validation',
    ['code'],
    registry=REGISTRY
)


def setup_structured_logging():
    """Configure structured logging with structlog."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


class MetricsCollector:
    """Collector for business metrics."""

    @staticmethod
    def record_search():
        SEARCHES_ISSUED.inc()

    @staticmethod
    def record_stale_response(operation: str):
        """Record a response dropped by the sequence guard."""
        STALE_RESPONSES_DISCARDED.labels(operation=operation).inc()

    @staticmethod
    def time_backend_call(operation: str):
        """Context manager timing one backend call."""
        return BACKEND_CALL_DURATION.labels(operation=operation).time()

    @staticmethod
    def record_submission():
        BOOKINGS_SUBMITTED.inc()

    @staticmethod
    def record_booking_confirmed(route_offer_id: str):
        BOOKINGS_CONFIRMED.labels(route_offer_id=route_offer_id).inc()

    @staticmethod
    def record_booking_failed(code: str):
        BOOKINGS_FAILED.labels(code=code).inc()

    @staticmethod
    def record_booking_cancelled():
        BOOKINGS_CANCELLED.inc()

    @staticmethod
    def record_validation_rejection(code: str):
        VALIDATION_REJECTIONS.labels(code=code).inc()


def get_prometheus_metrics():
    """Render the business metrics in the Prometheus text format."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()


class StructuredLogger:
    """Structured logger with business context."""

    def __init__(self, name_or_logger):
        if isinstance(name_or_logger, str):
            self.logger = structlog.get_logger(name_or_logger)
        else:
            self.logger = name_or_logger

    def info(self, message: str, **kwargs):
        """Log info message with context."""
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with context."""
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with context."""
        self.logger.error(message, **kwargs)

    def debug(self, message: str, **kwargs):
        """Log debug message with context."""
        self.logger.debug(message, **kwargs)

    def with_context(self, **kwargs):
        """Add context to logger."""
        return StructuredLogger(self.logger.bind(**kwargs))


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(name)
