"""
Observability Infrastructure

Structured logging with correlation tracking and Prometheus metrics for the
skill matrix API, its rating mutations, access checks and realtime feeds.
"""

import contextvars
import logging
import sys
import uuid
from typing import Any

import structlog
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram
from prometheus_client import generate_latest as _generate_latest

from .config import settings

# Context variables for correlation tracking
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)
user_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("user_id", default="")

# Prometheus metrics
REQUEST_COUNT = Counter(
    "skill_matrix_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

REQUEST_DURATION = Histogram(
    "skill_matrix_http_request_duration_seconds",
    "HTTP request duration",
    ["method", "endpoint"],
)

RATING_MUTATIONS = Counter(
    "skill_matrix_rating_mutations_total",
    "Skill rating writes",
    ["operation", "status"],
)

ACCESS_DENIALS = Counter(
    "skill_matrix_access_denials_total",
    "Mutations refused by the access evaluator",
    ["action"],
)

REALTIME_RECONNECTS = Counter(
    "skill_matrix_realtime_reconnects_total",
    "Realtime subscription retry attempts",
    ["channel_kind", "outcome"],
)

REALTIME_SUBSCRIPTIONS = Gauge(
    "skill_matrix_realtime_subscriptions",
    "Open realtime subscriptions",
)

SUPPORT_EMAILS = Counter(
    "skill_matrix_support_emails_total",
    "Contact and quote relay attempts",
    ["kind", "status"],
)


class CorrelationIdProcessor:
    """Structlog processor to add correlation ID to all log entries."""

    def __call__(
        self, logger: Any, name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        correlation_id = correlation_id_var.get("")
        user_id = user_id_var.get("")

        if correlation_id:
            event_dict["correlation_id"] = correlation_id
        if user_id:
            event_dict["user_id"] = user_id

        return event_dict


def setup_structured_logging() -> None:
    """Configure structured logging with correlation tracking."""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        CorrelationIdProcessor(),
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
    ]

    if settings.LOG_FORMAT == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(colors=settings.ENVIRONMENT == "local")
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    if settings.LOG_SQL:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
    else:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def initialize_observability() -> None:
    setup_structured_logging()


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set correlation ID for request tracking."""
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())

    correlation_id_var.set(correlation_id)
    return correlation_id


def set_user_id(user_id: str) -> None:
    """Set user ID for request tracking."""
    user_id_var.set(user_id)


def get_correlation_id() -> str:
    return correlation_id_var.get("")


def render_metrics() -> tuple[bytes, str]:
    """Return the Prometheus exposition payload and its content type."""
    return _generate_latest(), CONTENT_TYPE_LATEST
