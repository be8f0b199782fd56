"""
Structured logging setup.

Configures structlog once per process. Request-scoped values (request_id,
method, path) are bound into structlog contextvars by the request ID
middleware and merged into every event logged while the request runs.

Usage:
    import structlog

    logger = structlog.get_logger(__name__)
    logger.info("Role grant resolved", user_id=str(user_id), state="APROBADO")
"""

import logging
import sys
from typing import Any

import structlog

from school_approvals.core.config import Settings


def add_service_info(settings: Settings):
    """Build a processor stamping app name and environment on each event."""

    def processor(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", settings.app_name)
        event_dict.setdefault("environment", settings.environment)
        return event_dict

    return processor


def configure_logging(settings: Settings) -> None:
    """Configure structlog and the stdlib root logger it writes through."""
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            add_service_info(settings),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
