"""Middleware package."""

from school_approvals.api.middleware.logging import LoggingMiddleware
from school_approvals.api.middleware.request_id import RequestIdMiddleware

__all__ = [
    "LoggingMiddleware",
    "RequestIdMiddleware",
]
