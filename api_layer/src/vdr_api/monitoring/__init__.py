"""Monitoring package for logging, request context, and the activity trail."""

from vdr_api.monitoring.request_context import RequestContextMiddleware
from vdr_api.monitoring.request_context import get_request_context

__all__ = [
    "RequestContextMiddleware",
    "get_request_context",
]
