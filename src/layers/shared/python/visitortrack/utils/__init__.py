"""Utility functions and helpers."""

from visitortrack.utils.responses import success, no_content, error, validation_error, not_found
from visitortrack.utils.request import RequestContext, get_request_context, parse_json_body
from visitortrack.utils.exceptions import (
    TrackingError,
    NotFoundError,
    ValidationError,
    ConflictError,
    PersistenceError,
)

__all__ = [
    # Response helpers
    "success",
    "no_content",
    "error",
    "validation_error",
    "not_found",
    # Request
    "RequestContext",
    "get_request_context",
    "parse_json_body",
    # Exceptions
    "TrackingError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "PersistenceError",
]
