"""Request context helpers for tracking endpoints."""

import base64
import json
from dataclasses import dataclass
from typing import Any

import structlog

logger = structlog.get_logger()

MAX_USER_AGENT_LENGTH = 500


@dataclass
class RequestContext:
    """Per-request client information extracted from an API Gateway event.

    Passed explicitly into tracking operations instead of living in
    module-level state.
    """

    ip_address: str | None = None
    user_agent: str | None = None
    referrer: str | None = None


def _header(headers: dict, name: str) -> str | None:
    """Case-insensitive header lookup."""
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    return value


def get_client_ip(event: dict) -> str | None:
    """Extract client IP from API Gateway event.

    Handles X-Forwarded-For header for requests behind CloudFront/ALB.

    Args:
        event: API Gateway event dict.

    Returns:
        Client IP address string, or None if unavailable.
    """
    headers = event.get("headers", {}) or {}
    request_context = event.get("requestContext", {}) or {}
    identity = request_context.get("identity", {}) or {}

    # Take the first IP (original client)
    forwarded_for = _header(headers, "X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip() or None

    return identity.get("sourceIp")


def get_request_context(event: dict) -> RequestContext:
    """Build a RequestContext from an API Gateway event.

    Args:
        event: API Gateway event dict.

    Returns:
        RequestContext for the calling client.
    """
    headers = event.get("headers", {}) or {}
    user_agent = _header(headers, "User-Agent")

    return RequestContext(
        ip_address=get_client_ip(event),
        user_agent=user_agent[:MAX_USER_AGENT_LENGTH] if user_agent else None,
        referrer=_header(headers, "Referer"),
    )


def parse_json_body(event: dict) -> dict[str, Any]:
    """Decode the request body as a JSON object.

    Browsers deliver session-end signals via navigator.sendBeacon, which
    posts text/plain and may arrive base64-encoded through API Gateway,
    so the Content-Type header is ignored.

    Raises:
        json.JSONDecodeError: If the body is not valid JSON.
        ValueError: If the body is JSON but not an object.
    """
    raw = event.get("body") or "{}"
    if event.get("isBase64Encoded"):
        raw = base64.b64decode(raw).decode("utf-8")

    body = json.loads(raw)
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return body
