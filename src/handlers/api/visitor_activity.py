"""Visitor activity API handler (read side)."""

from typing import Any

import structlog

from visitortrack.services.tracking_service import (
    ActivityTrackingService,
    get_tracking_service,
)
from visitortrack.utils.exceptions import NotFoundError, TrackingError, ValidationError
from visitortrack.utils.responses import error, not_found, success, validation_error

logger = structlog.get_logger()

MAX_ACTIVE_MINUTES = 24 * 60


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle visitor activity requests.

    Routes:
        GET /track/visitor-summary/{visitor_id}
        GET /track/timeline/{entity_type}/{entity_id}
        GET /track/sessions/{session_id}
        GET /track/active-visitors?minutes=N
    """
    try:
        http_method = event.get("httpMethod", "").upper()
        path = event.get("path", "")
        path_params = event.get("pathParameters", {}) or {}
        query_params = event.get("queryStringParameters", {}) or {}

        if http_method != "GET":
            return error("Method not allowed", 405)

        service = get_tracking_service()

        if "/track/visitor-summary/" in path:
            return get_visitor_summary(service, path_params.get("visitor_id"))
        elif "/track/timeline/" in path:
            return get_timeline(
                service,
                path_params.get("entity_type"),
                path_params.get("entity_id"),
            )
        elif "/track/sessions/" in path:
            return get_session(service, path_params.get("session_id"))
        elif path.rstrip("/").endswith("/track/active-visitors"):
            return list_active_visitors(service, query_params)
        else:
            return error("Not found", 404)

    except ValidationError as e:
        return validation_error(e.errors)
    except NotFoundError as e:
        return not_found(e.resource_type, e.resource_id)
    except TrackingError as e:
        logger.exception("Visitor activity storage failure", error_code=e.error_code, error=e.message)
        return error("Internal server error", 500)
    except ValueError as e:
        return error(str(e), 400)
    except Exception as e:
        logger.exception("Visitor activity handler error", error=str(e))
        return error("Internal server error", 500)


def get_visitor_summary(service: ActivityTrackingService, visitor_id: str | None) -> dict:
    """Aggregate activity for one visitor."""
    if not visitor_id:
        return error("visitor_id is required", 400)
    return success(service.visitor_summary(visitor_id))


def get_timeline(
    service: ActivityTrackingService,
    entity_type: str | None,
    entity_id: str | None,
) -> dict:
    """List sessions attributed to a lead or contact."""
    if not entity_type or not entity_id:
        return error("entity_type and entity_id are required", 400)
    timeline = service.timeline(entity_type, entity_id)
    return success([entry.model_dump(mode="json") for entry in timeline])


def get_session(service: ActivityTrackingService, session_id: str | None) -> dict:
    """Get one session with its pages."""
    if not session_id:
        return error("session_id is required", 400)
    return success(service.session_detail(session_id))


def list_active_visitors(service: ActivityTrackingService, query_params: dict) -> dict:
    """List visitors active within the last N minutes.

    Query params:
        minutes: Look-back window (default from ACTIVE_VISITOR_MINUTES)
    """
    minutes = None
    if query_params.get("minutes"):
        minutes = int(query_params["minutes"])
        if minutes <= 0 or minutes > MAX_ACTIVE_MINUTES:
            return error(f"minutes must be between 1 and {MAX_ACTIVE_MINUTES}", 400)

    visitors = service.active_visitors(minutes)
    return success({
        "visitors": [visitor.model_dump(mode="json") for visitor in visitors],
        "total_active": len(visitors),
    })
