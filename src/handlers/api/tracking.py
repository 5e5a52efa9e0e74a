"""Public tracking API handler (no authentication required).

Called by the tracking script embedded in customer sites. Event,
heartbeat and session-end calls are best effort: signals for unknown
sessions or page views are accepted and ignored.
"""

from typing import Any

import structlog
from pydantic import BaseModel as PydanticBaseModel
from pydantic import ValidationError as PydanticValidationError

from visitortrack.models.tracking import (
    HeartbeatRequest,
    LinkVisitorRequest,
    SessionEndRequest,
    TrackEventRequest,
    TrackPageViewRequest,
)
from visitortrack.services.tracking_service import (
    ActivityTrackingService,
    get_tracking_service,
)
from visitortrack.utils.exceptions import NotFoundError, TrackingError, ValidationError
from visitortrack.utils.request import get_request_context, parse_json_body
from visitortrack.utils.responses import error, no_content, not_found, success, validation_error

logger = structlog.get_logger()


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle public tracking requests.

    Routes:
        POST /track/pageview     - Record a page view (stitches the session)
        POST /track/event        - Count an interaction event
        POST /track/heartbeat    - Report time on page
        POST /track/session-end  - Close a session (sendBeacon, 204)
        POST /track/link         - Attribute a visitor to a lead/contact
    """
    try:
        http_method = event.get("httpMethod", "").upper()
        path = event.get("path", "").rstrip("/")

        if http_method != "POST":
            return error("Not found", 404)

        service = get_tracking_service()

        if path.endswith("/track/pageview"):
            return track_page_view(service, event)
        elif path.endswith("/track/event"):
            return track_event(service, event)
        elif path.endswith("/track/heartbeat"):
            return heartbeat(service, event)
        elif path.endswith("/track/session-end"):
            return end_session(service, event)
        elif path.endswith("/track/link"):
            return link_visitor(service, event)
        else:
            return error("Not found", 404)

    except ValidationError as e:
        return validation_error(e.errors)
    except NotFoundError as e:
        return not_found(e.resource_type, e.resource_id)
    except TrackingError as e:
        logger.exception("Tracking storage failure", error_code=e.error_code, error=e.message)
        return error("Internal server error", 500)
    except ValueError as e:
        return error(str(e), 400)
    except Exception as e:
        logger.exception("Tracking handler error", error=str(e))
        return error("Internal server error", 500)


def _parse_request(model: type[PydanticBaseModel], event: dict) -> Any:
    """Decode the body and validate it against a request model.

    Raises:
        ValidationError: If the body does not match the model.
        ValueError: If the body is not a JSON object.
    """
    body = parse_json_body(event)
    try:
        return model.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e) from e


def track_page_view(service: ActivityTrackingService, event: dict) -> dict:
    """Record a page view and hand back the visitor and session ids."""
    request = _parse_request(TrackPageViewRequest, event)
    result = service.track_page_view(request, get_request_context(event))
    return success(result.to_dict())


def track_event(service: ActivityTrackingService, event: dict) -> dict:
    """Count an event against a session."""
    request = _parse_request(TrackEventRequest, event)
    service.track_event(request)
    return success({"ok": True})


def heartbeat(service: ActivityTrackingService, event: dict) -> dict:
    """Store time on page for a page view."""
    request = _parse_request(HeartbeatRequest, event)
    service.heartbeat(request)
    return success({"ok": True})


def end_session(service: ActivityTrackingService, event: dict) -> dict:
    """Close a session.

    Always answers 204 so navigator.sendBeacon callers get no body.
    """
    request = _parse_request(SessionEndRequest, event)
    service.end_session(request)
    return no_content()


def link_visitor(service: ActivityTrackingService, event: dict) -> dict:
    """Attribute a visitor's sessions to a lead and/or contact."""
    request = _parse_request(LinkVisitorRequest, event)
    linked = service.link_visitor(request)
    return success({"ok": True, "linked": linked})
