"""Session sweeper Lambda.

Scheduled every few minutes. Closes sessions whose visitors went silent
for longer than the inactivity window, ending each at its last activity,
so dashboards don't have to infer closure on every read.
"""

from typing import Any

import structlog

from visitortrack.services.tracking_service import get_tracking_service

logger = structlog.get_logger()


def handler(event: dict[str, Any], context: Any) -> dict:
    """Close stale open sessions.

    Triggered by an EventBridge rate schedule. The event may carry a
    "limit" to override SWEEP_BATCH_LIMIT for a single run.
    """
    logger.info("Session sweeper started")

    service = get_tracking_service()
    limit = (event or {}).get("limit") or service.settings.sweep_batch_limit

    closed = service.close_stale_sessions(limit=int(limit))

    logger.info(
        "Session sweeper finished",
        closed=closed,
        window_minutes=service.settings.session_timeout_minutes,
    )
    return {
        "status": "success",
        "closed": closed,
    }
