"""Business logic services."""

from visitortrack.services.visitor_resolver import VisitorResolver
from visitortrack.services.session_stitcher import SessionStitcher
from visitortrack.services.event_recorder import EventRecorder
from visitortrack.services.session_closer import SessionCloser
from visitortrack.services.entity_linker import EntityLinker
from visitortrack.services.activity_reports import ActivityReports
from visitortrack.services.tracking_service import (
    ActivityTrackingService,
    PageViewResult,
    get_tracking_service,
)

__all__ = [
    "VisitorResolver",
    "SessionStitcher",
    "EventRecorder",
    "SessionCloser",
    "EntityLinker",
    "ActivityReports",
    "ActivityTrackingService",
    "PageViewResult",
    "get_tracking_service",
]
