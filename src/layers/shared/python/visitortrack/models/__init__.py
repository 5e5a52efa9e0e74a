"""Pydantic models for visitor tracking entities."""

from visitortrack.models.base import BaseModel, TimestampMixin
from visitortrack.models.visitor import Visitor
from visitortrack.models.session import Session, OpenSession
from visitortrack.models.page_view import PageView
from visitortrack.models.tracking import (
    GeoInfo,
    TrackPageViewRequest,
    TrackEventRequest,
    HeartbeatRequest,
    SessionEndRequest,
    LinkVisitorRequest,
    FORM_SUBMISSION_EVENT,
)
from visitortrack.models.reports import (
    TopPage,
    VisitorSummary,
    TimelinePage,
    TimelineEntry,
    ActiveVisitor,
    SessionDetail,
)

__all__ = [
    # Base
    "BaseModel",
    "TimestampMixin",
    # Entities
    "Visitor",
    "Session",
    "OpenSession",
    "PageView",
    # Tracking requests
    "GeoInfo",
    "TrackPageViewRequest",
    "TrackEventRequest",
    "HeartbeatRequest",
    "SessionEndRequest",
    "LinkVisitorRequest",
    "FORM_SUBMISSION_EVENT",
    # Reports
    "TopPage",
    "VisitorSummary",
    "TimelinePage",
    "TimelineEntry",
    "ActiveVisitor",
    "SessionDetail",
]
