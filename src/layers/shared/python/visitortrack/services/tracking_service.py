"""Activity tracking service.

Composes visitor resolution, session stitching, event recording, session
closing, entity linking and reporting behind the operations exposed by the
tracking API. All components share one set of repositories and one
per-visitor lock registry.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from visitortrack.models.base import utc_now
from visitortrack.models.reports import (
    ActiveVisitor,
    SessionDetail,
    TimelineEntry,
    VisitorSummary,
)
from visitortrack.models.tracking import (
    HeartbeatRequest,
    LinkVisitorRequest,
    SessionEndRequest,
    TrackEventRequest,
    TrackPageViewRequest,
)
from visitortrack.repositories.page_view import PageViewRepository
from visitortrack.repositories.session import OpenSessionRepository, SessionRepository
from visitortrack.repositories.visitor import VisitorRepository
from visitortrack.services.activity_reports import ActivityReports
from visitortrack.services.entity_linker import EntityLinker
from visitortrack.services.event_recorder import EventRecorder
from visitortrack.services.session_closer import SessionCloser
from visitortrack.services.session_stitcher import SessionStitcher
from visitortrack.services.visitor_resolver import VisitorResolver
from visitortrack.settings import TrackingSettings
from visitortrack.utils.locks import KeyedLock
from visitortrack.utils.request import RequestContext


@dataclass
class PageViewResult:
    """Identifiers handed back to the tracking script after a page view."""

    visitor_id: str
    session_id: str
    page_view_id: str

    def to_dict(self) -> dict[str, str]:
        return {
            "visitor_id": self.visitor_id,
            "session_id": self.session_id,
            "page_view_id": self.page_view_id,
        }


class ActivityTrackingService:
    """Entry point for all tracking and reporting operations."""

    def __init__(
        self,
        table_name: str | None = None,
        settings: TrackingSettings | None = None,
        clock: Callable[[], datetime] | None = None,
        locks: KeyedLock | None = None,
    ):
        """Initialize the tracking service.

        Args:
            table_name: DynamoDB table name (defaults to TABLE_NAME env var).
            settings: Tunables (defaults to values from the environment).
            clock: Returns the current time; injectable for tests.
            locks: Per-visitor lock registry.
        """
        self.settings = settings or TrackingSettings.from_env()
        self.clock = clock or utc_now

        self.visitor_repo = VisitorRepository(table_name)
        self.session_repo = SessionRepository(table_name)
        self.page_view_repo = PageViewRepository(table_name)
        self.pointer_repo = OpenSessionRepository(table_name)

        window = self.settings.session_window
        self.resolver = VisitorResolver(self.visitor_repo)
        self.closer = SessionCloser(
            self.session_repo, self.page_view_repo, self.pointer_repo, window=window
        )
        self.stitcher = SessionStitcher(
            self.session_repo,
            self.pointer_repo,
            window=window,
            reopen_closed=self.settings.reopen_closed_sessions,
            locks=locks,
            closer=self.closer,
        )
        self.recorder = EventRecorder(self.session_repo, self.page_view_repo, self.pointer_repo)
        self.linker = EntityLinker(self.session_repo)
        self.reports = ActivityReports(
            self.visitor_repo,
            self.session_repo,
            self.page_view_repo,
            self.pointer_repo,
            window=window,
        )

    # -------------------------------------------------------------------------
    # Tracking (write side)
    # -------------------------------------------------------------------------

    def track_page_view(
        self, request: TrackPageViewRequest, context: RequestContext | None = None
    ) -> PageViewResult:
        """Resolve the visitor, stitch the session and record the page view.

        Device details missing from the body are taken from the request
        context (User-Agent header, client IP, Referer).
        """
        context = context or RequestContext()
        now = self.clock()

        visitor, _ = self.resolver.resolve(
            request.visitor_id,
            user_agent=request.user_agent or context.user_agent,
            ip_address=request.ip or context.ip_address,
            referrer_url=request.referrer or context.referrer,
            first_page_url=request.page_url,
            geo=request.geo,
        )
        session = self.stitcher.stitch(
            visitor.visitor_id,
            now,
            session_hint=request.session_id,
            lead_id=request.lead_id,
            contact_id=request.contact_id,
            utm_source=request.utm_source,
            utm_medium=request.utm_medium,
            utm_campaign=request.utm_campaign,
        )
        page_view = self.recorder.record_page_view(
            session, request.page_url, now, page_title=request.page_title
        )
        return PageViewResult(
            visitor_id=visitor.visitor_id,
            session_id=session.session_id,
            page_view_id=page_view.page_view_id,
        )

    def track_event(self, request: TrackEventRequest) -> bool:
        """Count an interaction event; unknown sessions are ignored."""
        return self.recorder.record_event(
            request.session_id,
            request.event_type,
            self.clock(),
        )

    def heartbeat(self, request: HeartbeatRequest) -> bool:
        """Record time on page; unknown page views are ignored."""
        return self.recorder.update_page_time(
            request.session_id,
            request.page_view_id,
            request.time_on_page_seconds,
            self.clock(),
        )

    def end_session(self, request: SessionEndRequest) -> bool:
        """Close a session; unknown sessions are ignored."""
        closed = self.closer.close(
            request.session_id,
            self.clock(),
            time_on_page=request.time_on_page_seconds,
        )
        return closed is not None

    def link_visitor(self, request: LinkVisitorRequest) -> int:
        """Attribute a visitor's sessions to a lead and/or contact."""
        return self.linker.link(
            request.visitor_id,
            lead_id=request.lead_id,
            contact_id=request.contact_id,
        )

    def close_stale_sessions(self, limit: int | None = None) -> int:
        """Close sessions that have been silent longer than the window."""
        return self.closer.close_stale(
            self.clock(), limit=limit or self.settings.sweep_batch_limit
        )

    # -------------------------------------------------------------------------
    # Reporting (read side)
    # -------------------------------------------------------------------------

    def visitor_summary(self, visitor_id: str) -> VisitorSummary:
        """Aggregate activity for one visitor."""
        return self.reports.visitor_summary(visitor_id, self.clock())

    def timeline(self, entity_type: str, entity_id: str) -> list[TimelineEntry]:
        """Sessions attributed to a lead or contact, newest first."""
        return self.reports.entity_timeline(entity_type, entity_id, self.clock())

    def session_detail(self, session_id: str) -> SessionDetail:
        """One session with its pages."""
        return self.reports.session_detail(session_id, self.clock())

    def active_visitors(self, minutes: int | None = None) -> list[ActiveVisitor]:
        """Visitors active within the last N minutes."""
        return self.reports.active_visitors(
            self.clock(), minutes or self.settings.active_visitor_minutes
        )


def get_tracking_service() -> ActivityTrackingService:
    """Factory function for ActivityTrackingService.

    Returns:
        ActivityTrackingService configured from the environment.
    """
    return ActivityTrackingService()
