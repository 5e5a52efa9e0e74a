"""Read-side queries over tracked activity.

Sessions that were never explicitly closed but went silent for longer
than the inactivity window are reported as inactive, with a duration
that covers at least their observed span (see Session.effective_duration).
"""

from collections import Counter
from datetime import datetime, timedelta

import structlog

from visitortrack.models.page_view import PageView
from visitortrack.models.reports import (
    ActiveVisitor,
    SessionDetail,
    TimelineEntry,
    TimelinePage,
    TopPage,
    VisitorSummary,
)
from visitortrack.models.session import Session
from visitortrack.repositories.page_view import PageViewRepository
from visitortrack.repositories.session import OpenSessionRepository, SessionRepository
from visitortrack.repositories.visitor import VisitorRepository
from visitortrack.utils.exceptions import NotFoundError, ValidationError

logger = structlog.get_logger()

TOP_PAGES_LIMIT = 5

ENTITY_TYPES = ("lead", "contact")


def _timeline_page(page_view: PageView) -> TimelinePage:
    return TimelinePage(
        page_view_id=page_view.page_view_id,
        url=page_view.page_url,
        title=page_view.page_title,
        time_on_page=page_view.time_on_page,
        viewed_at=page_view.created_at,
    )


class ActivityReports:
    """Visitor summaries, CRM timelines, session detail and the live view."""

    def __init__(
        self,
        visitors: VisitorRepository | None = None,
        sessions: SessionRepository | None = None,
        page_views: PageViewRepository | None = None,
        pointers: OpenSessionRepository | None = None,
        window: timedelta = timedelta(minutes=30),
    ):
        self._visitors = visitors
        self._sessions = sessions
        self._page_views = page_views
        self._pointers = pointers
        self.window = window

    @property
    def visitors(self) -> VisitorRepository:
        """Get visitor repository (lazy init)."""
        if self._visitors is None:
            self._visitors = VisitorRepository()
        return self._visitors

    @property
    def sessions(self) -> SessionRepository:
        """Get session repository (lazy init)."""
        if self._sessions is None:
            self._sessions = SessionRepository()
        return self._sessions

    @property
    def page_views(self) -> PageViewRepository:
        """Get page view repository (lazy init)."""
        if self._page_views is None:
            self._page_views = PageViewRepository()
        return self._page_views

    @property
    def pointers(self) -> OpenSessionRepository:
        """Get open-session pointer repository (lazy init)."""
        if self._pointers is None:
            self._pointers = OpenSessionRepository()
        return self._pointers

    def visitor_summary(self, visitor_id: str, now: datetime) -> VisitorSummary:
        """Aggregate a visitor's activity across all sessions.

        Raises:
            NotFoundError: If the visitor does not exist.
        """
        visitor = self.visitors.get_by_visitor_id(visitor_id)
        if visitor is None:
            raise NotFoundError("Visitor", visitor_id)

        sessions = self.sessions.list_by_visitor(visitor_id)
        if not sessions:
            return VisitorSummary(visitor=visitor)

        page_counts: Counter[str] = Counter()
        for session in sessions:
            for page_view in self.page_views.list_by_session(session.session_id):
                page_counts[page_view.page_url] += 1

        total_time = sum(s.effective_duration(now, self.window) for s in sessions)
        started = [s.started_at for s in sessions]

        return VisitorSummary(
            visitor=visitor,
            total_sessions=len(sessions),
            total_page_views=sum(s.page_views for s in sessions),
            total_time_on_site=total_time,
            average_session_duration=round(total_time / len(sessions), 2),
            first_visit=min(started),
            last_visit=max(started),
            top_pages=[
                TopPage(url=url, views=views)
                for url, views in page_counts.most_common(TOP_PAGES_LIMIT)
            ],
            conversion_events=sum(s.form_submissions for s in sessions),
        )

    def entity_timeline(
        self, entity_type: str, entity_id: str, now: datetime
    ) -> list[TimelineEntry]:
        """List the sessions attributed to a lead or contact, newest first.

        Raises:
            ValidationError: If entity_type is not lead or contact.
        """
        entity_type = (entity_type or "").lower()
        if entity_type == "lead":
            sessions = self.sessions.list_by_lead(entity_id)
        elif entity_type == "contact":
            sessions = self.sessions.list_by_contact(entity_id)
        else:
            raise ValidationError.for_field(
                "entity_type", f"Must be one of {', '.join(ENTITY_TYPES)}"
            )

        sessions = sorted(sessions, key=lambda s: s.started_at, reverse=True)
        return [self._timeline_entry(session, now) for session in sessions]

    def session_detail(self, session_id: str, now: datetime) -> SessionDetail:
        """Get one session with its pages.

        Raises:
            NotFoundError: If the session does not exist.
        """
        session = self.sessions.get_by_session_id(session_id)
        if session is None:
            raise NotFoundError("Session", session_id)

        entry = self._timeline_entry(session, now)
        return SessionDetail(
            **entry.model_dump(),
            lead_id=session.lead_id,
            contact_id=session.contact_id,
            last_activity_at=session.last_activity_at,
            events_count=session.events_count,
            entry_page=session.entry_page,
            exit_page=session.exit_page,
            utm_source=session.utm_source,
            utm_medium=session.utm_medium,
            utm_campaign=session.utm_campaign,
        )

    def active_visitors(self, now: datetime, minutes: int) -> list[ActiveVisitor]:
        """List visitors with an open session seen in the last N minutes."""
        cutoff = now - timedelta(minutes=minutes)
        active = []
        for pointer in self.pointers.list_active_since(cutoff):
            session = self.sessions.get_by_session_id(pointer.session_id, consistent=False)
            if session is None or session.is_closed:
                continue

            page_views = self.page_views.list_by_session(session.session_id)
            active.append(
                ActiveVisitor(
                    visitor_id=session.visitor_id,
                    session_id=session.session_id,
                    started_at=session.started_at,
                    last_activity_at=session.last_activity_at,
                    page_views=session.page_views,
                    current_page=_timeline_page(page_views[-1]) if page_views else None,
                )
            )

        logger.debug("Active visitors listed", minutes=minutes, count=len(active))
        return active

    def _timeline_entry(self, session: Session, now: datetime) -> TimelineEntry:
        page_views = self.page_views.list_by_session(session.session_id)
        return TimelineEntry(
            session_id=session.session_id,
            visitor_id=session.visitor_id,
            timestamp=session.started_at,
            ended_at=session.ended_at,
            duration=session.effective_duration(now, self.window),
            page_views=session.page_views,
            form_submissions=session.form_submissions,
            is_active=session.is_active(now, self.window),
            pages=[_timeline_page(pv) for pv in page_views],
        )
