"""Recording of page views, interaction events and time-on-page heartbeats."""

from datetime import datetime

import structlog

from visitortrack.models.page_view import PageView
from visitortrack.models.session import Session
from visitortrack.models.tracking import FORM_SUBMISSION_EVENT
from visitortrack.repositories.page_view import PageViewRepository
from visitortrack.repositories.session import OpenSessionRepository, SessionRepository
from visitortrack.utils.exceptions import NotFoundError

logger = structlog.get_logger()


class EventRecorder:
    """Appends activity to a session and keeps its aggregates in step.

    Every successful call moves the session's last_activity_at forward
    and refreshes the visitor's open-session pointer.
    """

    def __init__(
        self,
        sessions: SessionRepository | None = None,
        page_views: PageViewRepository | None = None,
        pointers: OpenSessionRepository | None = None,
    ):
        self._sessions = sessions
        self._page_views = page_views
        self._pointers = pointers

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

    def record_page_view(
        self,
        session: Session,
        page_url: str,
        now: datetime,
        page_title: str | None = None,
    ) -> PageView:
        """Append a page view to the session.

        The session's page_views counter is incremented atomically and its
        new value becomes the page view's sequence number.

        Raises:
            NotFoundError: If the session no longer exists.
        """
        sequence = self.sessions.increment_page_views(session.session_id, page_url, now)
        if sequence is None:
            raise NotFoundError("Session", session.session_id)

        page_view = PageView(
            session_id=session.session_id,
            visitor_id=session.visitor_id,
            page_url=page_url,
            page_title=page_title,
            sequence=sequence,
            created_at=now,
        )
        self.page_views.create_page_view(page_view)
        self.pointers.touch(session.visitor_id, session.session_id, now)

        logger.info(
            "Page view tracked",
            session_id=session.session_id,
            visitor_id=session.visitor_id,
            page_view_id=page_view.page_view_id,
            sequence=sequence,
        )
        return page_view

    def record_event(
        self,
        session_id: str,
        event_type: str,
        now: datetime,
    ) -> bool:
        """Count an interaction event against a session.

        A form_submission event also counts as a conversion.

        Returns:
            False if the session does not exist.
        """
        form_submission = event_type == FORM_SUBMISSION_EVENT
        session = self.sessions.increment_events(session_id, now, form_submission=form_submission)
        if session is None:
            logger.info("Event for unknown session ignored", session_id=session_id)
            return False

        self.pointers.touch(session.visitor_id, session_id, now)
        logger.info(
            "Event tracked",
            session_id=session_id,
            event_type=event_type,
            form_submission=form_submission,
        )
        return True

    def update_page_time(
        self,
        session_id: str,
        page_view_id: str,
        seconds: int,
        now: datetime,
    ) -> bool:
        """Store the time spent on a page and recompute the session duration.

        The session duration becomes the sum of time_on_page across all of
        its page views.

        Returns:
            False if the page view does not exist.
        """
        page_view = self.page_views.set_time_on_page(session_id, page_view_id, seconds)
        if page_view is None:
            logger.info(
                "Heartbeat for unknown page view ignored",
                session_id=session_id,
                page_view_id=page_view_id,
            )
            return False

        total = sum(pv.time_on_page for pv in self.page_views.list_by_session(session_id))
        self.sessions.set_duration(session_id, total, now)
        self.pointers.touch(page_view.visitor_id, session_id, now)

        logger.debug(
            "Time on page updated",
            session_id=session_id,
            page_view_id=page_view_id,
            seconds=seconds,
            duration=total,
        )
        return True
