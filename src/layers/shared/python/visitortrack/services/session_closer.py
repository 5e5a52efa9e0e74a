"""Session finalization: explicit session-end and the inactivity sweep."""

from datetime import datetime, timedelta

import structlog

from visitortrack.models.page_view import PageView
from visitortrack.models.session import Session
from visitortrack.repositories.page_view import PageViewRepository
from visitortrack.repositories.session import OpenSessionRepository, SessionRepository

logger = structlog.get_logger()


class SessionCloser:
    """Closes sessions and settles their exit and bounce flags."""

    def __init__(
        self,
        sessions: SessionRepository | None = None,
        page_views: PageViewRepository | None = None,
        pointers: OpenSessionRepository | None = None,
        window: timedelta = timedelta(minutes=30),
    ):
        self._sessions = sessions
        self._page_views = page_views
        self._pointers = pointers
        self.window = window

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

    def close(
        self,
        session_id: str,
        now: datetime,
        time_on_page: int | None = None,
    ) -> Session | None:
        """Close a session at now.

        Only the last page view (by sequence) ends up flagged as the exit
        page, and it is flagged as a bounce only when it is the session's
        single page view. The duration is recomputed as now - started_at.
        Closing an already closed session rewrites its end time.

        Args:
            session_id: Session to close.
            now: Close time.
            time_on_page: Final time on the last page, if the client sent it.

        Returns:
            The closed session, or None if it does not exist.
        """
        session = self.sessions.get_by_session_id(session_id)
        if session is None:
            logger.info("Session end for unknown session ignored", session_id=session_id)
            return None

        if session.is_closed:
            logger.warning(
                "Session closed twice",
                session_id=session_id,
                previous_ended_at=session.ended_at.isoformat(),
            )

        page_views = self.page_views.list_by_session(session_id)
        if time_on_page is not None and page_views:
            last = page_views[-1]
            self.page_views.set_time_on_page(session_id, last.page_view_id, time_on_page)

        exit_page = self._flag_exit_page(session, page_views)
        duration = max(0, int((now - session.started_at).total_seconds()))
        closed = self.sessions.mark_closed(session_id, now, duration, exit_page)

        logger.info(
            "Session closed",
            session_id=session_id,
            visitor_id=session.visitor_id,
            duration=duration,
            page_views=session.page_views,
        )
        return closed

    def close_stale(self, now: datetime, limit: int | None = None) -> int:
        """Close open sessions whose last activity fell outside the window.

        The visitor's open-session pointer is released for every swept
        session.

        Returns:
            Number of sessions closed.
        """
        cutoff = now - self.window
        closed = 0

        for pointer in self.pointers.list_stale_before(cutoff, limit=limit):
            session = self.sessions.get_by_session_id(pointer.session_id)

            if session and session.is_within_window(now, self.window):
                # Activity landed after the index was read
                continue

            if session and self.close_inactive(session) is not None:
                closed += 1

            self.pointers.release(pointer.visitor_id, pointer.session_id)

        if closed:
            logger.info("Stale sessions closed", count=closed, cutoff=cutoff.isoformat())
        return closed

    def close_inactive(self, session: Session) -> Session | None:
        """Close an open session at its last activity, not at the current time.

        Returns:
            The closed session, or None if it was already closed.
        """
        if session.is_closed:
            return None

        page_views = self.page_views.list_by_session(session.session_id)
        exit_page = self._flag_exit_page(session, page_views)
        observed = int((session.last_activity_at - session.started_at).total_seconds())
        return self.sessions.mark_closed(
            session.session_id,
            session.last_activity_at,
            max(session.duration, observed),
            exit_page,
            only_if_open=True,
        )

    def _flag_exit_page(self, session: Session, page_views: list[PageView]) -> str | None:
        """Flag the last page view as exit (and bounce), clearing the others.

        Returns:
            URL of the exit page, or None for a session without page views.
        """
        if not page_views:
            return None

        last = page_views[-1]
        single_page = session.page_views == 1
        for page_view in page_views:
            is_last = page_view.page_view_id == last.page_view_id
            bounce = is_last and single_page
            if page_view.exit_page != is_last or page_view.bounce != bounce:
                self.page_views.set_exit_flags(
                    session.session_id, page_view.page_view_id, is_last, bounce
                )
        return last.page_url
