"""Session stitching.

Decides whether a tracked page view continues the visitor's current
session or starts a new one. The visitor's OPEN_SESSION pointer item is
the only place that names the reusable session, and it is replaced with
conditional writes, so two writers can never both install a session for
the same visitor. Threads in one process are additionally serialized per
visitor so they don't race each other into wasted conflicts.
"""

from datetime import datetime, timedelta

import structlog

from visitortrack.models.base import generate_uuid
from visitortrack.models.session import OpenSession, Session
from visitortrack.models.tracking import normalize_id_hint
from visitortrack.repositories.page_view import PageViewRepository
from visitortrack.repositories.session import OpenSessionRepository, SessionRepository
from visitortrack.services.session_closer import SessionCloser
from visitortrack.utils.exceptions import ConflictError
from visitortrack.utils.locks import KeyedLock

logger = structlog.get_logger()

# Shared by every stitcher in the process
VISITOR_LOCKS = KeyedLock()


class SessionStitcher:
    """Find-or-create of the single reusable session per visitor."""

    MAX_CLAIM_ATTEMPTS = 3

    def __init__(
        self,
        sessions: SessionRepository | None = None,
        pointers: OpenSessionRepository | None = None,
        window: timedelta = timedelta(minutes=30),
        reopen_closed: bool = False,
        locks: KeyedLock | None = None,
        closer: SessionCloser | None = None,
    ):
        """Initialize the stitcher.

        Args:
            sessions: Session repository (created lazily if not provided).
            pointers: Open-session pointer repository.
            window: Inactivity window for reuse.
            reopen_closed: Reuse explicitly closed sessions still inside
                the window instead of starting a new one.
            locks: Per-visitor lock registry (defaults to the process-wide
                VISITOR_LOCKS).
            closer: Closes the stale session a new one replaces.
        """
        self._sessions = sessions
        self._pointers = pointers
        self.window = window
        self.reopen_closed = reopen_closed
        self.locks = locks or VISITOR_LOCKS
        self._closer = closer

    @property
    def sessions(self) -> SessionRepository:
        """Get session repository (lazy init)."""
        if self._sessions is None:
            self._sessions = SessionRepository()
        return self._sessions

    @property
    def pointers(self) -> OpenSessionRepository:
        """Get open-session pointer repository (lazy init)."""
        if self._pointers is None:
            self._pointers = OpenSessionRepository()
        return self._pointers

    @property
    def closer(self) -> SessionCloser:
        """Get session closer (lazy init)."""
        if self._closer is None:
            self._closer = SessionCloser(
                self.sessions, PageViewRepository(), self.pointers, window=self.window
            )
        return self._closer

    def stitch(
        self,
        visitor_id: str,
        now: datetime,
        session_hint: str | None = None,
        lead_id: str | None = None,
        contact_id: str | None = None,
        utm_source: str | None = None,
        utm_medium: str | None = None,
        utm_campaign: str | None = None,
    ) -> Session:
        """Return the session new activity from visitor_id belongs to.

        The current session is reused when it was active within the window
        (and is still open, unless reopening is enabled). Otherwise a new
        session is created, taking session_hint as its id when that id is
        free. Attribution arguments only apply to a newly created session.
        An open session replaced this way is closed at its last activity.

        Raises:
            ConflictError: If the pointer kept changing under us.
        """
        with self.locks.hold(visitor_id):
            for attempt in range(1, self.MAX_CLAIM_ATTEMPTS + 1):
                current = None
                pointer = self.pointers.get_for_visitor(visitor_id)
                if pointer:
                    current = self.sessions.get_by_session_id(pointer.session_id)
                    if current and current.is_reusable(now, self.window, self.reopen_closed):
                        if current.is_closed:
                            self._reopen(current, now)
                        return current

                session = self._create_session(
                    visitor_id,
                    now,
                    session_hint,
                    lead_id=lead_id,
                    contact_id=contact_id,
                    utm_source=utm_source,
                    utm_medium=utm_medium,
                    utm_campaign=utm_campaign,
                )
                claim = OpenSession(
                    visitor_id=visitor_id,
                    session_id=session.session_id,
                    last_activity_at=now,
                )
                try:
                    self.pointers.claim(
                        claim,
                        expected_session_id=pointer.session_id if pointer else None,
                    )
                except ConflictError:
                    # Another writer installed a session first; drop ours
                    self.sessions.delete_session(session.session_id)
                    logger.warning(
                        "Lost open session claim",
                        visitor_id=visitor_id,
                        discarded_session_id=session.session_id,
                        attempt=attempt,
                    )
                    continue

                if current and not current.is_closed:
                    self.closer.close_inactive(current)
                return session

        raise ConflictError(
            f"Could not claim an open session for visitor {visitor_id}",
            conflict_type="open_session",
        )

    def _reopen(self, session: Session, now: datetime) -> None:
        self.sessions.reopen(session.session_id, now)
        session.ended_at = None
        session.exit_page = None
        session.last_activity_at = now
        logger.info(
            "Session reopened",
            session_id=session.session_id,
            visitor_id=session.visitor_id,
        )

    def _create_session(
        self,
        visitor_id: str,
        now: datetime,
        session_hint: str | None,
        **attribution: str | None,
    ) -> Session:
        """Persist a new session, falling back to a generated id on collision."""
        hinted_id = normalize_id_hint(session_hint)
        session_id = hinted_id or generate_uuid()
        session = Session(
            session_id=session_id,
            visitor_id=visitor_id,
            started_at=now,
            last_activity_at=now,
            **attribution,
        )
        try:
            return self.sessions.create_session(session)
        except ConflictError:
            if not hinted_id:
                raise
            logger.info(
                "Session id hint already taken, generating a new id",
                visitor_id=visitor_id,
                session_hint=session_hint,
            )

        session = session.model_copy(update={"session_id": generate_uuid()})
        return self.sessions.create_session(session)
