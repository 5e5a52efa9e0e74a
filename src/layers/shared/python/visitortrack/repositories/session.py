"""Session and open-session pointer repositories.

Counters are only ever changed with UpdateItem ADD expressions so that
concurrent tracking calls on one session never lose increments.
"""

from datetime import datetime

import structlog

from visitortrack.models.base import to_iso, utc_now
from visitortrack.models.session import OPEN_SESSIONS_PARTITION, OpenSession, Session
from visitortrack.repositories.base import BaseRepository

logger = structlog.get_logger()

# "duration" is a DynamoDB reserved word
_DURATION_NAMES = {"#duration": "duration"}


class SessionRepository(BaseRepository[Session]):
    """Repository for Session aggregates."""

    def __init__(self, table_name: str | None = None):
        super().__init__(Session, table_name)

    def _key(self, session_id: str) -> tuple[str, str]:
        return f"SESSION#{session_id}", "META"

    def get_by_session_id(self, session_id: str, consistent: bool = True) -> Session | None:
        """Get a session by ID.

        Args:
            session_id: Session ID.
            consistent: Use a strongly consistent read.

        Returns:
            Session or None if not found.
        """
        pk, sk = self._key(session_id)
        return self.get(pk, sk, consistent=consistent)

    def create_session(self, session: Session) -> Session:
        """Create a new session.

        Raises:
            ConflictError: If a session with this ID already exists.
        """
        self.create(session, gsi_keys=session.get_gsi_keys())
        logger.info(
            "Session created",
            session_id=session.session_id,
            visitor_id=session.visitor_id,
        )
        return session

    def delete_session(self, session_id: str) -> bool:
        """Delete a session item (used to discard a lost creation race)."""
        pk, sk = self._key(session_id)
        return self.delete(pk, sk)

    def list_by_visitor(self, visitor_id: str, limit: int | None = None) -> list[Session]:
        """List a visitor's sessions, most recently started first."""
        return self.query_all(
            f"VISITOR#{visitor_id}",
            max_items=limit,
            sk_begins_with="STARTED#",
            index_name="GSI1",
            scan_forward=False,
        )

    def list_by_lead(self, lead_id: str, limit: int | None = None) -> list[Session]:
        """List sessions attributed to a lead, most recent first."""
        return self.query_all(
            f"LEAD#{lead_id}", max_items=limit, index_name="GSI2", scan_forward=False
        )

    def list_by_contact(self, contact_id: str, limit: int | None = None) -> list[Session]:
        """List sessions attributed to a contact, most recent first."""
        return self.query_all(
            f"CONTACT#{contact_id}", max_items=limit, index_name="GSI3", scan_forward=False
        )

    def increment_page_views(self, session_id: str, page_url: str, now: datetime) -> int | None:
        """Atomically count a page view and refresh the activity watermark.

        The first page view of the session also becomes its entry page.

        Returns:
            The new page_views count (the page view's sequence number),
            or None if the session does not exist.
        """
        pk, sk = self._key(session_id)
        attributes = self.update_fields(
            pk,
            sk,
            "ADD page_views :one "
            "SET last_activity_at = :now, updated_at = :now, "
            "entry_page = if_not_exists(entry_page, :url)",
            expression_values={":one": 1, ":now": to_iso(now), ":url": page_url},
            condition_expression="attribute_exists(PK)",
        )
        if attributes is None:
            return None
        return int(attributes["page_views"])

    def increment_events(
        self, session_id: str, now: datetime, form_submission: bool = False
    ) -> Session | None:
        """Atomically count an event (and a form submission if flagged).

        Returns:
            The updated session, or None if it does not exist.
        """
        pk, sk = self._key(session_id)
        add_parts = ["events_count :one"]
        if form_submission:
            add_parts.append("form_submissions :one")

        attributes = self.update_fields(
            pk,
            sk,
            f"ADD {', '.join(add_parts)} SET last_activity_at = :now, updated_at = :now",
            expression_values={":one": 1, ":now": to_iso(now)},
            condition_expression="attribute_exists(PK)",
        )
        if attributes is None:
            return None
        return Session.from_dynamodb(attributes)

    def set_duration(self, session_id: str, duration: int, now: datetime) -> bool:
        """Store a recomputed duration and refresh the activity watermark."""
        pk, sk = self._key(session_id)
        attributes = self.update_fields(
            pk,
            sk,
            "SET #duration = :duration, last_activity_at = :now, updated_at = :now",
            expression_values={":duration": duration, ":now": to_iso(now)},
            expression_names=_DURATION_NAMES,
            condition_expression="attribute_exists(PK)",
            return_values="NONE",
        )
        return attributes is not None

    def mark_closed(
        self,
        session_id: str,
        ended_at: datetime,
        duration: int,
        exit_page: str | None,
        only_if_open: bool = False,
    ) -> Session | None:
        """Finalize a session.

        Args:
            session_id: Session ID.
            ended_at: Close time.
            duration: Final duration in seconds.
            exit_page: URL of the last page viewed.
            only_if_open: Skip sessions that already have ended_at set.

        Returns:
            The updated session, or None if it was missing (or already
            closed with only_if_open).
        """
        pk, sk = self._key(session_id)
        condition = "attribute_exists(PK)"
        if only_if_open:
            condition += " AND attribute_not_exists(ended_at)"

        values = {
            ":ended": to_iso(ended_at),
            ":duration": duration,
            ":now": to_iso(utc_now()),
        }
        update = "SET ended_at = :ended, #duration = :duration, updated_at = :now"
        if exit_page:
            update += ", exit_page = :exit"
            values[":exit"] = exit_page

        attributes = self.update_fields(
            pk,
            sk,
            update,
            expression_values=values,
            expression_names=_DURATION_NAMES,
            condition_expression=condition,
        )
        if attributes is None:
            return None
        return Session.from_dynamodb(attributes)

    def reopen(self, session_id: str, now: datetime) -> bool:
        """Clear the close marker of a session that is being reused."""
        pk, sk = self._key(session_id)
        attributes = self.update_fields(
            pk,
            sk,
            "REMOVE ended_at, exit_page SET last_activity_at = :now, updated_at = :now",
            expression_values={":now": to_iso(now)},
            condition_expression="attribute_exists(PK)",
            return_values="NONE",
        )
        return attributes is not None

    def link_lead(self, session: Session, lead_id: str) -> bool:
        """Attribute a session to a lead unless it already has one.

        Returns:
            True if the link was written.
        """
        pk, sk = self._key(session.session_id)
        attributes = self.update_fields(
            pk,
            sk,
            "SET lead_id = :lead_id, GSI2PK = :gsi_pk, GSI2SK = :gsi_sk",
            expression_values={
                ":lead_id": lead_id,
                ":gsi_pk": f"LEAD#{lead_id}",
                ":gsi_sk": f"STARTED#{to_iso(session.started_at)}",
            },
            condition_expression="attribute_exists(PK) AND attribute_not_exists(lead_id)",
            return_values="NONE",
        )
        return attributes is not None

    def link_contact(self, session: Session, contact_id: str) -> bool:
        """Attribute a session to a contact unless it already has one.

        Returns:
            True if the link was written.
        """
        pk, sk = self._key(session.session_id)
        attributes = self.update_fields(
            pk,
            sk,
            "SET contact_id = :contact_id, GSI3PK = :gsi_pk, GSI3SK = :gsi_sk",
            expression_values={
                ":contact_id": contact_id,
                ":gsi_pk": f"CONTACT#{contact_id}",
                ":gsi_sk": f"STARTED#{to_iso(session.started_at)}",
            },
            condition_expression="attribute_exists(PK) AND attribute_not_exists(contact_id)",
            return_values="NONE",
        )
        return attributes is not None


class OpenSessionRepository(BaseRepository[OpenSession]):
    """Repository for the per-visitor open-session pointer."""

    def __init__(self, table_name: str | None = None):
        super().__init__(OpenSession, table_name)

    def get_for_visitor(self, visitor_id: str) -> OpenSession | None:
        """Get the visitor's pointer with a consistent read."""
        return self.get(f"VISITOR#{visitor_id}", "OPEN_SESSION", consistent=True)

    def claim(self, pointer: OpenSession, expected_session_id: str | None = None) -> OpenSession:
        """Point the visitor at a new session.

        Succeeds only if the visitor has no pointer yet, or the pointer
        still names expected_session_id (the stale session being replaced).

        Raises:
            ConflictError: If another writer claimed the pointer first.
        """
        if expected_session_id is None:
            return self.put(
                pointer,
                condition_expression="attribute_not_exists(PK)",
                gsi_keys=pointer.get_gsi_keys(),
            )
        return self.put(
            pointer,
            condition_expression="attribute_not_exists(PK) OR session_id = :expected",
            expression_values={":expected": expected_session_id},
            gsi_keys=pointer.get_gsi_keys(),
        )

    def touch(self, visitor_id: str, session_id: str, now: datetime) -> bool:
        """Refresh the pointer watermark if it still names session_id."""
        stamp = to_iso(now)
        attributes = self.update_fields(
            f"VISITOR#{visitor_id}",
            "OPEN_SESSION",
            "SET last_activity_at = :now, GSI1SK = :now, updated_at = :now",
            expression_values={":now": stamp, ":sid": session_id},
            condition_expression="session_id = :sid",
            return_values="NONE",
        )
        return attributes is not None

    def release(self, visitor_id: str, session_id: str) -> bool:
        """Delete the pointer if it still names session_id."""
        return self.delete(
            f"VISITOR#{visitor_id}",
            "OPEN_SESSION",
            condition_expression="session_id = :sid",
            expression_values={":sid": session_id},
        )

    def list_active_since(self, cutoff: datetime, limit: int | None = None) -> list[OpenSession]:
        """Pointers with activity at or after cutoff, most recent first."""
        return self.query_all(
            OPEN_SESSIONS_PARTITION,
            max_items=limit,
            sk_after=to_iso(cutoff),
            index_name="GSI1",
            scan_forward=False,
        )

    def list_stale_before(self, cutoff: datetime, limit: int | None = None) -> list[OpenSession]:
        """Pointers whose last activity is older than cutoff, oldest first."""
        return self.query_all(
            OPEN_SESSIONS_PARTITION,
            max_items=limit,
            sk_before=to_iso(cutoff),
            index_name="GSI1",
            scan_forward=True,
        )
