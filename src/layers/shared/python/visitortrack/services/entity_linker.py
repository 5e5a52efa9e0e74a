"""Retroactive attribution of a visitor's sessions to CRM entities."""

import structlog

from visitortrack.repositories.session import SessionRepository
from visitortrack.utils.exceptions import ValidationError

logger = structlog.get_logger()


class EntityLinker:
    """Stamps lead and contact ids onto sessions that don't have them yet."""

    def __init__(self, sessions: SessionRepository | None = None):
        self._sessions = sessions

    @property
    def sessions(self) -> SessionRepository:
        """Get session repository (lazy init)."""
        if self._sessions is None:
            self._sessions = SessionRepository()
        return self._sessions

    def link(
        self,
        visitor_id: str,
        lead_id: str | None = None,
        contact_id: str | None = None,
    ) -> int:
        """Attribute all of a visitor's sessions to a lead and/or contact.

        A session that already carries a lead (or contact) keeps it; only
        the missing reference is filled in. Unknown visitors link nothing.

        Returns:
            Number of sessions that gained at least one reference.

        Raises:
            ValidationError: If neither lead_id nor contact_id is given.
        """
        if not lead_id and not contact_id:
            raise ValidationError.for_field("lead_id", "lead_id or contact_id is required")

        linked = 0
        for session in self.sessions.list_by_visitor(visitor_id):
            changed = False
            if lead_id and not session.lead_id:
                changed = self.sessions.link_lead(session, lead_id) or changed
            if contact_id and not session.contact_id:
                changed = self.sessions.link_contact(session, contact_id) or changed
            if changed:
                linked += 1

        logger.info(
            "Visitor linked",
            visitor_id=visitor_id,
            lead_id=lead_id,
            contact_id=contact_id,
            sessions_linked=linked,
        )
        return linked
