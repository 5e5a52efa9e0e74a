"""Visitor repository for anonymous visitor tracking.

Visitors are written with a conditional put so the metadata from the
first sighting is never overwritten.
"""

import structlog

from visitortrack.models.visitor import Visitor
from visitortrack.repositories.base import BaseRepository
from visitortrack.utils.exceptions import ConflictError, PersistenceError

logger = structlog.get_logger()


class VisitorRepository(BaseRepository[Visitor]):
    """Repository for Visitor records in DynamoDB."""

    def __init__(self, table_name: str | None = None):
        super().__init__(Visitor, table_name)

    def get_by_visitor_id(self, visitor_id: str, consistent: bool = False) -> Visitor | None:
        """Get a visitor by visitor ID.

        Args:
            visitor_id: Visitor ID (from cookie).
            consistent: Use a strongly consistent read.

        Returns:
            Visitor or None if not found.
        """
        return self.get(f"VISITOR#{visitor_id}", "PROFILE", consistent=consistent)

    def create_if_absent(self, visitor: Visitor) -> tuple[Visitor, bool]:
        """Insert a visitor unless one already exists for its ID.

        Args:
            visitor: Visitor built from the current request.

        Returns:
            Tuple of (stored visitor, created). When the visitor already
            existed the stored record is returned untouched.
        """
        try:
            self.create(visitor)
            return visitor, True
        except ConflictError:
            pass

        existing = self.get_by_visitor_id(visitor.visitor_id, consistent=True)
        if existing is None:
            # Condition failed but nothing to read back
            raise PersistenceError("create_visitor", "visitor vanished after conflict")

        logger.debug("Visitor already exists", visitor_id=visitor.visitor_id)
        return existing, False
