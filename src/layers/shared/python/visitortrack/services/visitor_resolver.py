"""Visitor resolution: map a client id hint to a stored visitor."""

import structlog

from visitortrack.models.base import generate_uuid
from visitortrack.models.tracking import GeoInfo, normalize_id_hint
from visitortrack.models.visitor import Visitor
from visitortrack.repositories.visitor import VisitorRepository

logger = structlog.get_logger()


class VisitorResolver:
    """Finds or creates the visitor behind a tracking call."""

    def __init__(self, repo: VisitorRepository | None = None):
        self._repo = repo

    @property
    def repo(self) -> VisitorRepository:
        """Get visitor repository (lazy init)."""
        if self._repo is None:
            self._repo = VisitorRepository()
        return self._repo

    def resolve(
        self,
        visitor_id: str | None,
        user_agent: str | None = None,
        ip_address: str | None = None,
        referrer_url: str | None = None,
        first_page_url: str | None = None,
        geo: GeoInfo | None = None,
    ) -> tuple[Visitor, bool]:
        """Return the visitor for an id hint, creating it on first sight.

        A missing or placeholder hint gets a freshly generated id. An
        existing visitor is returned unchanged; the request metadata only
        lands on newly created records.

        Returns:
            Tuple of (visitor, created).
        """
        visitor_id = normalize_id_hint(visitor_id)
        if visitor_id:
            existing = self.repo.get_by_visitor_id(visitor_id)
            if existing:
                return existing, False
        else:
            visitor_id = generate_uuid()

        geo = geo or GeoInfo()
        visitor = Visitor(
            visitor_id=visitor_id,
            user_agent=user_agent,
            ip_address=ip_address,
            country=geo.country,
            region=geo.region,
            city=geo.city,
            referrer_url=referrer_url,
            first_page_url=first_page_url,
        )
        visitor, created = self.repo.create_if_absent(visitor)
        if created:
            logger.info("Visitor created", visitor_id=visitor.visitor_id)
        return visitor, created
