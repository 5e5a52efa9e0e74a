"""Page view repository."""

import structlog

from visitortrack.models.page_view import PageView
from visitortrack.repositories.base import BaseRepository

logger = structlog.get_logger()


class PageViewRepository(BaseRepository[PageView]):
    """Repository for PageView records stored under their session."""

    def __init__(self, table_name: str | None = None):
        super().__init__(PageView, table_name)

    def create_page_view(self, page_view: PageView) -> PageView:
        """Create a page view.

        Raises:
            ConflictError: If the page view ID is already used.
        """
        return self.create(page_view)

    def get_page_view(self, session_id: str, page_view_id: str) -> PageView | None:
        """Get a single page view of a session."""
        return self.get(f"SESSION#{session_id}", f"PAGEVIEW#{page_view_id}")

    def list_by_session(self, session_id: str) -> list[PageView]:
        """List a session's page views in viewing order."""
        page_views = self.query_all(
            f"SESSION#{session_id}",
            sk_begins_with="PAGEVIEW#",
            consistent=True,
        )
        return sorted(page_views, key=lambda pv: (pv.sequence, pv.created_at))

    def set_time_on_page(
        self, session_id: str, page_view_id: str, seconds: int
    ) -> PageView | None:
        """Store the reported time on page.

        Returns:
            The updated page view, or None if it does not exist.
        """
        attributes = self.update_fields(
            f"SESSION#{session_id}",
            f"PAGEVIEW#{page_view_id}",
            "SET time_on_page = :seconds",
            expression_values={":seconds": seconds},
            condition_expression="attribute_exists(PK)",
        )
        if attributes is None:
            return None
        return PageView.from_dynamodb(attributes)

    def set_exit_flags(
        self, session_id: str, page_view_id: str, exit_page: bool, bounce: bool
    ) -> bool:
        """Set the exit-page and bounce flags of a page view."""
        attributes = self.update_fields(
            f"SESSION#{session_id}",
            f"PAGEVIEW#{page_view_id}",
            "SET exit_page = :exit_page, bounce = :bounce",
            expression_values={":exit_page": exit_page, ":bounce": bounce},
            condition_expression="attribute_exists(PK)",
            return_values="NONE",
        )
        return attributes is not None
