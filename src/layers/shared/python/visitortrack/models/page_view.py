"""Page view model.

Key Pattern:
    PK: SESSION#{session_id}
    SK: PAGEVIEW#{page_view_id}
"""

from pydantic import Field

from visitortrack.models.base import BaseModel, generate_ulid


class PageView(BaseModel):
    """One tracked page view inside a session."""

    page_view_id: str = Field(default_factory=generate_ulid)
    session_id: str
    visitor_id: str

    page_url: str = Field(..., min_length=1, max_length=2000)
    page_title: str | None = Field(None, max_length=500)

    time_on_page: int = Field(default=0, ge=0, description="Seconds, reported by heartbeats")
    bounce: bool = False
    exit_page: bool = False

    # 1-based position in the session, from the atomic page_views counter
    sequence: int = Field(default=1, ge=1)

    def get_pk(self) -> str:
        """Get partition key: SESSION#{session_id}."""
        return f"SESSION#{self.session_id}"

    def get_sk(self) -> str:
        """Get sort key: PAGEVIEW#{page_view_id}."""
        return f"PAGEVIEW#{self.page_view_id}"
