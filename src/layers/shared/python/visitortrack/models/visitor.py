"""Visitor model for anonymous visitor tracking.

A visitor is created on the first tracked page view and is never
modified afterwards: the metadata from the first sighting wins.

DynamoDB keys:
    PK: VISITOR#{visitor_id}
    SK: PROFILE
"""

from pydantic import Field

from visitortrack.models.base import BaseModel


class Visitor(BaseModel):
    """Anonymous visitor tracked via a first-party cookie or localStorage id."""

    visitor_id: str = Field(..., min_length=1, max_length=128)

    # Device info (from first visit)
    user_agent: str | None = None
    ip_address: str | None = None

    # Geolocation
    country: str | None = None
    region: str | None = None
    city: str | None = None

    # Attribution (first-touch)
    referrer_url: str | None = None
    first_page_url: str | None = None

    def get_pk(self) -> str:
        """Get the partition key."""
        return f"VISITOR#{self.visitor_id}"

    def get_sk(self) -> str:
        """Get the sort key."""
        return "PROFILE"
