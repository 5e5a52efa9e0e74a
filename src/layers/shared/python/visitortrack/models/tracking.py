"""Request models for the public tracking endpoints."""

from typing import Any

from pydantic import (
    BaseModel as PydanticBaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

# Values browser agents send when storage has no id yet
PLACEHOLDER_IDS = frozenset({"", "undefined", "null", "none", "anonymous"})

FORM_SUBMISSION_EVENT = "form_submission"

MAX_TIME_ON_PAGE_SECONDS = 24 * 60 * 60


def normalize_id_hint(value: str | None) -> str | None:
    """Collapse empty and placeholder identifiers to None."""
    if value is None:
        return None
    value = value.strip()
    if value.lower() in PLACEHOLDER_IDS:
        return None
    return value


class GeoInfo(PydanticBaseModel):
    """Geolocation resolved upstream (CDN headers or the tracking script)."""

    country: str | None = Field(None, max_length=100)
    region: str | None = Field(None, max_length=100)
    city: str | None = Field(None, max_length=100)


class TrackPageViewRequest(PydanticBaseModel):
    """Request model for POST /track/pageview."""

    model_config = ConfigDict(extra="ignore")

    visitor_id: str | None = Field(None, max_length=128, description="Visitor id from cookie/localStorage")
    session_id: str | None = Field(None, max_length=128, description="Client-side session id hint")
    lead_id: str | None = Field(None, max_length=128)
    contact_id: str | None = Field(None, max_length=128)

    page_url: str = Field(..., min_length=1, max_length=2000)
    page_title: str | None = None
    referrer: str | None = Field(None, max_length=2000)
    user_agent: str | None = None
    ip: str | None = Field(None, max_length=64)
    geo: GeoInfo | None = None

    utm_source: str | None = Field(None, max_length=255)
    utm_medium: str | None = Field(None, max_length=255)
    utm_campaign: str | None = Field(None, max_length=255)

    @field_validator("visitor_id", "session_id", "lead_id", "contact_id")
    @classmethod
    def normalize_ids(cls, v: str | None) -> str | None:
        """Treat placeholder ids as missing."""
        return normalize_id_hint(v)

    @field_validator("page_url")
    @classmethod
    def require_page_url(cls, v: str) -> str:
        """Reject blank page URLs."""
        v = v.strip()
        if not v:
            raise ValueError("page_url must not be blank")
        return v

    @field_validator("page_title")
    @classmethod
    def truncate_title(cls, v: str | None) -> str | None:
        """Clip overly long titles instead of rejecting the page view."""
        if v is None:
            return v
        return v.strip()[:500] or None

    @field_validator("user_agent")
    @classmethod
    def truncate_user_agent(cls, v: str | None) -> str | None:
        """Clip user agents to 500 characters."""
        return v[:500] if v else None


class TrackEventRequest(PydanticBaseModel):
    """Request model for POST /track/event.

    Any fields beyond session_id and event_type are kept as the payload.
    """

    model_config = ConfigDict(extra="allow")

    session_id: str = Field(..., min_length=1, max_length=128)
    event_type: str = Field(..., min_length=1, max_length=100)

    @field_validator("event_type")
    @classmethod
    def normalize_event_type(cls, v: str) -> str:
        """Lowercase and trim event types."""
        v = v.strip().lower()
        if not v:
            raise ValueError("event_type must not be blank")
        return v

    @property
    def payload(self) -> dict[str, Any]:
        """Extra fields sent with the event."""
        return dict(self.model_extra or {})


class HeartbeatRequest(PydanticBaseModel):
    """Request model for POST /track/heartbeat."""

    session_id: str = Field(..., min_length=1, max_length=128)
    page_view_id: str = Field(..., min_length=1, max_length=128)
    time_on_page_seconds: int = Field(..., ge=0, le=MAX_TIME_ON_PAGE_SECONDS)


class SessionEndRequest(PydanticBaseModel):
    """Request model for POST /track/session-end (sendBeacon)."""

    session_id: str = Field(..., min_length=1, max_length=128)
    time_on_page_seconds: int | None = Field(None, ge=0, le=MAX_TIME_ON_PAGE_SECONDS)


class LinkVisitorRequest(PydanticBaseModel):
    """Request model for POST /track/link."""

    visitor_id: str = Field(..., min_length=1, max_length=128)
    lead_id: str | None = Field(None, max_length=128)
    contact_id: str | None = Field(None, max_length=128)

    @field_validator("lead_id", "contact_id")
    @classmethod
    def normalize_ids(cls, v: str | None) -> str | None:
        """Treat placeholder ids as missing."""
        return normalize_id_hint(v)

    @model_validator(mode="after")
    def require_entity(self) -> "LinkVisitorRequest":
        """At least one CRM entity must be given."""
        if not self.lead_id and not self.contact_id:
            raise ValueError("lead_id or contact_id is required")
        return self
