"""Read-side response models (summaries, timelines, live view)."""

from datetime import datetime

from pydantic import BaseModel as PydanticBaseModel, Field

from visitortrack.models.visitor import Visitor


class TopPage(PydanticBaseModel):
    """A page ranked by view count."""

    url: str
    views: int


class VisitorSummary(PydanticBaseModel):
    """Aggregate activity for one visitor across all sessions."""

    visitor: Visitor
    total_sessions: int = 0
    total_page_views: int = 0
    total_time_on_site: int = Field(default=0, description="Seconds")
    average_session_duration: float = Field(default=0.0, description="Seconds")
    first_visit: datetime | None = None
    last_visit: datetime | None = None
    top_pages: list[TopPage] = Field(default_factory=list)
    conversion_events: int = 0


class TimelinePage(PydanticBaseModel):
    """A page visited within a timeline session."""

    page_view_id: str
    url: str
    title: str | None = None
    time_on_page: int = 0
    viewed_at: datetime


class TimelineEntry(PydanticBaseModel):
    """One session in an entity timeline."""

    type: str = "session"
    session_id: str
    visitor_id: str
    timestamp: datetime
    ended_at: datetime | None = None
    duration: int = 0
    page_views: int = 0
    form_submissions: int = 0
    is_active: bool = False
    pages: list[TimelinePage] = Field(default_factory=list)


class ActiveVisitor(PydanticBaseModel):
    """A visitor seen within the live window."""

    visitor_id: str
    session_id: str
    started_at: datetime
    last_activity_at: datetime
    page_views: int = 0
    current_page: TimelinePage | None = None


class SessionDetail(TimelineEntry):
    """A single session with its attribution and navigation details."""

    lead_id: str | None = None
    contact_id: str | None = None
    last_activity_at: datetime
    events_count: int = 0
    entry_page: str | None = None
    exit_page: str | None = None
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
