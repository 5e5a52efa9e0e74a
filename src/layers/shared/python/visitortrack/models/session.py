"""Session and open-session pointer models.

Key Pattern (Session):
    PK: SESSION#{session_id}
    SK: META
    GSI1PK: VISITOR#{visitor_id}     GSI1SK: STARTED#{started_at}
    GSI2PK: LEAD#{lead_id}           GSI2SK: STARTED#{started_at}
    GSI3PK: CONTACT#{contact_id}     GSI3SK: STARTED#{started_at}

Key Pattern (OpenSession):
    PK: VISITOR#{visitor_id}
    SK: OPEN_SESSION
    GSI1PK: OPEN_SESSIONS            GSI1SK: {last_activity_at}
"""

from datetime import datetime, timedelta
from pydantic import Field

from visitortrack.models.base import BaseModel, to_iso, utc_now

OPEN_SESSIONS_PARTITION = "OPEN_SESSIONS"


class Session(BaseModel):
    """A bounded run of activity from one visitor.

    ``last_activity_at`` is the watermark refreshed by every tracked call;
    ``ended_at`` is only set when the session is closed, explicitly or by
    the inactivity sweep.
    """

    session_id: str = Field(..., min_length=1, max_length=128)
    visitor_id: str = Field(..., min_length=1, max_length=128)

    # Weak CRM references, set once and never overwritten
    lead_id: str | None = None
    contact_id: str | None = None

    started_at: datetime = Field(default_factory=utc_now)
    last_activity_at: datetime = Field(default_factory=utc_now)
    ended_at: datetime | None = None

    # Aggregates (incremented atomically in storage)
    page_views: int = Field(default=0, ge=0)
    events_count: int = Field(default=0, ge=0)
    form_submissions: int = Field(default=0, ge=0)
    duration: int = Field(default=0, ge=0, description="Seconds")

    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None

    entry_page: str | None = None
    exit_page: str | None = None

    def get_pk(self) -> str:
        """Get partition key: SESSION#{session_id}."""
        return f"SESSION#{self.session_id}"

    def get_sk(self) -> str:
        """Get sort key: META."""
        return "META"

    def get_gsi_keys(self) -> dict[str, str]:
        """Get index keys for listing by visitor, lead and contact."""
        started = f"STARTED#{to_iso(self.started_at)}"
        keys = {
            "GSI1PK": f"VISITOR#{self.visitor_id}",
            "GSI1SK": started,
        }
        if self.lead_id:
            keys["GSI2PK"] = f"LEAD#{self.lead_id}"
            keys["GSI2SK"] = started
        if self.contact_id:
            keys["GSI3PK"] = f"CONTACT#{self.contact_id}"
            keys["GSI3SK"] = started
        return keys

    @property
    def is_closed(self) -> bool:
        """Whether the session has been finalized."""
        return self.ended_at is not None

    def is_within_window(self, now: datetime, window: timedelta) -> bool:
        """Whether the last activity falls inside the inactivity window."""
        return self.last_activity_at >= now - window

    def is_reusable(
        self, now: datetime, window: timedelta, reopen_closed: bool = False
    ) -> bool:
        """Whether new activity from the visitor should attach to this session.

        Args:
            now: Current time.
            window: Inactivity window.
            reopen_closed: Treat a closed session inside the window as reusable.
        """
        if not self.is_within_window(now, window):
            return False
        if self.is_closed and not reopen_closed:
            return False
        return True

    def is_active(self, now: datetime, window: timedelta) -> bool:
        """Open and seen within the window."""
        return not self.is_closed and self.is_within_window(now, window)

    def effective_duration(self, now: datetime, window: timedelta) -> int:
        """Duration in seconds as reported by read queries.

        An unclosed session that went silent is treated as having ended at
        its last activity.
        """
        if self.is_closed or self.is_within_window(now, window):
            return self.duration
        observed = int((self.last_activity_at - self.started_at).total_seconds())
        return max(self.duration, observed)


class OpenSession(BaseModel):
    """Pointer from a visitor to its single reusable session.

    Only ever replaced through conditional writes, which makes it the
    uniqueness constraint for one open session per visitor.
    """

    visitor_id: str
    session_id: str
    last_activity_at: datetime = Field(default_factory=utc_now)

    def get_pk(self) -> str:
        """Get partition key: VISITOR#{visitor_id}."""
        return f"VISITOR#{self.visitor_id}"

    def get_sk(self) -> str:
        """Get sort key: OPEN_SESSION."""
        return "OPEN_SESSION"

    def get_gsi_keys(self) -> dict[str, str]:
        """Get index keys for scanning open sessions by last activity."""
        return {
            "GSI1PK": OPEN_SESSIONS_PARTITION,
            "GSI1SK": to_iso(self.last_activity_at),
        }
