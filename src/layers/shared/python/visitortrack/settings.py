"""Runtime settings read from the Lambda environment."""

import os
from dataclasses import dataclass
from datetime import timedelta

DEFAULT_SESSION_TIMEOUT_MINUTES = 30
DEFAULT_ACTIVE_VISITOR_MINUTES = 5
DEFAULT_SWEEP_BATCH_LIMIT = 500


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class TrackingSettings:
    """Tunables for session stitching and reporting."""

    session_timeout_minutes: int = DEFAULT_SESSION_TIMEOUT_MINUTES
    reopen_closed_sessions: bool = False
    active_visitor_minutes: int = DEFAULT_ACTIVE_VISITOR_MINUTES
    sweep_batch_limit: int = DEFAULT_SWEEP_BATCH_LIMIT

    def __post_init__(self):
        if self.session_timeout_minutes <= 0:
            raise ValueError("session_timeout_minutes must be positive")
        if self.active_visitor_minutes <= 0:
            raise ValueError("active_visitor_minutes must be positive")

    @property
    def session_window(self) -> timedelta:
        """Inactivity window after which a session is no longer reused."""
        return timedelta(minutes=self.session_timeout_minutes)

    @classmethod
    def from_env(cls) -> "TrackingSettings":
        """Build settings from environment variables."""
        return cls(
            session_timeout_minutes=_env_int(
                "SESSION_TIMEOUT_MINUTES", DEFAULT_SESSION_TIMEOUT_MINUTES
            ),
            reopen_closed_sessions=_env_bool("REOPEN_CLOSED_SESSIONS"),
            active_visitor_minutes=_env_int(
                "ACTIVE_VISITOR_MINUTES", DEFAULT_ACTIVE_VISITOR_MINUTES
            ),
            sweep_batch_limit=_env_int("SWEEP_BATCH_LIMIT", DEFAULT_SWEEP_BATCH_LIMIT),
        )
