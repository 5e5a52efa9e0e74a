"""DynamoDB repositories for tracking entities."""

from visitortrack.repositories.base import BaseRepository
from visitortrack.repositories.visitor import VisitorRepository
from visitortrack.repositories.session import SessionRepository, OpenSessionRepository
from visitortrack.repositories.page_view import PageViewRepository

__all__ = [
    "BaseRepository",
    "VisitorRepository",
    "SessionRepository",
    "OpenSessionRepository",
    "PageViewRepository",
]
