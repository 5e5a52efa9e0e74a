"""Tests for EntityLinker."""

from datetime import datetime, timedelta, timezone

import pytest

from visitortrack.models.session import Session
from visitortrack.repositories.session import SessionRepository
from visitortrack.services.entity_linker import EntityLinker
from visitortrack.utils.exceptions import ValidationError

NOON = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def linker(dynamodb_table):
    repo = SessionRepository()
    for i, lead_id in enumerate([None, "lead-A", None]):
        started = NOON + timedelta(hours=i)
        repo.create_session(Session(
            session_id=f"s-{i}",
            visitor_id="v-1",
            lead_id=lead_id,
            started_at=started,
            last_activity_at=started,
        ))
    return EntityLinker(repo)


class TestEntityLinker:
    def test_existing_lead_is_never_overwritten(self, linker):
        linked = linker.link("v-1", lead_id="lead-B")

        assert linked == 2
        leads = {s.session_id: s.lead_id for s in linker.sessions.list_by_visitor("v-1")}
        assert leads == {"s-0": "lead-B", "s-1": "lead-A", "s-2": "lead-B"}

    def test_contact_is_set_on_every_session(self, linker):
        linked = linker.link("v-1", contact_id="contact-1")

        assert linked == 3
        timeline = linker.sessions.list_by_contact("contact-1")
        assert [s.session_id for s in timeline] == ["s-2", "s-1", "s-0"]

    def test_linking_is_idempotent(self, linker):
        linker.link("v-1", lead_id="lead-B", contact_id="contact-1")

        assert linker.link("v-1", lead_id="lead-B", contact_id="contact-1") == 0

    def test_unknown_visitor_links_nothing(self, linker):
        assert linker.link("nobody", lead_id="lead-B") == 0

    def test_requires_an_entity(self, linker):
        with pytest.raises(ValidationError):
            linker.link("v-1")
