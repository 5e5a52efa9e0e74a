"""Tests for DynamoDB repositories (moto)."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from botocore.exceptions import ClientError

from visitortrack.models.page_view import PageView
from visitortrack.models.session import OpenSession, Session
from visitortrack.models.visitor import Visitor
from visitortrack.repositories.page_view import PageViewRepository
from visitortrack.repositories.session import OpenSessionRepository, SessionRepository
from visitortrack.repositories.visitor import VisitorRepository
from visitortrack.utils.exceptions import ConflictError, PersistenceError

NOON = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _session(session_id="s-1", visitor_id="v-1", started_at=NOON, **kwargs) -> Session:
    return Session(
        session_id=session_id,
        visitor_id=visitor_id,
        started_at=started_at,
        last_activity_at=started_at,
        **kwargs,
    )


class TestVisitorRepository:
    def test_create_if_absent_keeps_first_metadata(self, dynamodb_table):
        repo = VisitorRepository()

        first, created = repo.create_if_absent(Visitor(visitor_id="v-1", user_agent="first"))
        second, created_again = repo.create_if_absent(Visitor(visitor_id="v-1", user_agent="second"))

        assert created is True
        assert created_again is False
        assert first.user_agent == "first"
        assert second.user_agent == "first"
        assert repo.get_by_visitor_id("v-1").user_agent == "first"

    def test_get_missing_visitor(self, dynamodb_table):
        assert VisitorRepository().get_by_visitor_id("nope") is None


class TestSessionRepository:
    def test_create_and_get(self, dynamodb_table):
        repo = SessionRepository()
        repo.create_session(_session(utm_source="news"))

        stored = repo.get_by_session_id("s-1")

        assert stored.visitor_id == "v-1"
        assert stored.utm_source == "news"
        assert stored.started_at == NOON
        assert stored.ended_at is None

    def test_create_duplicate_raises_conflict(self, dynamodb_table):
        repo = SessionRepository()
        repo.create_session(_session())

        with pytest.raises(ConflictError):
            repo.create_session(_session(visitor_id="v-2"))

    def test_increment_page_views_returns_sequence(self, dynamodb_table):
        repo = SessionRepository()
        repo.create_session(_session())

        first = repo.increment_page_views("s-1", "https://a.test/one", NOON + timedelta(seconds=5))
        second = repo.increment_page_views("s-1", "https://a.test/two", NOON + timedelta(seconds=9))

        assert (first, second) == (1, 2)
        stored = repo.get_by_session_id("s-1")
        assert stored.page_views == 2
        assert stored.entry_page == "https://a.test/one"
        assert stored.last_activity_at == NOON + timedelta(seconds=9)

    def test_increment_unknown_session(self, dynamodb_table):
        repo = SessionRepository()

        assert repo.increment_page_views("missing", "https://a.test/", NOON) is None
        assert repo.increment_events("missing", NOON) is None

    def test_increment_events_counts_form_submissions(self, dynamodb_table):
        repo = SessionRepository()
        repo.create_session(_session())

        repo.increment_events("s-1", NOON)
        updated = repo.increment_events("s-1", NOON, form_submission=True)

        assert updated.events_count == 2
        assert updated.form_submissions == 1

    def test_list_by_visitor_newest_first(self, dynamodb_table):
        repo = SessionRepository()
        repo.create_session(_session("s-old", started_at=NOON))
        repo.create_session(_session("s-new", started_at=NOON + timedelta(hours=1)))
        repo.create_session(_session("s-other", visitor_id="v-2"))

        sessions = repo.list_by_visitor("v-1")

        assert [s.session_id for s in sessions] == ["s-new", "s-old"]

    def test_mark_closed_only_if_open(self, dynamodb_table):
        repo = SessionRepository()
        repo.create_session(_session())
        ended = NOON + timedelta(minutes=3)

        closed = repo.mark_closed("s-1", ended, 180, "https://a.test/exit")
        again = repo.mark_closed("s-1", ended, 999, None, only_if_open=True)

        assert closed.ended_at == ended
        assert closed.duration == 180
        assert closed.exit_page == "https://a.test/exit"
        assert again is None
        assert repo.get_by_session_id("s-1").duration == 180

    def test_reopen_clears_close_marker(self, dynamodb_table):
        repo = SessionRepository()
        repo.create_session(_session())
        repo.mark_closed("s-1", NOON, 0, "https://a.test/")

        assert repo.reopen("s-1", NOON + timedelta(minutes=1)) is True

        stored = repo.get_by_session_id("s-1")
        assert stored.ended_at is None
        assert stored.exit_page is None

    def test_link_lead_does_not_overwrite(self, dynamodb_table):
        repo = SessionRepository()
        repo.create_session(_session(lead_id="lead-A"))
        session = repo.get_by_session_id("s-1")

        assert repo.link_lead(session, "lead-B") is False
        assert repo.link_contact(session, "contact-1") is True
        assert [s.session_id for s in repo.list_by_lead("lead-A")] == ["s-1"]
        assert repo.list_by_lead("lead-B") == []
        assert [s.session_id for s in repo.list_by_contact("contact-1")] == ["s-1"]

    def test_storage_failure_raises_persistence_error(self, dynamodb_table):
        repo = SessionRepository()
        failure = ClientError(
            {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}},
            "UpdateItem",
        )

        with patch.object(repo.table, "update_item", side_effect=failure):
            with pytest.raises(PersistenceError):
                repo.increment_page_views("s-1", "https://a.test/", NOON)


class TestOpenSessionRepository:
    def test_claim_is_exclusive(self, dynamodb_table):
        repo = OpenSessionRepository()
        repo.claim(OpenSession(visitor_id="v-1", session_id="s-1", last_activity_at=NOON))

        with pytest.raises(ConflictError):
            repo.claim(OpenSession(visitor_id="v-1", session_id="s-2", last_activity_at=NOON))

    def test_claim_replaces_expected_session(self, dynamodb_table):
        repo = OpenSessionRepository()
        repo.claim(OpenSession(visitor_id="v-1", session_id="s-1", last_activity_at=NOON))

        with pytest.raises(ConflictError):
            repo.claim(
                OpenSession(visitor_id="v-1", session_id="s-3", last_activity_at=NOON),
                expected_session_id="s-2",
            )

        repo.claim(
            OpenSession(visitor_id="v-1", session_id="s-2", last_activity_at=NOON),
            expected_session_id="s-1",
        )
        assert repo.get_for_visitor("v-1").session_id == "s-2"

    def test_touch_and_release_require_matching_session(self, dynamodb_table):
        repo = OpenSessionRepository()
        repo.claim(OpenSession(visitor_id="v-1", session_id="s-1", last_activity_at=NOON))
        later = NOON + timedelta(minutes=5)

        assert repo.touch("v-1", "s-other", later) is False
        assert repo.touch("v-1", "s-1", later) is True
        assert repo.get_for_visitor("v-1").last_activity_at == later

        assert repo.release("v-1", "s-other") is False
        assert repo.release("v-1", "s-1") is True
        assert repo.get_for_visitor("v-1") is None

    def test_list_by_activity(self, dynamodb_table):
        repo = OpenSessionRepository()
        repo.claim(OpenSession(visitor_id="v-old", session_id="s-old", last_activity_at=NOON))
        repo.claim(OpenSession(
            visitor_id="v-new",
            session_id="s-new",
            last_activity_at=NOON + timedelta(hours=1),
        ))
        cutoff = NOON + timedelta(minutes=30)

        assert [p.session_id for p in repo.list_active_since(cutoff)] == ["s-new"]
        assert [p.session_id for p in repo.list_stale_before(cutoff)] == ["s-old"]


class TestPageViewRepository:
    def test_list_by_session_in_sequence_order(self, dynamodb_table):
        repo = PageViewRepository()
        for sequence in (2, 1, 3):
            repo.create_page_view(PageView(
                session_id="s-1",
                visitor_id="v-1",
                page_url=f"https://a.test/{sequence}",
                sequence=sequence,
            ))

        page_views = repo.list_by_session("s-1")

        assert [pv.sequence for pv in page_views] == [1, 2, 3]

    def test_set_time_on_page(self, dynamodb_table):
        repo = PageViewRepository()
        page_view = repo.create_page_view(
            PageView(session_id="s-1", visitor_id="v-1", page_url="https://a.test/")
        )

        updated = repo.set_time_on_page("s-1", page_view.page_view_id, 25)

        assert updated.time_on_page == 25
        assert updated.visitor_id == "v-1"
        assert repo.set_time_on_page("s-1", "missing", 25) is None

    def test_set_exit_flags(self, dynamodb_table):
        repo = PageViewRepository()
        page_view = repo.create_page_view(
            PageView(session_id="s-1", visitor_id="v-1", page_url="https://a.test/")
        )

        assert repo.set_exit_flags("s-1", page_view.page_view_id, True, True) is True

        stored = repo.get_page_view("s-1", page_view.page_view_id)
        assert stored.exit_page is True
        assert stored.bounce is True
