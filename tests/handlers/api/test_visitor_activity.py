"""Tests for the visitor activity (read side) API handler."""

import json


def _parse_body(response: dict) -> dict:
    """Parse JSON response body."""
    return json.loads(response["body"])


def _seed_visit(api_gateway_event, visitor_id: str = "v-1", **extra) -> dict:
    from api.tracking import handler

    body = {"visitor_id": visitor_id, "page_url": "https://site.test/", **extra}
    response = handler(api_gateway_event(method="POST", path="/track/pageview", body=body), None)
    return _parse_body(response)


class TestVisitorSummaryRoute:
    def test_summary(self, dynamodb_table, api_gateway_event):
        from api.visitor_activity import handler

        _seed_visit(api_gateway_event)
        event = api_gateway_event(
            path="/track/visitor-summary/v-1", path_params={"visitor_id": "v-1"}
        )

        response = handler(event, None)

        assert response["statusCode"] == 200
        body = _parse_body(response)
        assert body["visitor"]["visitor_id"] == "v-1"
        assert body["total_sessions"] == 1
        assert body["total_page_views"] == 1
        assert body["top_pages"] == [{"url": "https://site.test/", "views": 1}]

    def test_unknown_visitor_is_404(self, dynamodb_table, api_gateway_event):
        from api.visitor_activity import handler

        event = api_gateway_event(
            path="/track/visitor-summary/nobody", path_params={"visitor_id": "nobody"}
        )

        response = handler(event, None)

        assert response["statusCode"] == 404
        assert _parse_body(response)["error_code"] == "NOT_FOUND"


class TestTimelineRoute:
    def test_lead_timeline(self, dynamodb_table, api_gateway_event):
        from api.visitor_activity import handler

        seeded = _seed_visit(api_gateway_event, lead_id="lead-1")
        event = api_gateway_event(
            path="/track/timeline/lead/lead-1",
            path_params={"entity_type": "lead", "entity_id": "lead-1"},
        )

        response = handler(event, None)

        assert response["statusCode"] == 200
        (entry,) = _parse_body(response)
        assert entry["session_id"] == seeded["session_id"]
        assert entry["type"] == "session"
        assert entry["is_active"] is True
        assert entry["pages"][0]["url"] == "https://site.test/"

    def test_invalid_entity_type_is_400(self, dynamodb_table, api_gateway_event):
        from api.visitor_activity import handler

        event = api_gateway_event(
            path="/track/timeline/deal/d-1",
            path_params={"entity_type": "deal", "entity_id": "d-1"},
        )

        assert handler(event, None)["statusCode"] == 400


class TestSessionRoute:
    def test_session_detail(self, dynamodb_table, api_gateway_event):
        from api.visitor_activity import handler

        seeded = _seed_visit(api_gateway_event, utm_source="ads")
        event = api_gateway_event(
            path=f"/track/sessions/{seeded['session_id']}",
            path_params={"session_id": seeded["session_id"]},
        )

        response = handler(event, None)

        assert response["statusCode"] == 200
        body = _parse_body(response)
        assert body["utm_source"] == "ads"
        assert body["entry_page"] == "https://site.test/"

    def test_unknown_session_is_404(self, dynamodb_table, api_gateway_event):
        from api.visitor_activity import handler

        event = api_gateway_event(path="/track/sessions/ghost", path_params={"session_id": "ghost"})

        assert handler(event, None)["statusCode"] == 404


class TestActiveVisitorsRoute:
    def test_active_visitors(self, dynamodb_table, api_gateway_event):
        from api.visitor_activity import handler

        _seed_visit(api_gateway_event, visitor_id="v-1")
        _seed_visit(api_gateway_event, visitor_id="v-2")

        response = handler(
            api_gateway_event(path="/track/active-visitors", query_params={"minutes": "5"}), None
        )

        assert response["statusCode"] == 200
        body = _parse_body(response)
        assert body["total_active"] == 2
        assert {v["visitor_id"] for v in body["visitors"]} == {"v-1", "v-2"}

    def test_invalid_minutes(self, dynamodb_table, api_gateway_event):
        from api.visitor_activity import handler

        for minutes in ("0", "abc"):
            event = api_gateway_event(path="/track/active-visitors", query_params={"minutes": minutes})
            assert handler(event, None)["statusCode"] == 400


class TestRouting:
    def test_post_is_not_allowed(self, dynamodb_table, api_gateway_event):
        from api.visitor_activity import handler

        event = api_gateway_event(method="POST", path="/track/visitor-summary/v-1")

        assert handler(event, None)["statusCode"] == 405
