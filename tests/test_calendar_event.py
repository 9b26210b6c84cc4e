"""Wire contract with the Google Calendar events API."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from calendar_event import (
    EventSpec,
    ProviderError,
    build_event_body,
    create_google_calendar_event,
    delete_google_calendar_event,
    meeting_link_of,
    new_conference_request_id,
    parse_error_message,
)
from errors import ProviderFailure

pytestmark = pytest.mark.unit

START = datetime(2024, 1, 1, 15, 30, tzinfo=timezone.utc)


def _spec(**overrides):
    fields = dict(
        summary="Team Sync",
        description="Scheduled via Meeting Scheduler",
        start=START,
        end=START + timedelta(hours=1),
        conference_request_id="meet-1-abc",
    )
    fields.update(overrides)
    return EventSpec(**fields)


class TestBuildEventBody:
    def test_scheduled_body(self):
        body = build_event_body(_spec(), "Europe/London")

        assert body["summary"] == "Team Sync"
        assert body["start"] == {"dateTime": "2024-01-01T15:30:00Z", "timeZone": "Europe/London"}
        assert body["end"] == {"dateTime": "2024-01-01T16:30:00Z", "timeZone": "Europe/London"}
        assert body["conferenceData"]["createRequest"] == {
            "requestId": "meet-1-abc",
            "conferenceSolutionKey": {"type": "hangoutsMeet"},
        }
        assert "visibility" not in body
        assert "transparency" not in body
        assert "reminders" not in body

    def test_optional_fields(self):
        body = build_event_body(
            _spec(visibility="private", transparency="transparent", disable_reminders=True),
            "UTC",
        )
        assert body["visibility"] == "private"
        assert body["transparency"] == "transparent"
        assert body["reminders"] == {"useDefault": False, "overrides": []}

    def test_request_ids_are_unique(self):
        ids = {new_conference_request_id() for _ in range(50)}
        assert len(ids) == 50
        assert all(i.startswith("meet-") for i in ids)


class TestCreateEvent:
    def test_posts_event_with_bearer_token(self, google):
        created = create_google_calendar_event(
            access_token="tok", spec=_spec(), tz_name="UTC", client=google.client
        )

        assert created["id"] == "evt123"
        req = google.requests[0]
        assert req.method == "POST"
        assert req.url.path == "/calendar/v3/calendars/primary/events"
        assert req.url.params["conferenceDataVersion"] == "1"
        assert req.headers["Authorization"] == "Bearer tok"
        assert google.json_of(0)["summary"] == "Team Sync"

    def test_calendar_id_is_escaped(self, google):
        create_google_calendar_event(
            access_token="tok", spec=_spec(), tz_name="UTC",
            calendar_id="team@group.calendar.google.com", client=google.client,
        )
        assert google.requests[0].url.raw_path.startswith(b"/calendar/v3/calendars/team%40group")

    def test_provider_message_is_surfaced(self, google):
        google.create_status = 403
        google.create_body = {"error": {"code": 403, "message": "Insufficient  Permission"}}

        with pytest.raises(ProviderError) as exc_info:
            create_google_calendar_event(access_token="tok", spec=_spec(), tz_name="UTC", client=google.client)

        err = exc_info.value
        assert isinstance(err, ProviderFailure)
        assert err.code == 403
        assert err.parsed_message == "Insufficient Permission"
        assert err.message == "Failed to create meeting: Insufficient Permission"
        assert err.status_code == 502

    def test_malformed_error_body_falls_back(self, google):
        google.create_status = 500
        google.create_body = "<html>oops</html>"

        with pytest.raises(ProviderError) as exc_info:
            create_google_calendar_event(access_token="tok", spec=_spec(), tz_name="UTC", client=google.client)

        assert exc_info.value.parsed_message is None
        assert exc_info.value.raw_body == "<html>oops</html>"
        assert exc_info.value.message == "Failed to create meeting: Unknown error"

    def test_success_without_id_is_a_failure(self, google):
        google.create_body = {"hangoutLink": "https://meet.google.com/x"}
        with pytest.raises(ProviderError):
            create_google_calendar_event(access_token="tok", spec=_spec(), tz_name="UTC", client=google.client)

    def test_success_with_invalid_json(self, google):
        google.create_body = "not json"
        with pytest.raises(ProviderError):
            create_google_calendar_event(access_token="tok", spec=_spec(), tz_name="UTC", client=google.client)

    def test_transport_error(self, google):
        google.raise_on = "POST"
        with pytest.raises(ProviderError) as exc_info:
            create_google_calendar_event(access_token="tok", spec=_spec(), tz_name="UTC", client=google.client)
        assert exc_info.value.code is None


class TestDeleteEvent:
    def test_deletes_by_id(self, google):
        delete_google_calendar_event(access_token="tok", event_id="evt123", client=google.client)

        req = google.requests[0]
        assert req.method == "DELETE"
        assert req.url.path == "/calendar/v3/calendars/primary/events/evt123"
        assert req.headers["Authorization"] == "Bearer tok"

    def test_failure_raises(self, google):
        google.delete_status = 404
        google.delete_body = {"error": {"message": "Not Found"}}
        with pytest.raises(ProviderError, match="Not Found"):
            delete_google_calendar_event(access_token="tok", event_id="evt123", client=google.client)


class TestResponseHelpers:
    def test_error_message_as_string(self):
        resp = httpx.Response(400, json={"error": "invalid_request"})
        assert parse_error_message(resp) == "invalid_request"

    def test_error_message_missing(self):
        assert parse_error_message(httpx.Response(400, json=[1, 2])) is None
        assert parse_error_message(httpx.Response(400, content=b"")) is None

    def test_link_from_hangout_link(self):
        assert meeting_link_of({"hangoutLink": "https://meet.google.com/a"}) == "https://meet.google.com/a"

    def test_link_from_entry_points(self):
        event = {
            "conferenceData": {
                "entryPoints": [
                    {"entryPointType": "phone", "uri": "tel:+1-555"},
                    {"entryPointType": "video", "uri": "https://meet.google.com/b"},
                ]
            }
        }
        assert meeting_link_of(event) == "https://meet.google.com/b"

    def test_no_link(self):
        assert meeting_link_of({"id": "x"}) is None
