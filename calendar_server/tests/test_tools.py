"""Tests for tool dispatch: credential validation gate, argument validation, result text."""
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from calendar_auth.bootstrap import GoogleClient
from calendar_server.calendar_api import CalendarAPI, CalendarAPIError
from calendar_server.tools import (
    AuthenticationRequired,
    ToolDispatcher,
    UnknownToolError,
    format_event,
    list_tools,
)


class StubTokenManager:
    def __init__(self, valid=True):
        self.valid = valid
        self.validate_calls = 0

    def validate(self):
        self.validate_calls += 1
        return self.valid


class FakeAPI:
    def __init__(self):
        self.calls = []

    def list_calendars(self):
        return [{"id": "primary", "summary": "Main"}, {"id": "team@group"}]

    def list_events(self, calendar_id, time_min=None, time_max=None, max_results=None):
        self.calls.append(("list_events", calendar_id, time_min, time_max, max_results))
        return [{"id": "e1", "summary": "Standup", "start": {"dateTime": "2025-01-01T09:00:00Z"}, "end": {"date": "2025-01-01"}}]

    def get_colors(self):
        return {"event": {"1": {"background": "#a4bdfc", "foreground": "#1d1d1d"}}}

    def insert_event(self, calendar_id, body):
        self.calls.append(("insert_event", calendar_id, body))
        return {"id": "new-id", **body}

    def patch_event(self, calendar_id, event_id, body):
        self.calls.append(("patch_event", calendar_id, event_id, body))
        return {"id": event_id, "summary": body.get("summary", "Old title")}

    def delete_event(self, calendar_id, event_id):
        self.calls.append(("delete_event", calendar_id, event_id))


@pytest.fixture
def api():
    return FakeAPI()


@pytest.fixture
def token_manager():
    return StubTokenManager()


@pytest.fixture
def dispatcher(api, token_manager):
    google_client = GoogleClient(credentials=None, token_manager=token_manager)
    return ToolDispatcher(google_client, api)


def test_list_tools_exposes_all_tools_with_schemas():
    tools = {t["name"]: t for t in list_tools()}
    assert set(tools) == {"list-calendars", "list-events", "list-colors", "create-event", "update-event", "delete-event"}
    schema = tools["create-event"]["inputSchema"]
    assert set(schema["required"]) == {"calendarId", "summary", "start", "end"}
    assert "calendarId" in tools["list-events"]["inputSchema"]["required"]


def test_validation_runs_before_every_call(dispatcher, token_manager):
    dispatcher.dispatch("list-calendars")
    dispatcher.dispatch("list-colors")
    assert token_manager.validate_calls == 2


def test_invalid_credentials_raise_authentication_required(dispatcher, token_manager, api):
    token_manager.valid = False
    with pytest.raises(AuthenticationRequired) as exc:
        dispatcher.dispatch("list-calendars")
    assert "Authentication required" in str(exc.value)
    assert api.calls == []


def test_service_account_client_skips_validation(api):
    dispatcher = ToolDispatcher(GoogleClient(credentials=object()), api)
    result = dispatcher.dispatch("list-calendars")
    assert "Main (primary)" in result["content"][0]["text"]


def test_unknown_tool(dispatcher):
    with pytest.raises(UnknownToolError):
        dispatcher.dispatch("drop-calendar")


def test_invalid_arguments(dispatcher):
    with pytest.raises(ValidationError):
        dispatcher.dispatch("create-event", {"calendarId": "primary", "summary": "x"})


def test_list_calendars_text(dispatcher):
    result = dispatcher.dispatch("list-calendars")
    assert result == {"content": [{"type": "text", "text": "Main (primary)\nUntitled (team@group)"}]}


def test_list_events_passes_filters(dispatcher, api):
    result = dispatcher.dispatch("list-events", {"calendarId": "primary", "timeMin": "2025-01-01T00:00:00Z"})
    assert api.calls == [("list_events", "primary", "2025-01-01T00:00:00Z", None, None)]
    text = result["content"][0]["text"]
    assert "Standup (e1)" in text
    assert "Start: 2025-01-01T09:00:00Z" in text
    assert "End: 2025-01-01" in text


def test_list_colors_text(dispatcher):
    text = dispatcher.dispatch("list-colors")["content"][0]["text"]
    assert text.startswith("Available event colors:\n")
    assert "Color ID: 1 - #a4bdfc (background) / #1d1d1d (foreground)" in text


def test_create_event_body(dispatcher, api):
    result = dispatcher.dispatch(
        "create-event",
        {
            "calendarId": "primary",
            "summary": "Review",
            "start": "2025-01-02T10:00:00Z",
            "end": "2025-01-02T11:00:00Z",
            "attendees": [{"email": "a@example.com"}],
            "reminders": {"useDefault": False, "overrides": [{"minutes": 10}]},
        },
    )
    _, calendar_id, body = api.calls[0]
    assert calendar_id == "primary"
    assert body["start"] == {"dateTime": "2025-01-02T10:00:00Z"}
    assert body["attendees"] == [{"email": "a@example.com"}]
    assert body["reminders"] == {"useDefault": False, "overrides": [{"method": "popup", "minutes": 10}]}
    assert "description" not in body
    assert result["content"][0]["text"] == "Event created: Review (new-id)"


def test_update_event_sends_only_given_fields(dispatcher, api):
    result = dispatcher.dispatch("update-event", {"calendarId": "primary", "eventId": "e1", "location": "Room 4"})
    assert api.calls == [("patch_event", "primary", "e1", {"location": "Room 4"})]
    assert result["content"][0]["text"] == "Event updated: Old title (e1)"


def test_delete_event(dispatcher, api):
    result = dispatcher.dispatch("delete-event", {"calendarId": "primary", "eventId": "e1"})
    assert api.calls == [("delete_event", "primary", "e1")]
    assert result["content"][0]["text"] == "Event deleted successfully"


def test_format_event_with_details():
    text = format_event(
        {
            "id": "e2",
            "summary": "Lunch",
            "location": "Cafe",
            "start": {"dateTime": "2025-01-01T12:00:00Z"},
            "end": {"dateTime": "2025-01-01T13:00:00Z"},
            "attendees": [{"email": "b@example.com", "responseStatus": "accepted"}, {}],
            "colorId": "5",
            "reminders": {"useDefault": False, "overrides": [{"method": "email", "minutes": 30}]},
        }
    )
    assert "Location: Cafe" in text
    assert "Attendees: b@example.com (accepted), no-email (unknown)" in text
    assert "Color ID: 5" in text
    assert "Reminders: email 30 minutes before" in text


def test_format_event_default_reminders():
    text = format_event({"reminders": {"useDefault": True}})
    assert text.startswith("Untitled (no-id)")
    assert "Start: unspecified" in text
    assert "Reminders: Using default" in text


# --- REST client ---


class MockResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.content = b"" if payload is None else b"{}"

    def json(self):
        if self._payload is None:
            raise ValueError("no body")
        return self._payload


def test_calendar_api_sends_bearer_token_and_encodes_ids():
    api = CalendarAPI(lambda: "at-123", base_url="https://calendar.test/v3")
    with patch("calendar_server.calendar_api.httpx.request", return_value=MockResponse(200, {"items": [{"id": "x"}]})) as req:
        items = api.list_events("team@group.calendar.google.com", time_min="2025-01-01T00:00:00Z")

    assert items == [{"id": "x"}]
    method, url = req.call_args.args
    assert method == "GET"
    assert url == "https://calendar.test/v3/calendars/team%40group.calendar.google.com/events"
    assert req.call_args.kwargs["headers"]["Authorization"] == "Bearer at-123"
    params = req.call_args.kwargs["params"]
    assert params["timeMin"] == "2025-01-01T00:00:00Z"
    assert "timeMax" not in params


def test_calendar_api_error_carries_message():
    api = CalendarAPI(lambda: "at", base_url="https://calendar.test/v3")
    with patch(
        "calendar_server.calendar_api.httpx.request",
        return_value=MockResponse(404, {"error": {"message": "Not Found"}}),
    ):
        with pytest.raises(CalendarAPIError) as exc:
            api.delete_event("primary", "missing")
    assert exc.value.status_code == 404
    assert exc.value.message == "Not Found"


def test_calendar_api_delete_returns_none_on_empty_body():
    api = CalendarAPI(lambda: "at", base_url="https://calendar.test/v3")
    with patch("calendar_server.calendar_api.httpx.request", return_value=MockResponse(204)):
        assert api.delete_event("primary", "e1") is None
