"""
Tool listing and dispatch. Every call validates credentials first;
a failed validation becomes AuthenticationRequired, never a raw refresh error.
"""
import logging
from typing import Callable

from calendar_auth.bootstrap import GoogleClient
from calendar_server.calendar_api import CalendarAPI
from calendar_server.config import AUTH_REQUIRED_MESSAGE
from calendar_server.schemas import (
    CreateEventArguments,
    DeleteEventArguments,
    ListEventsArguments,
    NoArguments,
    UpdateEventArguments,
)

logger = logging.getLogger(__name__)


class AuthenticationRequired(Exception):
    def __init__(self, message: str = AUTH_REQUIRED_MESSAGE):
        super().__init__(message)


class UnknownToolError(Exception):
    pass


def _text(text: str) -> dict:
    return {"content": [{"type": "text", "text": text}]}


def _event_body(args: CreateEventArguments | UpdateEventArguments) -> dict:
    """Request body for insert/patch; unset fields are omitted so patch leaves them alone."""
    body = {
        "summary": args.summary,
        "description": args.description,
        "location": args.location,
        "colorId": args.colorId,
    }
    if args.start:
        body["start"] = {"dateTime": args.start}
    if args.end:
        body["end"] = {"dateTime": args.end}
    if args.attendees is not None:
        body["attendees"] = [a.model_dump() for a in args.attendees]
    if args.reminders is not None:
        body["reminders"] = args.reminders.model_dump(exclude_none=True)
    return {k: v for k, v in body.items() if v is not None}


def format_event(event: dict) -> str:
    lines = [f"{event.get('summary') or 'Untitled'} ({event.get('id') or 'no-id'})"]
    if event.get("location"):
        lines.append(f"Location: {event['location']}")
    start = event.get("start") or {}
    end = event.get("end") or {}
    lines.append(f"Start: {start.get('dateTime') or start.get('date') or 'unspecified'}")
    lines.append(f"End: {end.get('dateTime') or end.get('date') or 'unspecified'}")
    if event.get("attendees"):
        attendees = ", ".join(
            f"{a.get('email') or 'no-email'} ({a.get('responseStatus') or 'unknown'})" for a in event["attendees"]
        )
        lines.append(f"Attendees: {attendees}")
    if event.get("colorId"):
        lines.append(f"Color ID: {event['colorId']}")
    reminders = event.get("reminders")
    if reminders:
        if reminders.get("useDefault"):
            desc = "Using default"
        else:
            desc = ", ".join(
                f"{r.get('method')} {r.get('minutes')} minutes before" for r in reminders.get("overrides") or []
            ) or "None"
        lines.append(f"Reminders: {desc}")
    return "\n".join(lines) + "\n"


def _list_calendars(api: CalendarAPI, args: NoArguments) -> dict:
    calendars = api.list_calendars()
    return _text("\n".join(f"{c.get('summary') or 'Untitled'} ({c.get('id') or 'no-id'})" for c in calendars))


def _list_events(api: CalendarAPI, args: ListEventsArguments) -> dict:
    events = api.list_events(args.calendarId, args.timeMin, args.timeMax, args.maxResults)
    return _text("\n".join(format_event(e) for e in events))


def _list_colors(api: CalendarAPI, args: NoArguments) -> dict:
    colors = api.get_colors().get("event", {})
    color_list = "\n".join(
        f"Color ID: {color_id} - {info.get('background')} (background) / {info.get('foreground')} (foreground)"
        for color_id, info in colors.items()
    )
    return _text(f"Available event colors:\n{color_list}")


def _create_event(api: CalendarAPI, args: CreateEventArguments) -> dict:
    event = api.insert_event(args.calendarId, _event_body(args))
    return _text(f"Event created: {event.get('summary')} ({event.get('id')})")


def _update_event(api: CalendarAPI, args: UpdateEventArguments) -> dict:
    event = api.patch_event(args.calendarId, args.eventId, _event_body(args))
    return _text(f"Event updated: {event.get('summary')} ({event.get('id')})")


def _delete_event(api: CalendarAPI, args: DeleteEventArguments) -> dict:
    api.delete_event(args.calendarId, args.eventId)
    return _text("Event deleted successfully")


# name -> (description, argument model, handler)
TOOLS: dict[str, tuple[str, type, Callable]] = {
    "list-calendars": ("List all available calendars", NoArguments, _list_calendars),
    "list-events": ("List events from a calendar", ListEventsArguments, _list_events),
    "list-colors": ("List available color IDs for calendar events", NoArguments, _list_colors),
    "create-event": ("Create a new calendar event", CreateEventArguments, _create_event),
    "update-event": ("Update an existing calendar event", UpdateEventArguments, _update_event),
    "delete-event": ("Delete a calendar event", DeleteEventArguments, _delete_event),
}


def list_tools() -> list[dict]:
    return [
        {"name": name, "description": description, "inputSchema": model.model_json_schema()}
        for name, (description, model, _) in TOOLS.items()
    ]


class ToolDispatcher:
    def __init__(self, google_client: GoogleClient, api: CalendarAPI | None = None):
        self.google_client = google_client
        self.api = api or CalendarAPI(google_client.get_access_token)

    def dispatch(self, name: str, arguments: dict | None = None) -> dict:
        """
        Validate credentials, parse arguments, run the tool.
        Raises AuthenticationRequired, UnknownToolError, pydantic.ValidationError, CalendarAPIError.
        """
        token_manager = self.google_client.token_manager
        if token_manager is not None and not token_manager.validate():
            raise AuthenticationRequired()
        if name not in TOOLS:
            raise UnknownToolError(f"Unknown tool: {name}")
        _, model, handler = TOOLS[name]
        args = model.model_validate(arguments or {})
        logger.info("Calling tool %s", name)
        return handler(self.api, args)
