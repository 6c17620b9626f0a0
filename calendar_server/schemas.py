"""
Tool argument models. JSON schemas for the tool listing are generated from them.
"""
from typing import Literal

from pydantic import BaseModel, Field


class Reminder(BaseModel):
    method: Literal["email", "popup"] = Field("popup", description="Reminder method (defaults to popup unless email is specified)")
    minutes: float = Field(..., description="Minutes before the event to trigger the reminder")


class Reminders(BaseModel):
    useDefault: bool = Field(..., description="Whether to use the default reminders")
    overrides: list[Reminder] | None = Field(
        None, description="Custom reminders (uses popup notifications by default unless email is specified)"
    )


class Attendee(BaseModel):
    email: str = Field(..., description="Email address of the attendee")


class NoArguments(BaseModel):
    pass


class ListEventsArguments(BaseModel):
    calendarId: str = Field(..., description="ID of the calendar to list events from")
    timeMin: str | None = Field(None, description="Start time in ISO format (optional)")
    timeMax: str | None = Field(None, description="End time in ISO format (optional)")
    maxResults: int | None = Field(None, description="Maximum number of events to return")


class CreateEventArguments(BaseModel):
    calendarId: str = Field(..., description="ID of the calendar to create the event in")
    summary: str = Field(..., description="Title of the event")
    description: str | None = Field(None, description="Description/notes for the event (optional)")
    start: str = Field(..., description="Start time in ISO format")
    end: str = Field(..., description="End time in ISO format")
    attendees: list[Attendee] | None = Field(None, description="List of attendee email addresses (optional)")
    location: str | None = Field(None, description="Location of the event (optional)")
    colorId: str | None = Field(None, description="Color ID for the event (optional, use list-colors to see available IDs)")
    reminders: Reminders | None = Field(None, description="Reminder settings for the event")


class UpdateEventArguments(BaseModel):
    calendarId: str = Field(..., description="ID of the calendar containing the event")
    eventId: str = Field(..., description="ID of the event to update")
    summary: str | None = Field(None, description="New title of the event (optional)")
    description: str | None = Field(None, description="New description for the event (optional)")
    start: str | None = Field(None, description="New start time in ISO format (optional)")
    end: str | None = Field(None, description="New end time in ISO format (optional)")
    attendees: list[Attendee] | None = Field(None, description="New list of attendee email addresses (optional)")
    location: str | None = Field(None, description="New location of the event (optional)")
    colorId: str | None = Field(None, description="New color ID for the event (optional)")
    reminders: Reminders | None = Field(None, description="New reminder settings for the event")


class DeleteEventArguments(BaseModel):
    calendarId: str = Field(..., description="ID of the calendar containing the event")
    eventId: str = Field(..., description="ID of the event to delete")


class ToolCall(BaseModel):
    name: str
    arguments: dict = Field(default_factory=dict)
