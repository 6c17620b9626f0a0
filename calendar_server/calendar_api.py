"""
Minimal Google Calendar v3 REST client over httpx.
Bearer token comes from the Google client (validated by the dispatcher before each call).
"""
import logging
from typing import Any, Callable
from urllib.parse import quote

import httpx

from calendar_auth.config import HTTP_TIMEOUT
from calendar_server.config import CALENDAR_API_BASE

logger = logging.getLogger(__name__)


class CalendarAPIError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(f"Calendar API error {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class CalendarAPI:
    def __init__(self, get_access_token: Callable[[], str], base_url: str = CALENDAR_API_BASE):
        self.get_access_token = get_access_token
        self.base_url = base_url

    def _request(self, method: str, path: str, *, params: dict | None = None, json: dict | None = None) -> Any:
        try:
            r = httpx.request(
                method,
                f"{self.base_url}{path}",
                params={k: v for k, v in (params or {}).items() if v is not None},
                json=json,
                headers={"Authorization": f"Bearer {self.get_access_token()}", "Accept": "application/json"},
                timeout=HTTP_TIMEOUT,
            )
        except httpx.HTTPError as e:
            raise CalendarAPIError(502, f"Request failed: {e}") from e
        if r.status_code >= 400:
            try:
                message = r.json().get("error", {}).get("message") or r.text
            except (ValueError, AttributeError):
                message = r.text
            logger.warning("%s %s -> %s", method, path, r.status_code)
            raise CalendarAPIError(r.status_code, message)
        if r.status_code == 204 or not r.content:
            return None
        return r.json()

    @staticmethod
    def _cal(calendar_id: str) -> str:
        return quote(calendar_id, safe="")

    def list_calendars(self) -> list[dict]:
        return (self._request("GET", "/users/me/calendarList") or {}).get("items", [])

    def list_events(
        self,
        calendar_id: str,
        time_min: str | None = None,
        time_max: str | None = None,
        max_results: int | None = None,
    ) -> list[dict]:
        data = self._request(
            "GET",
            f"/calendars/{self._cal(calendar_id)}/events",
            params={
                "timeMin": time_min,
                "timeMax": time_max,
                "maxResults": max_results,
                "singleEvents": "true",
                "orderBy": "startTime",
            },
        )
        return (data or {}).get("items", [])

    def get_colors(self) -> dict:
        return self._request("GET", "/colors") or {}

    def insert_event(self, calendar_id: str, body: dict) -> dict:
        return self._request("POST", f"/calendars/{self._cal(calendar_id)}/events", json=body)

    def patch_event(self, calendar_id: str, event_id: str, body: dict) -> dict:
        return self._request(
            "PATCH", f"/calendars/{self._cal(calendar_id)}/events/{quote(event_id, safe='')}", json=body
        )

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        self._request("DELETE", f"/calendars/{self._cal(calendar_id)}/events/{quote(event_id, safe='')}")
