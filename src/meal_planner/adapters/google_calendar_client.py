"""Google Calendar v3 API client."""

import logging
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote

import httpx

from meal_planner.domain.errors import CalendarApiError, MissingCredentialsError
from meal_planner.domain.sync import CalendarInfo

_logger = logging.getLogger(__name__)


class CalendarClient(Protocol):
    """Interface for remote calendar interactions."""

    async def list_events(
        self, calendar_id: str, time_min: str, time_max: str
    ) -> list[dict[str, object]]:
        """Return raw events starting within [time_min, time_max]."""

    async def create_event(
        self, calendar_id: str, payload: dict[str, object]
    ) -> dict[str, object]:
        """Create an event and return the raw created event."""

    async def delete_event(self, calendar_id: str, event_id: str) -> bool:
        """Delete an event; a missing event counts as deleted."""

    async def list_calendars(self) -> list[CalendarInfo]:
        """Return the calendars the account can see."""

    async def has_access(self) -> bool:
        """Return whether the current credentials can read the calendar list."""


@dataclass
class HttpxGoogleCalendarClient(CalendarClient):
    """HTTPX-backed Google Calendar client using a bearer token."""

    access_token: str
    base_url: str
    http_client: httpx.AsyncClient
    page_size: int = 250

    @classmethod
    def create(
        cls,
        access_token: str,
        base_url: str = "https://www.googleapis.com/calendar/v3",
    ) -> "HttpxGoogleCalendarClient":
        """Create a calendar client with a managed httpx session."""
        return cls(
            access_token=access_token,
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(),
        )

    async def list_events(
        self, calendar_id: str, time_min: str, time_max: str
    ) -> list[dict[str, object]]:
        """List single-instance events ordered by start time, across pages."""
        url = f"{self._calendar_url(calendar_id)}/events"
        params: dict[str, object] = {
            "timeMin": time_min,
            "timeMax": time_max,
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": self.page_size,
        }
        items: list[dict[str, object]] = []
        while True:
            payload = await self._request("GET", url, params=params)
            items.extend(payload.get("items") or [])
            page_token = payload.get("nextPageToken")
            if not page_token:
                return items
            params = {**params, "pageToken": page_token}

    async def create_event(
        self, calendar_id: str, payload: dict[str, object]
    ) -> dict[str, object]:
        """Create an event in the calendar."""
        url = f"{self._calendar_url(calendar_id)}/events"
        created = await self._request("POST", url, json=payload)
        if not created.get("id"):
            raise CalendarApiError("Calendar did not return an event id")
        return created

    async def delete_event(self, calendar_id: str, event_id: str) -> bool:
        """Delete an event, treating 404 and 410 as already deleted."""
        url = f"{self._calendar_url(calendar_id)}/events/{quote(event_id, safe='')}"
        await self._request("DELETE", url, allow_missing=True)
        return True

    async def list_calendars(self) -> list[CalendarInfo]:
        """List the account's calendars across pages."""
        url = f"{self.base_url}/users/me/calendarList"
        params: dict[str, object] = {"maxResults": self.page_size}
        calendars: list[CalendarInfo] = []
        while True:
            payload = await self._request("GET", url, params=params)
            calendars.extend(
                _parse_calendar(item)
                for item in payload.get("items") or []
                if isinstance(item, dict) and item.get("id")
            )
            page_token = payload.get("nextPageToken")
            if not page_token:
                return calendars
            params = {**params, "pageToken": page_token}

    async def has_access(self) -> bool:
        """Check the token by reading one calendar list entry."""
        url = f"{self.base_url}/users/me/calendarList"
        try:
            await self._request("GET", url, params={"maxResults": 1})
        except CalendarApiError as exc:
            _logger.warning("Calendar access check failed: %s", exc)
            return False
        return True

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    def _calendar_url(self, calendar_id: str) -> str:
        return f"{self.base_url}/calendars/{quote(calendar_id, safe='')}"

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, object] | None = None,
        json: dict[str, object] | None = None,
        allow_missing: bool = False,
    ) -> dict[str, object]:
        if not self.access_token:
            raise MissingCredentialsError(
                "No Google access token found. Please sign in again.", 401
            )
        try:
            response = await self.http_client.request(
                method,
                url,
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {self.access_token}"},
                timeout=15,
            )
        except httpx.HTTPError as exc:
            raise CalendarApiError(f"Calendar request failed: {exc}") from exc

        if allow_missing and response.status_code in {404, 410}:
            return {}
        if response.status_code == 401:
            raise MissingCredentialsError(
                _error_message(response, "Google access token rejected"), 401
            )
        if response.is_error:
            raise CalendarApiError(
                _error_message(response, "Calendar request failed"),
                response.status_code,
            )
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()


def _error_message(response: httpx.Response, fallback: str) -> str:
    """Extract Google's error message from a failed response."""
    try:
        payload = response.json()
    except ValueError:
        return f"{fallback} (status {response.status_code})"
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return f"{fallback} (status {response.status_code})"


def _parse_calendar(item: dict[str, object]) -> CalendarInfo:
    return CalendarInfo(
        id=str(item["id"]),
        summary=str(item.get("summaryOverride") or item.get("summary") or item["id"]),
        primary=bool(item.get("primary", False)),
        access_role=_optional_str(item.get("accessRole")),
        description=_optional_str(item.get("description")),
        background_color=_optional_str(item.get("backgroundColor")),
    )


def _optional_str(value: object) -> str | None:
    return value if isinstance(value, str) and value else None
