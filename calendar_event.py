# calendar_event.py
from __future__ import annotations

import logging
import uuid
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any
from urllib.parse import quote

import httpx

from date_utils import to_wire
from errors import ProviderFailure

logger = logging.getLogger(__name__)

GOOGLE_CAL_API = "https://www.googleapis.com/calendar/v3"
CONFERENCE_SOLUTION_TYPE = "hangoutsMeet"
UNKNOWN_ERROR = "Unknown error"


class ProviderError(ProviderFailure):
    """Non-success answer from Google Calendar (or no answer at all)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        raw_body: str = "",
        parsed_message: Optional[str] = None,
    ):
        self.code = status_code
        self.raw_body = raw_body
        self.parsed_message = parsed_message
        super().__init__(message)


def new_conference_request_id() -> str:
    # must differ per create call, otherwise Google hands back the same conference
    return f"meet-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


@dataclass
class EventSpec:
    summary: str
    description: str
    start: datetime
    end: datetime
    conference_request_id: str
    visibility: Optional[str] = None
    transparency: Optional[str] = None
    disable_reminders: bool = False


def build_event_body(spec: EventSpec, tz_name: str) -> Dict[str, Any]:
    """
    Event JSON with a Meet conference-creation request.
    conferenceData only takes effect with conferenceDataVersion=1 in the query.
    """
    body: Dict[str, Any] = {
        "summary": spec.summary,
        "description": spec.description,
        "start": {"dateTime": to_wire(spec.start), "timeZone": tz_name},
        "end": {"dateTime": to_wire(spec.end), "timeZone": tz_name},
        "conferenceData": {
            "createRequest": {
                "requestId": spec.conference_request_id,
                "conferenceSolutionKey": {"type": CONFERENCE_SOLUTION_TYPE},
            }
        },
    }
    if spec.visibility:
        body["visibility"] = spec.visibility
    if spec.transparency:
        body["transparency"] = spec.transparency
    if spec.disable_reminders:
        body["reminders"] = {"useDefault": False, "overrides": []}
    return body


def parse_error_message(resp: httpx.Response) -> Optional[str]:
    try:
        payload = resp.json()
    except ValueError:
        return None

    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message.strip():
                return " ".join(message.split())[:200]
        if isinstance(error, str) and error.strip():
            return " ".join(error.split())[:200]
    return None


def _raise_for_provider(resp: httpx.Response, action: str) -> None:
    if 200 <= resp.status_code < 300:
        return
    parsed = parse_error_message(resp)
    logger.warning("Google Calendar %s failed: status=%s message=%s", action, resp.status_code, parsed)
    raise ProviderError(
        f"Failed to {action}: {parsed or UNKNOWN_ERROR}",
        status_code=resp.status_code,
        raw_body=resp.text,
        parsed_message=parsed,
    )


def _send(
    method: str,
    url: str,
    *,
    access_token: str,
    action: str,
    client: Optional[httpx.Client],
    **kwargs: Any,
) -> httpx.Response:
    headers = {"Authorization": f"Bearer {access_token}"}
    if "json" in kwargs:
        headers["Content-Type"] = "application/json"
    try:
        if client is not None:
            return client.request(method, url, headers=headers, **kwargs)
        with httpx.Client(timeout=25) as own_client:
            return own_client.request(method, url, headers=headers, **kwargs)
    except httpx.HTTPError as e:
        logger.warning("Google Calendar %s request error: %s", action, type(e).__name__)
        raise ProviderError(f"Failed to {action}: {UNKNOWN_ERROR}") from e


def meeting_link_of(event: Dict[str, Any]) -> Optional[str]:
    link = event.get("hangoutLink")
    if link:
        return link
    conference = event.get("conferenceData") or {}
    for entry in conference.get("entryPoints") or []:
        if isinstance(entry, dict) and entry.get("entryPointType") == "video" and entry.get("uri"):
            return entry["uri"]
    return None


def create_google_calendar_event(
    *,
    access_token: str,
    spec: EventSpec,
    tz_name: str,
    calendar_id: str = "primary",
    client: Optional[httpx.Client] = None,
) -> Dict[str, Any]:
    """
    Create a Google Calendar event that carries a Google Meet link (conferenceData).
    Returns the created event resource.
    """
    url = f"{GOOGLE_CAL_API}/calendars/{quote(calendar_id, safe='')}/events"
    resp = _send(
        "POST",
        url,
        access_token=access_token,
        action="create meeting",
        client=client,
        params={"conferenceDataVersion": 1},
        json=build_event_body(spec, tz_name),
    )
    _raise_for_provider(resp, "create meeting")

    try:
        created = resp.json()
    except ValueError as e:
        raise ProviderError(
            "Failed to create meeting: provider returned invalid JSON",
            status_code=resp.status_code,
            raw_body=resp.text,
        ) from e
    if not isinstance(created, dict) or not created.get("id"):
        raise ProviderError(
            "Failed to create meeting: provider response has no event id",
            status_code=resp.status_code,
            raw_body=resp.text,
        )

    logger.info("Created calendar event %s", created["id"])
    return created


def delete_google_calendar_event(
    *,
    access_token: str,
    event_id: str,
    calendar_id: str = "primary",
    client: Optional[httpx.Client] = None,
) -> None:
    url = (
        f"{GOOGLE_CAL_API}/calendars/{quote(calendar_id, safe='')}"
        f"/events/{quote(event_id, safe='')}"
    )
    resp = _send("DELETE", url, access_token=access_token, action="delete event", client=client)
    _raise_for_provider(resp, "delete event")
    logger.info("Deleted calendar event %s", event_id)
