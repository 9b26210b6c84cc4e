# meetings.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import httpx

from calendar_event import (
    EventSpec,
    ProviderError,
    create_google_calendar_event,
    delete_google_calendar_event,
    meeting_link_of,
    new_conference_request_id,
)
from date_utils import parse_datetime, parse_iso_datetime, to_wire
from errors import InvalidInput, ProviderFailure

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MIN = 60
INSTANT_TITLE = "Instant Meeting"
INSTANT_DESCRIPTION = "Instant meeting created via Meeting Scheduler"
DEFAULT_TITLE = "Scheduled Meeting"
SCHEDULED_DESCRIPTION = "Scheduled via Meeting Scheduler"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class MeetingRequest:
    date_time: Optional[str] = None
    title: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "MeetingRequest":
        return cls(date_time=payload.get("dateTime"), title=payload.get("title"))


@dataclass
class Meeting:
    meeting_link: str
    meeting_id: str
    start_time: datetime
    end_time: datetime

    def to_dict(self) -> Dict[str, str]:
        return {
            "meetingLink": self.meeting_link,
            "meetingId": self.meeting_id,
            "startTime": to_wire(self.start_time),
            "endTime": to_wire(self.end_time),
        }


def _meeting_from_event(created: Dict[str, Any], start: datetime, end: datetime) -> Meeting:
    link = meeting_link_of(created)
    if not link:
        raise ProviderFailure("Failed to create meeting: no conference link in provider response")
    return Meeting(meeting_link=link, meeting_id=created["id"], start_time=start, end_time=end)


def _compensate(
    access_token: str,
    event_id: str,
    *,
    calendar_id: str,
    client: Optional[httpx.Client],
    log: logging.Logger,
) -> bool:
    """Best-effort removal of the throwaway event. False when it stays on the calendar."""
    try:
        delete_google_calendar_event(
            access_token=access_token,
            event_id=event_id,
            calendar_id=calendar_id,
            client=client,
        )
    except ProviderError as e:
        log.warning("Could not remove instant meeting event %s from calendar: %s", event_id, e.message)
        return False
    return True


def create_instant_meeting(
    access_token: str,
    *,
    tz_name: str = "UTC",
    calendar_id: str = "primary",
    duration_min: int = DEFAULT_DURATION_MIN,
    client: Optional[httpx.Client] = None,
    now: Callable[[], datetime] = _utc_now,
    log: logging.Logger = logger,
) -> Meeting:
    """
    Get a Meet link right now.

    Google only hands out Meet links attached to calendar events, so a private,
    transparent, reminder-free event is created for the link and then deleted
    again. The link stays valid after the event is gone.
    """
    start = now()
    end = start + timedelta(minutes=duration_min)
    spec = EventSpec(
        summary=INSTANT_TITLE,
        description=INSTANT_DESCRIPTION,
        start=start,
        end=end,
        conference_request_id=new_conference_request_id(),
        visibility="private",
        transparency="transparent",
        disable_reminders=True,
    )

    created = create_google_calendar_event(
        access_token=access_token,
        spec=spec,
        tz_name=tz_name,
        calendar_id=calendar_id,
        client=client,
    )
    _compensate(access_token, created["id"], calendar_id=calendar_id, client=client, log=log)

    meeting = _meeting_from_event(created, start, end)
    log.info("Instant meeting %s ready", meeting.meeting_id)
    return meeting


def _parse_start(raw: str, tz_name: str) -> datetime:
    dt = parse_iso_datetime(raw, tz_name)
    if dt is None:
        try:
            dt = parse_datetime(raw, tz_name)
        except InvalidInput:
            raise InvalidInput("Invalid date format") from None
    return dt.astimezone(timezone.utc)


def create_scheduled_meeting(
    access_token: str,
    request: MeetingRequest,
    *,
    tz_name: str = "UTC",
    calendar_id: str = "primary",
    duration_min: int = DEFAULT_DURATION_MIN,
    client: Optional[httpx.Client] = None,
    now: Callable[[], datetime] = _utc_now,
    log: logging.Logger = logger,
) -> Meeting:
    if request.date_time is not None and not isinstance(request.date_time, str):
        raise InvalidInput("Invalid date format")
    if request.title is not None and not isinstance(request.title, str):
        raise InvalidInput("Invalid title")
    if not request.date_time or not request.date_time.strip():
        raise InvalidInput("Missing required fields")

    start = _parse_start(request.date_time, tz_name)
    if start <= now():
        raise InvalidInput("Meeting time must be in the future")

    title = (request.title or "").strip() or DEFAULT_TITLE
    end = start + timedelta(minutes=duration_min)
    spec = EventSpec(
        summary=title,
        description=SCHEDULED_DESCRIPTION,
        start=start,
        end=end,
        conference_request_id=new_conference_request_id(),
    )

    created = create_google_calendar_event(
        access_token=access_token,
        spec=spec,
        tz_name=tz_name,
        calendar_id=calendar_id,
        client=client,
    )
    meeting = _meeting_from_event(created, start, end)
    log.info("Scheduled meeting %s for %s", meeting.meeting_id, to_wire(start))
    return meeting
