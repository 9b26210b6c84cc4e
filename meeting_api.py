# meeting_api.py
from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Dict, Any, Optional

import httpx
from dotenv import load_dotenv
from fastapi import APIRouter, Request
from starlette.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from access_gate import authorize
from date_utils import generate_time_slots, get_zone
from errors import InvalidInput
from meetings import MeetingRequest, create_instant_meeting, create_scheduled_meeting
from oauth_google import current_tokens, get_sid

load_dotenv(override=True)

router = APIRouter()
_templates: Optional[Jinja2Templates] = None
_http_client: Optional[httpx.Client] = None

TZ_NAME = os.getenv("TZ_NAME", "UTC")
CALENDAR_ID = os.getenv("CALENDAR_ID", "primary")
MEETING_DURATION_MIN = int(os.getenv("MEETING_DURATION_MIN", "60"))


def init(
    *,
    templates: Jinja2Templates,
    http_client: Optional[httpx.Client] = None,
):
    global _templates, _http_client
    _templates = templates
    _http_client = http_client


def _session_tokens(request: Request) -> Optional[Dict[str, Any]]:
    return current_tokens(get_sid(request), client=_http_client)


def _caller_tz(value: Any) -> str:
    if value is not None and not isinstance(value, str):
        raise InvalidInput("Invalid time zone")
    tz_name = (value or "").strip() or TZ_NAME
    get_zone(tz_name)  # raises InvalidInput on unknown zones
    return tz_name


async def _json_body(request: Request) -> Dict[str, Any]:
    raw = await request.body()
    if not raw:
        return {}
    try:
        payload = await request.json()
    except ValueError:
        raise InvalidInput("Request body must be JSON") from None
    if not isinstance(payload, dict):
        raise InvalidInput("Request body must be a JSON object")
    return payload


@router.get("/", response_class=HTMLResponse)
def home(request: Request):
    assert _templates is not None
    if not _session_tokens(request):
        return RedirectResponse("/login")
    tz_name = _caller_tz(request.query_params.get("timeZone"))
    now = datetime.now(timezone.utc)
    return _templates.TemplateResponse(
        request,
        "meetings.html",
        {"now": now, "tz_name": tz_name, "today": now.astimezone(get_zone(tz_name)).date().isoformat()},
    )


@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request):
    assert _templates is not None
    if _session_tokens(request):
        return RedirectResponse("/")
    return _templates.TemplateResponse(request, "login.html", {})


@router.post("/api/instant-meeting")
async def instant_meeting(request: Request):
    # token refresh and the calendar calls block, keep them off the event loop
    token = authorize(await run_in_threadpool(_session_tokens, request))
    payload = await _json_body(request)
    tz_name = _caller_tz(payload.get("timeZone"))

    meeting = await run_in_threadpool(
        create_instant_meeting,
        token,
        tz_name=tz_name,
        calendar_id=CALENDAR_ID,
        duration_min=MEETING_DURATION_MIN,
        client=_http_client,
    )
    return meeting.to_dict()


@router.post("/api/schedule-meeting")
async def schedule_meeting(request: Request):
    token = authorize(await run_in_threadpool(_session_tokens, request))
    payload = await _json_body(request)
    tz_name = _caller_tz(payload.get("timeZone"))

    meeting = await run_in_threadpool(
        create_scheduled_meeting,
        token,
        MeetingRequest.from_payload(payload),
        tz_name=tz_name,
        calendar_id=CALENDAR_ID,
        duration_min=MEETING_DURATION_MIN,
        client=_http_client,
    )
    return meeting.to_dict()


@router.get("/api/time-slots")
def time_slots(date: str, timeZone: Optional[str] = None):
    try:
        day = datetime.strptime(date, "%Y-%m-%d").date()
    except ValueError:
        raise InvalidInput("Invalid date format") from None

    slots = generate_time_slots(day, tz_name=_caller_tz(timeZone))
    return {"slots": [s.to_dict() for s in slots]}
