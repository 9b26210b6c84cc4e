# date_utils.py
from __future__ import annotations

import re
from dataclasses import dataclass, asdict
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from errors import InvalidInput

SLOT_MINUTES = 15

DISPLAY_RE = re.compile(r"^(\d{2})-(\d{2})-(\d{4}) (\d{1,2}):(\d{2})(am|pm)$")


@dataclass
class TimeSlot:
    value: str   # UTC wire string
    label: str   # e.g. "10:15am (15 mins)"

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def get_zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidInput(f"Unknown time zone: {tz_name}") from e


def to_wire(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_iso_datetime(s: str, tz_name: str = "UTC") -> Optional[datetime]:
    """
    Parse an ISO-8601 string.
    Accepts trailing 'Z' by converting to +00:00; naive values are read in tz_name.
    """
    if not s:
        return None
    try:
        s2 = s.strip()
        if s2.endswith("Z"):
            s2 = s2[:-1] + "+00:00"
        dt = datetime.fromisoformat(s2)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=get_zone(tz_name))
    return dt


def _clock_label(local: datetime) -> str:
    ampm = "pm" if local.hour >= 12 else "am"
    display_hours = local.hour % 12 or 12
    return f"{display_hours}:{local.minute:02d}{ampm}"


def format_datetime(dt: datetime, tz_name: str = "UTC") -> str:
    """Render `dt` as "dd-mm-yyyy h:mma" in tz_name. Seconds are dropped."""
    local = dt.astimezone(get_zone(tz_name))
    return f"{local.day:02d}-{local.month:02d}-{local.year} {_clock_label(local)}"


def parse_datetime(text: str, tz_name: str = "UTC") -> datetime:
    """Inverse of format_datetime. Raises InvalidInput on anything else."""
    m = DISPLAY_RE.match((text or "").strip())
    if not m:
        raise InvalidInput(f"Invalid date format: {text!r}")

    day, month, year, hours, minutes, ampm = m.groups()
    hours_i = int(hours)
    if not 1 <= hours_i <= 12:
        raise InvalidInput(f"Invalid date format: {text!r}")
    hours_i = hours_i % 12 + (12 if ampm == "pm" else 0)

    try:
        return datetime(
            int(year), int(month), int(day), hours_i, int(minutes),
            tzinfo=get_zone(tz_name),
        )
    except ValueError as e:
        raise InvalidInput(f"Invalid date format: {text!r}") from e


def next_time_slot(now: datetime) -> datetime:
    """Next quarter-hour boundary strictly after `now` (wall clock of now's zone)."""
    base = now.replace(second=0, microsecond=0)
    remainder = base.minute % SLOT_MINUTES
    minutes_to_add = SLOT_MINUTES if remainder == 0 else SLOT_MINUTES - remainder
    # step in UTC so a DST jump can't shift the quantum
    nxt = base.astimezone(timezone.utc) + timedelta(minutes=minutes_to_add)
    return nxt.astimezone(now.tzinfo)


def generate_time_slots(
    day: date,
    *,
    tz_name: str = "UTC",
    now: Optional[datetime] = None,
) -> List[TimeSlot]:
    tz = get_zone(tz_name)
    now_local = (now or datetime.now(timezone.utc)).astimezone(tz)
    today = now_local.date()

    if day < today:
        return []
    if day == today:
        current = next_time_slot(now_local)
    else:
        current = datetime.combine(day, time(0, 0), tzinfo=tz)

    slots: List[TimeSlot] = []
    step = timedelta(minutes=SLOT_MINUTES)
    current_utc = current.astimezone(timezone.utc)
    while True:
        local = current_utc.astimezone(tz)
        if local.date() != day:
            break
        minutes_suffix = local.minute if local.minute else "0"
        slots.append(TimeSlot(
            value=to_wire(current_utc),
            label=f"{_clock_label(local)} ({minutes_suffix} mins)",
        ))
        current_utc += step

    return slots
