"""Time helpers shared by session provisioning and the remote clients."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collab.services.host import Activity
    from collab.services.remote.base import RemoteSessionClient

# Duration value meaning "runs until the end of the course".
DURATION_OF_COURSE = 9999

# 3000-01-01 00:00 UTC
OPEN_ENDED_ANCHOR = calendar.timegm((3000, 1, 1, 0, 0, 0))

WEEK_SECONDS = 7 * 24 * 60 * 60


@dataclass
class ActivityTimes:
    start: int
    end: int
    duration: int


def compute_end_time(start: int, duration: int) -> int:
    if int(duration) == DURATION_OF_COURSE:
        return OPEN_ENDED_ANCHOR
    return int(start) + int(duration)


def is_open_ended(end: int) -> bool:
    # A week of slack absorbs timezone drift around the anchor.
    return int(end) >= OPEN_ENDED_ANCHOR - WEEK_SECONDS


def boundary_time() -> int:
    """Minutes attendees may join before the session starts."""
    return 15


def get_times(activity: "Activity") -> ActivityTimes:
    return ActivityTimes(
        start=int(activity.time_start),
        end=compute_end_time(activity.time_start, activity.duration),
        duration=int(activity.duration),
    )


def calendar_duration(start: int, end: int) -> int:
    """Duration to show in the host calendar; open-ended activities show none."""
    if not end or is_open_ended(end):
        return 0
    return int(end) - int(start)


def to_utc(value: int | str | datetime) -> int:
    """Normalise a server time to a UTC epoch.

    The value is read as a local wall-clock time and that reading is then
    taken to be UTC. The server offset is dropped, not converted: a server
    at UTC+2 turns 10:00 local into 10:00 UTC. The conferencing service
    has always been fed times this way, so callers needing a real timezone
    conversion must not use this.

    Accepted forms: epoch int, numeric string, ISO-ish local time string,
    a string ending in 'Z' (already UTC, returned as is) or a datetime.
    """
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            value = int(text)
        elif text.endswith("Z"):
            parsed = datetime.fromisoformat(text[:-1])
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return int(parsed.timestamp())
        else:
            value = datetime.fromisoformat(text)

    if isinstance(value, datetime):
        wall = value.astimezone() if value.tzinfo is not None else value
    else:
        wall = datetime.fromtimestamp(int(value))

    return calendar.timegm(wall.replace(tzinfo=None).timetuple())


def api_times(start: int, duration: int, client: "RemoteSessionClient") -> tuple[str, str]:
    """Start and end of a session, formatted for the remote service."""
    utc_start = to_utc(start)
    utc_end = compute_end_time(utc_start, duration)
    return client.api_datetime(utc_start), client.api_datetime(utc_end)
