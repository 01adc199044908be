"""Contract for remote conferencing session clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from collab.services.host import Activity, Course
from collab.services.time_utils import api_times, boundary_time


@dataclass
class Recording:
    recording_id: str
    session_id: str
    name: str
    duration: int = 0
    created: str | None = None
    url: str | None = None


@dataclass
class Attendees:
    """Chair (moderator) and non-chair user ids for a session."""

    moderators: list[int] = field(default_factory=list)
    participants: list[int] = field(default_factory=list)


@dataclass
class SessionDetails:
    """Everything the remote service needs to create or update a session."""

    name: str
    description: str
    start: str
    end: str
    boundary_minutes: int
    course_id: int
    group_id: int | None = None
    moderators: list[int] = field(default_factory=list)
    participants: list[int] = field(default_factory=list)


class RemoteSessionClient(Protocol):
    """Client contract for the conferencing service (REST, SOAP, testable)."""

    client_name: str

    def is_configured(self) -> bool:
        """Return whether transport credentials/config are available."""

    def verify(self) -> bool:
        """Check that the service answers with usable credentials."""

    def api_datetime(self, timestamp: int) -> str:
        """Render a UTC epoch the way the service expects it."""

    def create_session(
        self,
        activity: Activity,
        course: Course,
        group_id: int | None,
        attendees: Attendees | None = None,
    ) -> str:
        """Create a remote session and return its id."""

    def update_session(
        self,
        activity: Activity,
        course: Course,
        link: Any,
        attendees: Attendees | None = None,
    ) -> None:
        """Push current activity parameters to an existing session."""

    def delete_session(self, session_id: str) -> bool:
        """Delete a remote session. Failures are returned, never raised."""

    def build_guest_url(self, session_id: str) -> str:
        """Return the guest join URL of a session."""

    def list_recordings(self, session_id: str) -> list[Recording]:
        """List recordings of a session."""

    def delete_recording(self, recording_id: str) -> None:
        """Delete one recording."""


def build_session_details(
    client: RemoteSessionClient,
    activity: Activity,
    course: Course,
    group_id: int | None,
    attendees: Attendees | None = None,
) -> SessionDetails:
    start, end = api_times(activity.time_start, activity.duration, client)
    name = activity.name or f"Activity {activity.id}"
    if group_id is not None:
        name = f"{name} - group {group_id}"
    return SessionDetails(
        name=name,
        description=course.fullname or "",
        start=start,
        end=end,
        boundary_minutes=boundary_time(),
        course_id=course.id,
        group_id=group_id,
        moderators=list(attendees.moderators) if attendees else [],
        participants=list(attendees.participants) if attendees else [],
    )


def link_group_id(link: Any) -> int | None:
    """group_id of a SessionLink row or of a plain field mapping."""
    if isinstance(link, dict):
        return link.get("group_id")
    return getattr(link, "group_id", None)


def link_session_id(link: Any) -> str | None:
    if isinstance(link, dict):
        return link.get("session_id")
    return getattr(link, "session_id", None)
