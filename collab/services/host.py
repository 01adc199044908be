"""Contracts for the host learning-management system."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

NO_GROUPS = 0
SEPARATE_GROUPS = 1
VISIBLE_GROUPS = 2


@dataclass
class Course:
    id: int
    fullname: str = ""
    shortname: str = ""


@dataclass
class Group:
    id: int
    course_id: int
    name: str = ""


@dataclass
class Activity:
    """Conferencing activity as stored by the host; the host owns the record."""

    id: int
    course: int
    name: str = ""
    time_start: int = 0
    duration: int = 0
    grouping_id: int = 0
    group_mode: int = NO_GROUPS
    session_id: str | None = None
    guest_access_enabled: bool = False
    guest_url: str | None = None


@dataclass
class RecordingDeletedEvent:
    activity_id: int
    recording_id: str
    recording_name: str


class HostLms(Protocol):
    """What the session link core needs from the host LMS."""

    def get_course(self, course_id: int) -> Course:
        """Fetch a course by id."""

    def list_groups(self, course_id: int, user_id: int = 0, grouping_id: int = 0) -> list[Group]:
        """List course groups, optionally limited to a user's groups and/or a grouping."""

    def has_access_all_groups(self, user_id: int, activity: Activity) -> bool:
        """Whether the user may see every group of the activity."""

    def can_delete_recordings(self, user_id: int, activity: Activity) -> bool:
        """Whether the user may delete recordings of the activity."""

    def save_guest_url(self, activity_id: int, url: str) -> None:
        """Persist the guest URL on the activity record."""

    def trigger_event(self, event: RecordingDeletedEvent) -> None:
        """Emit an event to the host event log."""

    def list_enrolled_user_ids(self, course_id: int, group_id: int = 0, with_capability: str = "") -> list[int]:
        """Ids of users enrolled in the course, optionally limited to a group and/or a capability."""
