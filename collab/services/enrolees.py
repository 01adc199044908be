"""Who attends a session as a moderator and who as a participant."""

from __future__ import annotations

from typing import Optional

from collab.services.host import HostLms
from collab.services.remote.base import Attendees

# Users holding this capability in the course chair the session.
MODERATOR_CAPABILITY = "moodle/grade:viewall"


def enrolees_array(
    host: HostLms,
    course_id: int,
    with_capability: str = "",
    without_capability: str = "",
    group_id: int = 0,
    include_user: Optional[int] = None,
    exclude_user: Optional[int] = None,
) -> list[int]:
    """Enrolled user ids, deduplicated and in host order.

    ``include_user`` is always listed first; ``exclude_user`` and anyone
    holding ``without_capability`` are left out.
    """
    excluded: set[int] = set()
    if exclude_user:
        excluded.add(exclude_user)
    if without_capability:
        excluded.update(host.list_enrolled_user_ids(course_id, group_id, without_capability))

    ids: list[int] = []
    if include_user:
        ids.append(include_user)
    for user_id in host.list_enrolled_user_ids(course_id, group_id, with_capability):
        if user_id not in excluded and user_id not in ids:
            ids.append(user_id)
    return ids


def moderator_enrolees(host: HostLms, course_id: int, group_id: int = 0, actor_id: Optional[int] = None) -> list[int]:
    return enrolees_array(host, course_id, MODERATOR_CAPABILITY, "", group_id, include_user=actor_id)


def participant_enrolees(host: HostLms, course_id: int, group_id: int = 0, actor_id: Optional[int] = None) -> list[int]:
    return enrolees_array(host, course_id, "", MODERATOR_CAPABILITY, group_id, exclude_user=actor_id)


def session_attendees(
    host: HostLms,
    course_id: int,
    group_id: Optional[int] = None,
    actor_id: Optional[int] = None,
) -> Attendees:
    """Moderators and participants for the session of a group (or of the whole activity)."""
    group_id = group_id or 0
    return Attendees(
        moderators=moderator_enrolees(host, course_id, group_id, actor_id),
        participants=participant_enrolees(host, course_id, group_id, actor_id),
    )
