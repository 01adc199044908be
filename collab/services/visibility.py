"""Which session links an actor may see."""

from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from collab.core.errors import CodingError
from collab.models.session_link import SessionLink
from collab.services.host import Activity, HostLms


def resolve_group_filter(
    actor_group_ids: Iterable[int],
    access_all_groups: bool,
    course_group_ids: Optional[Iterable[int]] = None,
) -> tuple[list[int], bool]:
    """Return (group ids, include whole-activity link) for an actor.

    With access to all groups the actor sees every course group plus the
    whole-activity link. Otherwise they see their own groups, or only the
    whole-activity link when they belong to none.
    """
    if access_all_groups:
        return sorted(set(course_group_ids or [])), True
    group_ids = sorted(set(actor_group_ids))
    return group_ids, not group_ids


def active_links(
    db: Session,
    activity_id: int,
    group_ids: list[int],
    include_whole_activity: bool,
) -> list[SessionLink]:
    group_filters = []
    if include_whole_activity:
        group_filters.append(SessionLink.group_id.is_(None))
    if group_ids:
        group_filters.append(SessionLink.group_id.in_(group_ids))
    if not group_filters:
        raise CodingError("Group filter for active session links cannot be empty.")

    return (
        db.query(SessionLink)
        .filter(
            SessionLink.activity_id == activity_id,
            SessionLink.deletion_attempted == 0,
            or_(*group_filters),
        )
        .order_by(SessionLink.id)
        .all()
    )


def my_active_links(db: Session, host: HostLms, activity: Activity, user_id: int) -> list[SessionLink]:
    """Active session links of an activity visible to ``user_id``."""
    access_all_groups = host.has_access_all_groups(user_id, activity)
    if access_all_groups:
        course_group_ids = [g.id for g in host.list_groups(activity.course)]
        group_ids, include_whole = resolve_group_filter([], True, course_group_ids)
    else:
        actor_group_ids = [g.id for g in host.list_groups(activity.course, user_id=user_id)]
        group_ids, include_whole = resolve_group_filter(actor_group_ids, False)
    return active_links(db, activity.id, group_ids, include_whole)
