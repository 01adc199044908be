"""Keeps local session links consistent with sessions on the remote service."""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from collab.core.errors import CodingError
from collab.models.session_link import SessionLink
from collab.schemas.session_link import (
    ProvisioningError,
    ProvisioningResult,
    SessionLinkCandidate,
    SessionLinkResponse,
)
from collab.services.enrolees import session_attendees
from collab.services.host import NO_GROUPS, Activity, Course, HostLms
from collab.services.remote.base import RemoteSessionClient

logger = logging.getLogger(__name__)


class SessionLinkStore:
    """Creates, updates and looks up session links for activities and groups."""

    def __init__(
        self,
        db: Session,
        client: RemoteSessionClient,
        host: HostLms,
        simulation_mode: bool = False,
        actor_id: Optional[int] = None,
    ) -> None:
        self.db = db
        self.client = client
        self.host = host
        self.simulation_mode = simulation_mode
        # The acting user chairs every session they provision.
        self.actor_id = actor_id

    def _find(self, **fields: Any) -> Optional[SessionLink]:
        return self.db.query(SessionLink).filter_by(**fields).order_by(SessionLink.id).first()

    def ensure_session_link(
        self,
        activity: Activity,
        course: Course,
        candidate: SessionLinkCandidate,
    ) -> SessionLink:
        """Make sure a remote session and an active link row exist for the candidate.

        A group link is looked up by the fields set on the candidate. The
        whole-activity link keeps its current session unless the candidate
        names another one, in which case the old row is handed to the cleanup
        sweep. Remote create/update errors propagate.
        """
        if candidate.activity_id is None:
            raise CodingError(f"activity_id must be set for a session link: {candidate!r}")

        fields = candidate.set_fields()
        fields["deletion_attempted"] = 0

        if candidate.group_id is None:
            fields["group_id"] = None
            current = self._find(activity_id=fields["activity_id"], group_id=None, deletion_attempted=0)
            if current and not fields.get("session_id"):
                fields["session_id"] = current.session_id
        else:
            current = self._find(**fields)
            if current:
                fields["session_id"] = current.session_id

        attendees = session_attendees(self.host, course.id, fields["group_id"], self.actor_id)
        created = False
        if not fields.get("session_id"):
            if self.simulation_mode and activity.session_id and fields["group_id"] is None:
                fields["session_id"] = activity.session_id
            else:
                fields["session_id"] = self.client.create_session(activity, course, fields["group_id"], attendees)
                created = True
                logger.info(
                    "Created session %s for activity %s group %s",
                    fields["session_id"], fields["activity_id"], fields["group_id"],
                )
        else:
            self.client.update_session(activity, course, fields, attendees)

        # Another request may have inserted the link while we talked to the remote service.
        if current is None:
            current = self._find(
                activity_id=fields["activity_id"],
                group_id=fields["group_id"],
                deletion_attempted=0,
            )

        if current is None:
            link = SessionLink(**fields)
            self.db.add(link)
        elif current.session_id == fields["session_id"]:
            for key, value in fields.items():
                setattr(current, key, value)
            link = current
        elif created:
            logger.info(
                "Session link %s was created concurrently; session %s queued for deletion",
                current.id, fields["session_id"],
            )
            self.db.add(SessionLink(**{**fields, "deletion_attempted": 1}))
            link = current
        else:
            logger.info(
                "Session %s replaces %s for activity %s group %s",
                fields["session_id"], current.session_id, fields["activity_id"], fields["group_id"],
            )
            current.deletion_attempted = (current.deletion_attempted or 0) + 1
            link = SessionLink(**fields)
            self.db.add(link)

        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(link)
        return link

    def get_group_session_link(self, activity: Activity, group_id: Optional[int]) -> SessionLink:
        link = self._find(activity_id=activity.id, group_id=group_id, deletion_attempted=0)
        if link:
            return link
        course = self.host.get_course(activity.course)
        candidate = SessionLinkCandidate(activity_id=activity.id, group_id=group_id)
        return self.ensure_session_link(activity, course, candidate)

    def apply_session_links(self, activity: Activity) -> ProvisioningResult:
        """Ensure the whole-activity link and, in group mode, one link per group.

        Every link is provisioned on its own: a failure is recorded in the
        result and the remaining links are still provisioned.
        """
        course = self.host.get_course(activity.course)
        result = ProvisioningResult(activity_id=activity.id)

        candidates = [
            SessionLinkCandidate(activity_id=activity.id, session_id=activity.session_id, group_id=None)
        ]

        if activity.group_mode != NO_GROUPS:
            groups = self.host.list_groups(course.id, grouping_id=activity.grouping_id)
            for group in groups:
                candidates.append(SessionLinkCandidate(activity_id=activity.id, group_id=group.id))

        for candidate in candidates:
            try:
                link = self.ensure_session_link(activity, course, candidate)
            except CodingError:
                raise
            except Exception as exc:
                logger.warning(
                    "Failed to provision session link for activity %s group %s: %s",
                    activity.id, candidate.group_id, exc,
                )
                result.errors.append(ProvisioningError(group_id=candidate.group_id, message=str(exc)))
                continue
            result.links.append(SessionLinkResponse.model_validate(link))

        return result

    def get_titles_by_session_ids(self, session_ids: list[str], activities: dict[int, Activity]) -> dict[str, str]:
        """Display titles keyed by session id.

        ``activities`` maps activity id to activity for the links involved;
        group names come from the host.
        """
        if not session_ids:
            return {}
        links = self.db.query(SessionLink).filter(SessionLink.session_id.in_(session_ids)).all()

        loaded_courses: set[int] = set()
        group_names: dict[int, str] = {}
        titles: dict[str, str] = {}
        for link in links:
            activity = activities.get(link.activity_id)
            if activity is None:
                continue
            title = activity.name
            if link.group_id is not None:
                if activity.course not in loaded_courses:
                    loaded_courses.add(activity.course)
                    for group in self.host.list_groups(activity.course):
                        group_names[group.id] = group.name
                group_name = group_names.get(link.group_id)
                if group_name:
                    title = f"{activity.name} ({group_name})"
            titles[link.session_id] = title
        return titles
