"""Recordings, guest access and recording counters for an activity."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from collab.core.errors import AccessDenied, CodingError, RemoteSessionError
from collab.models.session_link import RecordingInfo, SessionLink
from collab.services.host import Activity, HostLms, RecordingDeletedEvent
from collab.services.recording_cache import RecordingCountsCache
from collab.services.remote.base import Recording, RemoteSessionClient
from collab.services.visibility import my_active_links

logger = logging.getLogger(__name__)

RECORDING_ACTIONS = ("view", "download")


class RecordingService:
    def __init__(
        self,
        db: Session,
        client: RemoteSessionClient,
        host: HostLms,
        cache: RecordingCountsCache,
    ) -> None:
        self.db = db
        self.client = client
        self.host = host
        self.cache = cache

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def get_recordings(self, activity: Activity, user_id: int) -> Dict[str, List[Recording]]:
        """Recordings of every session the user can see, keyed by session id."""
        recordings: Dict[str, List[Recording]] = {}
        for link in my_active_links(self.db, self.host, activity, user_id):
            if not link.session_id:
                continue
            try:
                recordings[link.session_id] = self.client.list_recordings(link.session_id)
            except RemoteSessionError as exc:
                logger.warning("Could not list recordings for session %s: %s", link.session_id, exc)
                recordings[link.session_id] = []
        return recordings

    def delete_recording(
        self,
        activity: Activity,
        user_id: int,
        recording_id: str,
        recording_name: str,
    ) -> None:
        if not self.host.can_delete_recordings(user_id, activity):
            raise AccessDenied(f"User {user_id} cannot delete recordings of activity {activity.id}.")

        self.client.delete_recording(recording_id)

        self.db.query(RecordingInfo).filter(
            RecordingInfo.activity_id == activity.id,
            RecordingInfo.recording_id == recording_id,
        ).delete(synchronize_session=False)
        self._commit()

        self.cache.delete(activity.id)
        self.host.trigger_event(
            RecordingDeletedEvent(
                activity_id=activity.id,
                recording_id=recording_id,
                recording_name=recording_name,
            )
        )
        logger.info("Deleted recording %s of activity %s", recording_id, activity.id)

    def guest_url(self, activity: Activity, force: bool = False) -> Optional[str]:
        """Guest join URL of the whole-activity session, built once and stored on the activity."""
        if not activity.guest_access_enabled:
            return None
        if activity.guest_url and not force:
            return activity.guest_url

        session_id = activity.session_id
        if not session_id:
            link = (
                self.db.query(SessionLink)
                .filter_by(activity_id=activity.id, group_id=None, deletion_attempted=0)
                .first()
            )
            if link is None:
                return None
            session_id = link.session_id

        url = self.client.build_guest_url(session_id)
        self.host.save_guest_url(activity.id, url)
        activity.guest_url = url
        return url

    def log_recording_action(
        self,
        link: SessionLink,
        recording_id: str,
        action: str,
        user_id: Optional[int] = None,
    ) -> RecordingInfo:
        if action not in RECORDING_ACTIONS:
            raise CodingError(f"Unknown recording action: {action}")
        info = RecordingInfo(
            activity_id=link.activity_id,
            session_link_id=link.id,
            recording_id=recording_id,
            action=action,
            user_id=user_id,
        )
        self.db.add(info)
        self._commit()
        self.db.refresh(info)
        self.cache.delete(link.activity_id)
        return info

    def recording_counts(self, activity_id: int) -> Dict[str, Dict[str, int]]:
        """View and download counts per recording id."""
        cached = self.cache.get(activity_id)
        if cached is not None:
            return cached

        rows = (
            self.db.query(RecordingInfo.recording_id, RecordingInfo.action, func.count(RecordingInfo.id))
            .filter(RecordingInfo.activity_id == activity_id)
            .group_by(RecordingInfo.recording_id, RecordingInfo.action)
            .all()
        )
        counts: Dict[str, Dict[str, int]] = {}
        for recording_id, action, total in rows:
            entry = counts.setdefault(recording_id, {"views": 0, "downloads": 0})
            entry["views" if action == "view" else "downloads"] = int(total)

        self.cache.set(activity_id, counts)
        return counts
