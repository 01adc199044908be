"""Remote session deletion with a persisted retry counter."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from collab.models.session_link import RecordingInfo, SessionLink
from collab.services.recording_cache import RecordingCountsCache
from collab.services.remote.base import RemoteSessionClient

logger = logging.getLogger(__name__)


class SessionDeletionService:
    """Deletes remote sessions and tracks the ones that could not be deleted.

    A link whose remote deletion fails stays in the table with
    ``deletion_attempted`` bumped; it is hidden from users and retried by
    ``cleanup_failed_deletions`` until the remote side confirms deletion.
    """

    def __init__(self, db: Session, client: RemoteSessionClient, cache: RecordingCountsCache) -> None:
        self.db = db
        self.client = client
        self.cache = cache

    def _delete_remote(self, session_id: str) -> bool:
        try:
            return bool(self.client.delete_session(session_id))
        except Exception as exc:
            logger.warning("Remote deletion of session %s raised: %s", session_id, exc)
            return False

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def attempt_delete_sessions(self, links: Iterable[SessionLink]) -> bool:
        """Delete the remote sessions of ``links``; return True if all succeeded.

        On full success the caller removes the link rows. Otherwise rows of
        the deleted sessions are removed here and every failed row gets its
        counter incremented in a single transaction.
        """
        links = list(links)
        if not links:
            return True

        activity_ids = sorted({link.activity_id for link in links})
        succeeded: list[int] = []
        failed: list[int] = []
        for link in links:
            if self._delete_remote(link.session_id):
                succeeded.append(link.id)
            else:
                failed.append(link.id)

        # Recording counts go regardless of the outcome, cached ones included.
        self.db.query(RecordingInfo).filter(
            RecordingInfo.session_link_id.in_([link.id for link in links])
        ).delete(synchronize_session=False)
        self._commit()
        for activity_id in activity_ids:
            self.cache.delete(activity_id)

        if not failed:
            return True

        if succeeded:
            self.db.query(SessionLink).filter(SessionLink.id.in_(succeeded)).delete(synchronize_session="fetch")
            self._commit()

        failed_links = self.db.query(SessionLink).filter(SessionLink.id.in_(failed)).all()
        try:
            for link in failed_links:
                link.deletion_attempted = (link.deletion_attempted or 0) + 1
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(
            "Deleted %d of %d sessions; %d marked for retry",
            len(succeeded), len(links), len(failed_links),
        )
        return False

    def cleanup_failed_deletions(self, max_attempts: Optional[int] = None) -> bool:
        """Retry every pending deletion. Returns True when nothing is left pending.

        Links at or past ``max_attempts`` are not retried but still count as
        pending.
        """
        query = self.db.query(SessionLink).filter(SessionLink.deletion_attempted > 0)
        exhausted = 0
        if max_attempts is not None:
            exhausted = query.filter(SessionLink.deletion_attempted >= max_attempts).count()
            if exhausted:
                logger.warning(
                    "%d session links reached %d deletion attempts and are no longer retried",
                    exhausted, max_attempts,
                )
            query = query.filter(SessionLink.deletion_attempted < max_attempts)
        links = query.order_by(SessionLink.id).all()
        if not links:
            return not exhausted

        link_ids = [link.id for link in links]
        ok = self.attempt_delete_sessions(links)
        if ok:
            self.db.query(SessionLink).filter(SessionLink.id.in_(link_ids)).delete(synchronize_session="fetch")
            self._commit()
            logger.info("Cleaned up %d previously failed session deletions", len(link_ids))
        return ok and not exhausted

    def delete_sessions_for_activity(self, activity_id: int) -> bool:
        """Delete every session of an activity, group sessions included."""
        links = self.db.query(SessionLink).filter(SessionLink.activity_id == activity_id).all()
        ok = self.attempt_delete_sessions(links)
        if ok:
            self.db.query(SessionLink).filter(
                SessionLink.activity_id == activity_id
            ).delete(synchronize_session="fetch")
            self._commit()
        return ok

    def delete_sessions_for_group(self, group_id: int) -> bool:
        links = self.db.query(SessionLink).filter(SessionLink.group_id == group_id).all()
        ok = self.attempt_delete_sessions(links)
        if ok:
            self.db.query(SessionLink).filter(SessionLink.group_id == group_id).delete(synchronize_session="fetch")
            self._commit()
        return ok
