import logging

from worker.celery_app import celery_app

logger = logging.getLogger(__name__)


def _deletion_service(db):
    from collab.core.config import get_settings
    from collab.services.recording_cache import RecordingCountsCache
    from collab.services.remote.registry import get_remote_client
    from collab.services.session_deletion import SessionDeletionService

    return SessionDeletionService(db, get_remote_client(get_settings()), RecordingCountsCache())


@celery_app.task(bind=True)
def cleanup_failed_deletions_task(self) -> dict:
    """Retry remote deletions that failed earlier."""
    # Import here so the worker module loads without a database connection
    from collab.core import database
    from collab.core.config import get_settings
    from collab.models.session_link import SessionLink

    db = database.SessionLocal()
    try:
        service = _deletion_service(db)
        ok = service.cleanup_failed_deletions(max_attempts=get_settings().max_deletion_attempts)
        pending = db.query(SessionLink).filter(SessionLink.deletion_attempted > 0).count()
        return {"status": "completed" if ok else "partial", "pending": pending}
    except Exception as e:
        logger.exception("Failed deletion cleanup crashed")
        db.rollback()
        return {"status": "failed", "error": str(e)}
    finally:
        db.close()


@celery_app.task(bind=True, time_limit=300)
def delete_activity_sessions_task(self, activity_id: int) -> dict:
    """Delete every remote session of a removed activity."""
    from collab.core import database

    db = database.SessionLocal()
    try:
        ok = _deletion_service(db).delete_sessions_for_activity(activity_id)
        return {"activity_id": activity_id, "status": "completed" if ok else "partial"}
    finally:
        db.close()


@celery_app.task(bind=True, time_limit=300)
def delete_group_sessions_task(self, group_id: int) -> dict:
    """Delete every remote session of a removed group."""
    from collab.core import database

    db = database.SessionLocal()
    try:
        ok = _deletion_service(db).delete_sessions_for_group(group_id)
        return {"group_id": group_id, "status": "completed" if ok else "partial"}
    finally:
        db.close()
