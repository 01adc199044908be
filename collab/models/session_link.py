"""Local mapping of (activity, group) to remote conferencing sessions."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from collab.core.database import Base


class SessionLink(Base):
    """One remote session for an activity, or for one group of it.

    group_id NULL is the whole-activity link. deletion_attempted > 0 marks a
    link whose remote deletion failed and is waiting for the cleanup sweep.
    """
    __tablename__ = "collab_session_links"
    __table_args__ = (
        Index("ix_collab_session_links_activity_group", "activity_id", "group_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    activity_id = Column(Integer, nullable=False, index=True)
    group_id = Column(Integer, nullable=True, index=True)
    session_id = Column(String(255), nullable=False, index=True)
    deletion_attempted = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    recording_info = relationship("RecordingInfo", back_populates="session_link", passive_deletes=True)

    def __repr__(self) -> str:
        return (
            f"<SessionLink id={self.id} activity={self.activity_id} group={self.group_id} "
            f"session={self.session_id!r} deletion_attempted={self.deletion_attempted}>"
        )


class RecordingInfo(Base):
    """Recording view/download log, aggregated into per-recording counts."""
    __tablename__ = "collab_recording_info"

    id = Column(Integer, primary_key=True, index=True)
    activity_id = Column(Integer, nullable=False, index=True)
    session_link_id = Column(
        Integer, ForeignKey("collab_session_links.id", ondelete="CASCADE"), nullable=True, index=True
    )
    recording_id = Column(String(255), nullable=False, index=True)
    action = Column(String(20), nullable=False)  # view|download
    user_id = Column(Integer, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    session_link = relationship("SessionLink", back_populates="recording_info")
