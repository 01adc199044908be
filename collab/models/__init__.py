# Import all models here so Base.metadata is complete
from collab.models.session_link import SessionLink, RecordingInfo

__all__ = [
    "SessionLink",
    "RecordingInfo",
]
