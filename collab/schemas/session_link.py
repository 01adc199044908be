from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from collab.schemas.base import BaseSchema


class SessionLinkCandidate(BaseModel):
    """Fields a caller wants a session link to have.

    Presence matters, not just value: only the fields the caller actually
    passed (``model_fields_set``) take part in the existing-record lookup.
    """
    activity_id: Optional[int] = None
    group_id: Optional[int] = None
    session_id: Optional[str] = None

    def set_fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class SessionLinkResponse(BaseSchema):
    id: int
    activity_id: int
    group_id: Optional[int] = None
    session_id: str
    deletion_attempted: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProvisioningError(BaseModel):
    group_id: Optional[int] = None
    message: str


class ProvisioningResult(BaseModel):
    """Outcome of provisioning every link of an activity."""
    activity_id: int
    links: List[SessionLinkResponse] = Field(default_factory=list)
    errors: List[ProvisioningError] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors
