from datetime import datetime
from enum import Enum

from pydantic import EmailStr, Field

from edpsych_tenancy.models.common import ApiModel, RequestModel
from edpsych_tenancy.models.user import TenantRole


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class UserInvitation(RequestModel):
    email: EmailStr
    name: str = Field(..., min_length=2, max_length=100)
    role: TenantRole
    permissions: list[str] | None = None
    message: str | None = Field(None, max_length=500)
    expires_in: float | None = Field(None, gt=0)  # hours


class UserInvitationResult(ApiModel):
    id: str
    email: str
    name: str
    role: TenantRole
    status: InvitationStatus
    created_at: datetime
    expires_at: datetime
    accepted_at: datetime | None = None


class InvitationRecord(UserInvitationResult):
    """Server-side invitation row; never sent to clients as-is."""
    tenant_id: str
    permissions: list[str] = []
    message: str | None = None
    token_hash: str

    def public(self) -> UserInvitationResult:
        return UserInvitationResult.model_validate(
            self.model_dump(include=set(UserInvitationResult.model_fields))
        )


class InviteAcceptRequest(ApiModel):
    token: str = Field(..., min_length=1)
    name: str | None = Field(None, min_length=2, max_length=100)
