from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import EmailStr, Field

from edpsych_tenancy.models.common import ApiModel, RequestModel


class TenantRole(str, Enum):
    ADMIN = "admin"
    EDUCATIONAL_PSYCHOLOGIST = "educational_psychologist"
    TEACHER = "teacher"
    TEACHING_ASSISTANT = "teaching_assistant"
    PARENT = "parent"
    STUDENT = "student"


class TenantUser(ApiModel):
    id: str
    tenant_id: str
    email: str
    name: str
    role: TenantRole
    permissions: list[str] = []
    settings: dict[str, Any] = {}
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CreateTenantUserData(RequestModel):
    email: EmailStr
    name: str = Field(..., min_length=2, max_length=100)
    role: TenantRole
    permissions: list[str] | None = None
    settings: dict[str, Any] | None = None


class UpdateTenantUserData(RequestModel):
    name: str | None = Field(None, min_length=2, max_length=100)
    email: EmailStr | None = None
    settings: dict[str, Any] | None = None


class ListUsersParams(RequestModel):
    page: int | None = None
    limit: int | None = None
    search: str | None = None
    role: TenantRole | None = None
    sort_by: Literal["name", "email", "role", "createdAt"] | None = None
    sort_order: Literal["asc", "desc"] | None = None

    def to_query(self) -> dict[str, str]:
        """Only parameters that carry a value end up on the query string."""
        return {k: str(v) for k, v in self.to_wire().items() if v != ""}


class ListUsersResponse(ApiModel):
    users: list[TenantUser]
    total: int
    page: int
    limit: int
    total_pages: int


class Pagination(ApiModel):
    total: int = 0
    page: int = 1
    limit: int = 10
    total_pages: int = 0


class RoleUpdateRequest(RequestModel):
    role: TenantRole


class PermissionsUpdateRequest(RequestModel):
    permissions: list[str]


class UserRoleUpdate(RequestModel):
    user_id: str = Field(..., min_length=1)
    role: TenantRole


class BulkCreateUsersRequest(ApiModel):
    # Items stay loose so the server can report per-item failures
    users: list[dict[str, Any]]


class BulkDeleteUsersRequest(ApiModel):
    user_ids: list[str]


class BulkUpdateRolesRequest(ApiModel):
    updates: list[dict[str, Any]]


class BulkOperationFailure(ApiModel):
    index: int
    id: str | None = None
    error: str


class BulkOperationResult(ApiModel):
    success: bool
    total_count: int
    success_count: int
    failure_count: int
    failures: list[BulkOperationFailure] | None = None
