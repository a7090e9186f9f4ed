import logging
from typing import Any

from pydantic import TypeAdapter

from edpsych_tenancy.client.api_client import ApiClient
from edpsych_tenancy.config import settings
from edpsych_tenancy.models.invite import UserInvitation, UserInvitationResult
from edpsych_tenancy.models.user import (
    BulkCreateUsersRequest,
    BulkDeleteUsersRequest,
    BulkOperationResult,
    BulkUpdateRolesRequest,
    CreateTenantUserData,
    ListUsersParams,
    ListUsersResponse,
    PermissionsUpdateRequest,
    RoleUpdateRequest,
    TenantRole,
    TenantUser,
    UpdateTenantUserData,
    UserRoleUpdate,
)

logger = logging.getLogger("edpsych-tenancy")

_invitations = TypeAdapter(list[UserInvitationResult])


class TenantUserManagementService:
    """Tenant membership: user CRUD, roles, bulk operations, invitations."""

    def __init__(self, client: ApiClient, base_url: str | None = None):
        self._client = client
        self._base_url = (base_url or settings.tenants_api_base).rstrip("/")

    async def _api_call(
        self,
        endpoint: str,
        method: str = "GET",
        data: Any = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        return await self._client.api_call(f"{self._base_url}{endpoint}", method, data, params)

    # Users

    async def create_user(self, tenant_id: str, data: CreateTenantUserData | dict[str, Any]) -> TenantUser:
        payload = CreateTenantUserData.model_validate(data)
        return TenantUser.model_validate(await self._api_call(f"/{tenant_id}/users", "POST", payload))

    async def get_user(self, tenant_id: str, user_id: str) -> TenantUser:
        return TenantUser.model_validate(await self._api_call(f"/{tenant_id}/users/{user_id}"))

    async def update_user(
        self,
        tenant_id: str,
        user_id: str,
        data: UpdateTenantUserData | dict[str, Any],
    ) -> TenantUser:
        payload = UpdateTenantUserData.model_validate(data)
        return TenantUser.model_validate(
            await self._api_call(f"/{tenant_id}/users/{user_id}", "PUT", payload)
        )

    async def delete_user(self, tenant_id: str, user_id: str) -> None:
        await self._api_call(f"/{tenant_id}/users/{user_id}", "DELETE")
        logger.info("Deleted user %s from tenant %s", user_id, tenant_id)

    async def list_users(
        self,
        tenant_id: str,
        params: ListUsersParams | dict[str, Any] | None = None,
    ) -> ListUsersResponse:
        query = ListUsersParams.model_validate(params or {}).to_query()
        return ListUsersResponse.model_validate(
            await self._api_call(f"/{tenant_id}/users", params=query)
        )

    # Roles and permissions

    async def update_user_role(self, tenant_id: str, user_id: str, role: TenantRole) -> TenantUser:
        body = RoleUpdateRequest(role=role)
        return TenantUser.model_validate(
            await self._api_call(f"/{tenant_id}/users/{user_id}/role", "PUT", body)
        )

    async def update_user_permissions(self, tenant_id: str, user_id: str, permissions: list[str]) -> TenantUser:
        body = PermissionsUpdateRequest(permissions=permissions)
        return TenantUser.model_validate(
            await self._api_call(f"/{tenant_id}/users/{user_id}/permissions", "PUT", body)
        )

    # Bulk operations. Partial success is normal: check failure_count.

    async def bulk_create_users(
        self,
        tenant_id: str,
        users: list[CreateTenantUserData | dict[str, Any]],
    ) -> BulkOperationResult:
        validated = [CreateTenantUserData.model_validate(u) for u in users]
        body = BulkCreateUsersRequest(users=[u.to_wire() for u in validated])
        return BulkOperationResult.model_validate(
            await self._api_call(f"/{tenant_id}/users/bulk", "POST", body)
        )

    async def bulk_delete_users(self, tenant_id: str, user_ids: list[str]) -> BulkOperationResult:
        body = BulkDeleteUsersRequest(user_ids=user_ids)
        return BulkOperationResult.model_validate(
            await self._api_call(f"/{tenant_id}/users/bulk", "DELETE", body)
        )

    async def bulk_update_user_roles(
        self,
        tenant_id: str,
        updates: list[UserRoleUpdate | dict[str, Any]],
    ) -> BulkOperationResult:
        body = BulkUpdateRolesRequest(updates=[UserRoleUpdate.model_validate(u).to_wire() for u in updates])
        return BulkOperationResult.model_validate(
            await self._api_call(f"/{tenant_id}/users/bulk/roles", "PUT", body)
        )

    # Invitations

    async def invite_user(self, tenant_id: str, invitation: UserInvitation | dict[str, Any]) -> UserInvitationResult:
        payload = UserInvitation.model_validate(invitation)
        result = await self._api_call(f"/{tenant_id}/invitations", "POST", payload)
        logger.info("Invited %s to tenant %s", payload.email, tenant_id)
        return UserInvitationResult.model_validate(result)

    async def resend_invitation(self, tenant_id: str, invitation_id: str) -> UserInvitationResult:
        return UserInvitationResult.model_validate(
            await self._api_call(f"/{tenant_id}/invitations/{invitation_id}/resend", "POST")
        )

    async def cancel_invitation(self, tenant_id: str, invitation_id: str) -> None:
        await self._api_call(f"/{tenant_id}/invitations/{invitation_id}", "DELETE")

    async def list_invitations(self, tenant_id: str) -> list[UserInvitationResult]:
        return _invitations.validate_python(await self._api_call(f"/{tenant_id}/invitations"))
