"""
Tenant user and invitation lists. Mutations patch the cached list after the
server confirms (append, replace by id, drop by id) instead of refetching.
"""
from typing import Any

from edpsych_tenancy.models.invite import UserInvitation, UserInvitationResult
from edpsych_tenancy.models.user import (
    CreateTenantUserData,
    ListUsersParams,
    ListUsersResponse,
    Pagination,
    TenantRole,
    TenantUser,
    UpdateTenantUserData,
)
from edpsych_tenancy.services.user_service import TenantUserManagementService
from edpsych_tenancy.viewmodels.base import TenantViewModel


def _replace(items: list, item_id: str, new_item) -> list:
    return [new_item if i.id == item_id else i for i in items]


def _without(items: list, item_id: str) -> list:
    return [i for i in items if i.id != item_id]


class TenantUserListViewModel(TenantViewModel):
    users: list[TenantUser]
    pagination: Pagination

    def __init__(self, service: TenantUserManagementService, tenant_id: str | None) -> None:
        super().__init__(tenant_id)
        self._service = service

    def _empty_state(self) -> dict[str, Any]:
        return {"users": [], "pagination": Pagination()}

    async def reload(self) -> ListUsersResponse | None:
        return await self.load_users()

    async def load_users(
        self,
        params: ListUsersParams | dict[str, Any] | None = None,
    ) -> ListUsersResponse | None:
        if not self.tenant_id:
            return None
        async with self._operation():
            resp = await self._call(self._service.list_users(self.tenant_id, params))
            self._set_state(
                users=resp.users,
                pagination=Pagination(
                    total=resp.total,
                    page=resp.page,
                    limit=resp.limit,
                    total_pages=resp.total_pages,
                ),
            )
            return resp

    async def create_user(self, data: CreateTenantUserData | dict[str, Any]) -> TenantUser | None:
        if not self.tenant_id:
            return None
        async with self._operation():
            user = await self._call(self._service.create_user(self.tenant_id, data))
            self._set_state(users=[*self.users, user])
            return user

    async def update_user(self, user_id: str, data: UpdateTenantUserData | dict[str, Any]) -> TenantUser | None:
        if not self.tenant_id:
            return None
        async with self._operation():
            user = await self._call(self._service.update_user(self.tenant_id, user_id, data))
            self._set_state(users=_replace(self.users, user_id, user))
            return user

    async def delete_user(self, user_id: str) -> None:
        if not self.tenant_id:
            return None
        async with self._operation():
            await self._call(self._service.delete_user(self.tenant_id, user_id))
            self._set_state(users=_without(self.users, user_id))

    async def update_user_role(self, user_id: str, role: TenantRole) -> TenantUser | None:
        if not self.tenant_id:
            return None
        async with self._operation():
            user = await self._call(self._service.update_user_role(self.tenant_id, user_id, role))
            self._set_state(users=_replace(self.users, user_id, user))
            return user


class TenantInvitationsViewModel(TenantViewModel):
    invitations: list[UserInvitationResult]

    def __init__(self, service: TenantUserManagementService, tenant_id: str | None) -> None:
        super().__init__(tenant_id)
        self._service = service

    def _empty_state(self) -> dict[str, Any]:
        return {"invitations": []}

    async def reload(self) -> list[UserInvitationResult] | None:
        return await self.load_invitations()

    async def load_invitations(self) -> list[UserInvitationResult] | None:
        if not self.tenant_id:
            return None
        async with self._operation():
            invitations = await self._call(self._service.list_invitations(self.tenant_id))
            self._set_state(invitations=invitations)
            return invitations

    async def invite_user(self, invitation: UserInvitation | dict[str, Any]) -> UserInvitationResult | None:
        if not self.tenant_id:
            return None
        async with self._operation():
            result = await self._call(self._service.invite_user(self.tenant_id, invitation))
            self._set_state(invitations=[*self.invitations, result])
            return result

    async def resend_invitation(self, invitation_id: str) -> UserInvitationResult | None:
        if not self.tenant_id:
            return None
        async with self._operation():
            result = await self._call(self._service.resend_invitation(self.tenant_id, invitation_id))
            self._set_state(invitations=_replace(self.invitations, invitation_id, result))
            return result

    async def cancel_invitation(self, invitation_id: str) -> None:
        if not self.tenant_id:
            return None
        async with self._operation():
            await self._call(self._service.cancel_invitation(self.tenant_id, invitation_id))
            self._set_state(invitations=_without(self.invitations, invitation_id))
