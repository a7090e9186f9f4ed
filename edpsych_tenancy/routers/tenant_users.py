from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from edpsych_tenancy.dependencies import get_store
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
)
from edpsych_tenancy.sandbox import team_service
from edpsych_tenancy.sandbox.team_service import ConflictError
from edpsych_tenancy.storage.base import TenantStore

router = APIRouter(tags=["Tenant users"])


@router.post("/{tenant_id}/users", response_model=TenantUser, status_code=201)
async def create_user(tenant_id: str, body: CreateTenantUserData, store: TenantStore = Depends(get_store)):
    try:
        return team_service.create_user(store, tenant_id, body)
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/{tenant_id}/users", response_model=ListUsersResponse)
async def list_users(
    tenant_id: str,
    page: int | None = Query(None, ge=1),
    limit: int | None = Query(None, ge=1, le=100),
    search: str | None = None,
    role: TenantRole | None = None,
    sort_by: Literal["name", "email", "role", "createdAt"] | None = Query(None, alias="sortBy"),
    sort_order: Literal["asc", "desc"] | None = Query(None, alias="sortOrder"),
    store: TenantStore = Depends(get_store),
):
    params = ListUsersParams(
        page=page, limit=limit, search=search, role=role, sort_by=sort_by, sort_order=sort_order,
    )
    return team_service.list_users(store, tenant_id, params)


# Bulk routes are declared before /users/{user_id} so "bulk" is never read as an id

@router.post("/{tenant_id}/users/bulk", response_model=BulkOperationResult)
async def bulk_create_users(tenant_id: str, body: BulkCreateUsersRequest, store: TenantStore = Depends(get_store)):
    return team_service.bulk_create_users(store, tenant_id, body.users)


@router.delete("/{tenant_id}/users/bulk", response_model=BulkOperationResult)
async def bulk_delete_users(tenant_id: str, body: BulkDeleteUsersRequest, store: TenantStore = Depends(get_store)):
    return team_service.bulk_delete_users(store, tenant_id, body.user_ids)


@router.put("/{tenant_id}/users/bulk/roles", response_model=BulkOperationResult)
async def bulk_update_roles(tenant_id: str, body: BulkUpdateRolesRequest, store: TenantStore = Depends(get_store)):
    return team_service.bulk_update_roles(store, tenant_id, body.updates)


@router.get("/{tenant_id}/users/{user_id}", response_model=TenantUser)
async def get_user(tenant_id: str, user_id: str, store: TenantStore = Depends(get_store)):
    user = team_service.get_user(store, tenant_id, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.put("/{tenant_id}/users/{user_id}", response_model=TenantUser)
async def update_user(tenant_id: str, user_id: str, body: UpdateTenantUserData, store: TenantStore = Depends(get_store)):
    try:
        user = team_service.update_user(store, tenant_id, user_id, body)
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.delete("/{tenant_id}/users/{user_id}", status_code=204)
async def delete_user(tenant_id: str, user_id: str, store: TenantStore = Depends(get_store)):
    if not team_service.delete_user(store, tenant_id, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return Response(status_code=204)


@router.put("/{tenant_id}/users/{user_id}/role", response_model=TenantUser)
async def update_role(tenant_id: str, user_id: str, body: RoleUpdateRequest, store: TenantStore = Depends(get_store)):
    try:
        user = team_service.update_role(store, tenant_id, user_id, body.role)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.put("/{tenant_id}/users/{user_id}/permissions", response_model=TenantUser)
async def update_permissions(
    tenant_id: str, user_id: str, body: PermissionsUpdateRequest, store: TenantStore = Depends(get_store),
):
    user = team_service.update_permissions(store, tenant_id, user_id, body.permissions)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
