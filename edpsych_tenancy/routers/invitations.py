from fastapi import APIRouter, Depends, HTTPException, Response

from edpsych_tenancy.dependencies import get_store
from edpsych_tenancy.models.invite import InviteAcceptRequest, UserInvitation, UserInvitationResult
from edpsych_tenancy.models.user import TenantUser
from edpsych_tenancy.sandbox import team_service
from edpsych_tenancy.sandbox.team_service import ConflictError
from edpsych_tenancy.storage.base import TenantStore

router = APIRouter(tags=["Invitations"])

# Mounted at /api/invitations, outside the tenant namespace
accept_router = APIRouter(prefix="/api/invitations", tags=["Invitations"])


@router.post("/{tenant_id}/invitations", response_model=UserInvitationResult, status_code=201)
async def invite_user(tenant_id: str, body: UserInvitation, store: TenantStore = Depends(get_store)):
    try:
        invitation, _token = team_service.invite_user(store, tenant_id, body)
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return invitation.public()


@router.get("/{tenant_id}/invitations", response_model=list[UserInvitationResult])
async def list_invitations(tenant_id: str, store: TenantStore = Depends(get_store)):
    return [i.public() for i in team_service.list_invitations(store, tenant_id)]


@router.post("/{tenant_id}/invitations/{invitation_id}/resend", response_model=UserInvitationResult)
async def resend_invitation(tenant_id: str, invitation_id: str, store: TenantStore = Depends(get_store)):
    try:
        invitation = team_service.resend_invitation(store, tenant_id, invitation_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not invitation:
        raise HTTPException(status_code=404, detail="Invitation not found")
    return invitation.public()


@router.delete("/{tenant_id}/invitations/{invitation_id}", status_code=204)
async def cancel_invitation(tenant_id: str, invitation_id: str, store: TenantStore = Depends(get_store)):
    try:
        cancelled = team_service.cancel_invitation(store, tenant_id, invitation_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not cancelled:
        raise HTTPException(status_code=404, detail="Invitation not found")
    return Response(status_code=204)


@accept_router.post("/accept", response_model=TenantUser)
async def accept_invitation(body: InviteAcceptRequest, store: TenantStore = Depends(get_store)):
    """Accept an invitation (public endpoint, the token is the credential)."""
    try:
        return team_service.accept_invitation(store, body.token, body.name)
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
