import hashlib
import logging
import math
import secrets
from datetime import datetime, timezone, timedelta
from typing import Any

from pydantic import ValidationError

from edpsych_tenancy.config import settings
from edpsych_tenancy.models.invite import InvitationRecord, InvitationStatus, UserInvitation
from edpsych_tenancy.models.user import (
    BulkOperationFailure,
    BulkOperationResult,
    CreateTenantUserData,
    ListUsersParams,
    TenantRole,
    TenantUser,
    UpdateTenantUserData,
    UserRoleUpdate,
)
from edpsych_tenancy.storage.base import TenantStore

logger = logging.getLogger("edpsych-tenancy")


class ConflictError(ValueError):
    """Uniqueness violation (HTTP 409)."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def _email_taken(store: TenantStore, tenant_id: str, email: str, exclude_id: str | None = None) -> bool:
    email = email.lower()
    return any(
        u.email.lower() == email and u.id != exclude_id
        for u in store.list_users(tenant_id)
    )


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    field = ".".join(str(p) for p in err["loc"])
    return f"{field}: {err['msg']}" if field else err["msg"]


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

_SORT_KEYS = {
    "name": lambda u: u.name.lower(),
    "email": lambda u: u.email.lower(),
    "role": lambda u: u.role.value,
    "createdAt": lambda u: u.created_at or _EPOCH,
}


# Users

def create_user(store: TenantStore, tenant_id: str, data: CreateTenantUserData) -> TenantUser:
    if _email_taken(store, tenant_id, data.email):
        raise ConflictError(f"A user with email {data.email} already exists in this tenant")

    now = _now()
    user = TenantUser(
        id=f"usr_{secrets.token_hex(8)}",
        tenant_id=tenant_id,
        email=data.email,
        name=data.name,
        role=data.role,
        permissions=data.permissions or [],
        settings=data.settings or {},
        created_at=now,
        updated_at=now,
    )
    store.save_user(user)
    logger.info("Created user %s (%s) in tenant %s", user.id, user.role.value, tenant_id)
    return user


def get_user(store: TenantStore, tenant_id: str, user_id: str) -> TenantUser | None:
    return store.get_user(tenant_id, user_id)


def update_user(store: TenantStore, tenant_id: str, user_id: str, data: UpdateTenantUserData) -> TenantUser | None:
    user = store.get_user(tenant_id, user_id)
    if not user:
        return None

    changes = data.model_dump(exclude_none=True)
    if not changes:
        raise ValueError("Nothing to update")
    if "email" in changes and _email_taken(store, tenant_id, changes["email"], exclude_id=user_id):
        raise ConflictError(f"A user with email {changes['email']} already exists in this tenant")

    updated = user.model_copy(update={**changes, "updated_at": _now()})
    store.save_user(updated)
    return updated


def delete_user(store: TenantStore, tenant_id: str, user_id: str) -> bool:
    deleted = store.delete_user(tenant_id, user_id)
    if deleted:
        logger.info("Removed user %s from tenant %s", user_id, tenant_id)
    return deleted


def list_users(store: TenantStore, tenant_id: str, params: ListUsersParams) -> dict[str, Any]:
    users = store.list_users(tenant_id)

    if params.search:
        needle = params.search.lower()
        users = [u for u in users if needle in u.name.lower() or needle in u.email.lower()]
    if params.role:
        users = [u for u in users if u.role == params.role]

    sort_by = params.sort_by or "createdAt"
    users.sort(key=_SORT_KEYS[sort_by], reverse=params.sort_order == "desc")

    page = params.page or 1
    limit = params.limit or 10
    total = len(users)
    start = (page - 1) * limit
    return {
        "users": users[start:start + limit],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if total else 0,
    }


def update_role(store: TenantStore, tenant_id: str, user_id: str, role: TenantRole) -> TenantUser | None:
    user = store.get_user(tenant_id, user_id)
    if not user:
        return None
    if user.role == TenantRole.ADMIN and role != TenantRole.ADMIN:
        admins = [u for u in store.list_users(tenant_id) if u.role == TenantRole.ADMIN]
        if len(admins) == 1:
            raise ValueError("Cannot change the role of the last tenant admin")
    updated = user.model_copy(update={"role": role, "updated_at": _now()})
    store.save_user(updated)
    logger.info("User %s in tenant %s is now %s", user_id, tenant_id, role.value)
    return updated


def update_permissions(store: TenantStore, tenant_id: str, user_id: str, permissions: list[str]) -> TenantUser | None:
    user = store.get_user(tenant_id, user_id)
    if not user:
        return None
    # Keep first occurrence order, drop duplicates
    updated = user.model_copy(update={"permissions": list(dict.fromkeys(permissions)), "updated_at": _now()})
    store.save_user(updated)
    return updated


# Bulk operations: every item is attempted, failures are reported per index

def _bulk_result(total: int, failures: list[BulkOperationFailure]) -> BulkOperationResult:
    return BulkOperationResult(
        success=not failures,
        total_count=total,
        success_count=total - len(failures),
        failure_count=len(failures),
        failures=failures or None,
    )


def bulk_create_users(store: TenantStore, tenant_id: str, items: list[dict[str, Any]]) -> BulkOperationResult:
    failures = []
    for index, item in enumerate(items):
        try:
            create_user(store, tenant_id, CreateTenantUserData.model_validate(item))
        except ValidationError as e:
            failures.append(BulkOperationFailure(index=index, error=_first_error(e)))
        except ValueError as e:
            failures.append(BulkOperationFailure(index=index, error=str(e)))
    return _bulk_result(len(items), failures)


def bulk_delete_users(store: TenantStore, tenant_id: str, user_ids: list[str]) -> BulkOperationResult:
    failures = []
    for index, user_id in enumerate(user_ids):
        if not delete_user(store, tenant_id, user_id):
            failures.append(BulkOperationFailure(index=index, id=user_id, error="User not found"))
    return _bulk_result(len(user_ids), failures)


def bulk_update_roles(store: TenantStore, tenant_id: str, items: list[dict[str, Any]]) -> BulkOperationResult:
    failures = []
    for index, item in enumerate(items):
        try:
            change = UserRoleUpdate.model_validate(item)
        except ValidationError as e:
            failures.append(BulkOperationFailure(index=index, id=item.get("userId"), error=_first_error(e)))
            continue
        try:
            if not update_role(store, tenant_id, change.user_id, change.role):
                failures.append(BulkOperationFailure(index=index, id=change.user_id, error="User not found"))
        except ValueError as e:
            failures.append(BulkOperationFailure(index=index, id=change.user_id, error=str(e)))
    return _bulk_result(len(items), failures)


# Invitations

def _deliver(invitation: InvitationRecord, token: str) -> None:
    """Sandbox delivery: the invitation link goes to the log instead of an inbox."""
    logger.info(
        "Invitation for %s (%s) to tenant %s, expires %s, accept token: %s",
        invitation.email, invitation.role.value, invitation.tenant_id,
        invitation.expires_at.isoformat(), token,
    )


def _expire_stale(store: TenantStore, invitation: InvitationRecord) -> InvitationRecord:
    if invitation.status == InvitationStatus.PENDING and invitation.expires_at <= _now():
        invitation.status = InvitationStatus.EXPIRED
        store.save_invitation(invitation)
    return invitation


def invite_user(store: TenantStore, tenant_id: str, data: UserInvitation) -> tuple[InvitationRecord, str]:
    """Create a pending invitation. Returns the record and the raw accept token."""
    email = data.email.lower()
    if _email_taken(store, tenant_id, email):
        raise ConflictError(f"{data.email} is already a member of this tenant")
    for existing in list_invitations(store, tenant_id):
        if existing.email.lower() == email and existing.status == InvitationStatus.PENDING:
            raise ConflictError(f"{data.email} already has a pending invitation")

    raw_token = secrets.token_urlsafe(48)
    now = _now()
    hours = data.expires_in or settings.invitation_expiry_hours
    invitation = InvitationRecord(
        id=f"inv_{secrets.token_hex(8)}",
        tenant_id=tenant_id,
        email=data.email,
        name=data.name,
        role=data.role,
        permissions=data.permissions or [],
        message=data.message,
        status=InvitationStatus.PENDING,
        created_at=now,
        expires_at=now + timedelta(hours=hours),
        token_hash=_hash_token(raw_token),
    )
    store.save_invitation(invitation)
    _deliver(invitation, raw_token)
    return invitation, raw_token


def list_invitations(store: TenantStore, tenant_id: str) -> list[InvitationRecord]:
    invitations = [_expire_stale(store, i) for i in store.list_invitations(tenant_id)]
    return sorted(invitations, key=lambda i: i.created_at)


def resend_invitation(store: TenantStore, tenant_id: str, invitation_id: str) -> InvitationRecord | None:
    """Re-deliver with a fresh token. The expiry date does not move."""
    invitation = store.get_invitation(tenant_id, invitation_id)
    if not invitation:
        return None
    invitation = _expire_stale(store, invitation)
    if invitation.status != InvitationStatus.PENDING:
        raise ValueError(f"Only pending invitations can be resent (status: {invitation.status.value})")

    raw_token = secrets.token_urlsafe(48)
    invitation.token_hash = _hash_token(raw_token)
    store.save_invitation(invitation)
    _deliver(invitation, raw_token)
    return invitation


def cancel_invitation(store: TenantStore, tenant_id: str, invitation_id: str) -> bool:
    invitation = store.get_invitation(tenant_id, invitation_id)
    if not invitation:
        return False
    if invitation.status == InvitationStatus.ACCEPTED:
        raise ValueError("Accepted invitations cannot be cancelled")
    store.delete_invitation(tenant_id, invitation_id)
    logger.info("Cancelled invitation %s for %s", invitation_id, invitation.email)
    return True


def accept_invitation(store: TenantStore, token: str, name: str | None = None) -> TenantUser:
    """
    Accept an invitation by its token.
    Creates the TenantUser in the invitation's tenant and marks the invitation accepted.
    """
    invitation = store.find_invitation_by_token_hash(_hash_token(token))
    if not invitation or invitation.status != InvitationStatus.PENDING:
        raise ValueError("Invalid or expired invitation")

    if _expire_stale(store, invitation).status == InvitationStatus.EXPIRED:
        raise ValueError("Invitation has expired")

    user = create_user(store, invitation.tenant_id, CreateTenantUserData(
        email=invitation.email,
        name=name or invitation.name,
        role=invitation.role,
        permissions=invitation.permissions,
    ))

    invitation.status = InvitationStatus.ACCEPTED
    invitation.accepted_at = _now()
    store.save_invitation(invitation)
    return user
