import pytest
from pydantic import ValidationError

from edpsych_tenancy.client.api_client import ApiError
from edpsych_tenancy.models.invite import InvitationStatus
from edpsych_tenancy.models.user import TenantRole
from edpsych_tenancy.services.user_service import TenantUserManagementService


def _user(email: str, name: str = "Sam Jones", role: str = "teacher") -> dict:
    return {"email": email, "name": name, "role": role}


# Validation

@pytest.mark.parametrize("data", [
    _user("not-an-email"),
    _user("sam@school.org", name="S"),
    _user("sam@school.org", name="x" * 101),
    _user("sam@school.org", role="headmaster"),
])
async def test_invalid_user_never_reaches_the_server(mock_api_client, data):
    service = TenantUserManagementService(mock_api_client)

    with pytest.raises(ValidationError):
        await service.create_user("t1", data)

    mock_api_client.api_call.assert_not_called()


async def test_bulk_create_validates_every_item_first(mock_api_client):
    service = TenantUserManagementService(mock_api_client)

    with pytest.raises(ValidationError):
        await service.bulk_create_users("t1", [_user("ok@school.org"), _user("broken")])

    mock_api_client.api_call.assert_not_called()


async def test_invitation_message_length_is_checked(mock_api_client):
    service = TenantUserManagementService(mock_api_client)

    with pytest.raises(ValidationError):
        await service.invite_user("t1", {**_user("sam@school.org"), "message": "x" * 501})
    with pytest.raises(ValidationError):
        await service.invite_user("t1", {**_user("sam@school.org"), "expires_in": 0})

    mock_api_client.api_call.assert_not_called()


# Query string

async def test_list_users_omits_empty_params(mock_api_client):
    mock_api_client.api_call.return_value = {
        "users": [], "total": 0, "page": 1, "limit": 10, "totalPages": 0,
    }
    service = TenantUserManagementService(mock_api_client)

    await service.list_users("t1", {"page": 1, "search": "", "role": None})

    mock_api_client.api_call.assert_awaited_once_with("/api/tenants/t1/users", "GET", None, {"page": "1"})


async def test_list_users_uses_camel_case_params(mock_api_client):
    mock_api_client.api_call.return_value = {
        "users": [], "total": 0, "page": 2, "limit": 5, "totalPages": 0,
    }
    service = TenantUserManagementService(mock_api_client)

    await service.list_users("t1", {"page": 2, "limit": 5, "sort_by": "name", "sort_order": "desc", "role": "parent"})

    _, _, _, params = mock_api_client.api_call.await_args.args
    assert params == {"page": "2", "limit": "5", "sortBy": "name", "sortOrder": "desc", "role": "parent"}


async def test_list_users_leaves_paging_limits_to_the_server(mock_api_client):
    mock_api_client.api_call.return_value = {
        "users": [], "total": 0, "page": 1, "limit": 200, "totalPages": 0,
    }
    service = TenantUserManagementService(mock_api_client)

    await service.list_users("t1", {"limit": 200})

    mock_api_client.api_call.assert_awaited_once_with("/api/tenants/t1/users", "GET", None, {"limit": "200"})


async def test_sandbox_still_caps_page_size(users):
    with pytest.raises(ApiError) as exc_info:
        await users.list_users("t1", {"limit": 200})
    assert exc_info.value.status_code == 422


# Against the sandbox

async def test_create_get_update_delete(users):
    created = await users.create_user("t1", _user("sam@school.org"))
    assert created.tenant_id == "t1"
    assert created.role == TenantRole.TEACHER

    fetched = await users.get_user("t1", created.id)
    assert fetched.email == "sam@school.org"

    updated = await users.update_user("t1", created.id, {"name": "Samantha Jones", "settings": {"theme": "dark"}})
    assert updated.name == "Samantha Jones"
    assert updated.settings == {"theme": "dark"}

    assert await users.delete_user("t1", created.id) is None
    with pytest.raises(ApiError) as exc_info:
        await users.get_user("t1", created.id)
    assert exc_info.value.status_code == 404


async def test_duplicate_email_is_conflict(users):
    await users.create_user("t1", _user("sam@school.org"))

    with pytest.raises(ApiError) as exc_info:
        await users.create_user("t1", _user("SAM@school.org", name="Other Sam"))
    assert exc_info.value.status_code == 409

    # Same address is fine in another tenant
    await users.create_user("t2", _user("sam@school.org"))


async def test_list_users_filters_sorts_and_pages(users):
    for name, role in [("Cara", "teacher"), ("Alex", "parent"), ("Bea", "teacher"), ("Dan", "teacher")]:
        await users.create_user("t1", _user(f"{name.lower()}@school.org", name=f"{name} Smith", role=role))

    teachers = await users.list_users("t1", {"role": "teacher", "sort_by": "name"})
    assert [u.name for u in teachers.users] == ["Bea Smith", "Cara Smith", "Dan Smith"]
    assert teachers.total == 3

    page = await users.list_users("t1", {"page": 2, "limit": 3, "sort_by": "name"})
    assert [u.name for u in page.users] == ["Dan Smith"]
    assert page.total == 4
    assert page.total_pages == 2

    found = await users.list_users("t1", {"search": "ALEX"})
    assert [u.email for u in found.users] == ["alex@school.org"]


async def test_role_and_permissions(users):
    user = await users.create_user("t1", _user("sam@school.org"))

    promoted = await users.update_user_role("t1", user.id, TenantRole.EDUCATIONAL_PSYCHOLOGIST)
    assert promoted.role == TenantRole.EDUCATIONAL_PSYCHOLOGIST

    granted = await users.update_user_permissions("t1", user.id, ["reports:read", "reports:write", "reports:read"])
    assert granted.permissions == ["reports:read", "reports:write"]


async def test_last_admin_keeps_role(users):
    admin = await users.create_user("t1", _user("head@school.org", role="admin"))

    with pytest.raises(ApiError, match="last tenant admin"):
        await users.update_user_role("t1", admin.id, TenantRole.TEACHER)


async def test_bulk_delete_reports_missing_ids(users):
    a = await users.create_user("t1", _user("a@school.org"))
    c = await users.create_user("t1", _user("c@school.org"))

    result = await users.bulk_delete_users("t1", [a.id, "usr_missing", c.id])

    assert result.success is False
    assert result.total_count == 3
    assert result.success_count == 2
    assert result.failure_count == 1
    assert result.failures[0].index == 1
    assert result.failures[0].id == "usr_missing"
    assert (await users.list_users("t1")).total == 0


async def test_bulk_create_partial_success(users):
    await users.create_user("t1", _user("taken@school.org"))

    result = await users.bulk_create_users("t1", [
        _user("new@school.org", name="New Person"),
        _user("taken@school.org", name="Duplicate Person"),
    ])

    assert result.success is False
    assert result.success_count == 1
    assert result.failures[0].index == 1
    assert "already exists" in result.failures[0].error


async def test_bulk_update_roles(users):
    a = await users.create_user("t1", _user("a@school.org"))
    b = await users.create_user("t1", _user("b@school.org"))

    result = await users.bulk_update_user_roles("t1", [
        {"user_id": a.id, "role": "teaching_assistant"},
        {"user_id": b.id, "role": "parent"},
    ])

    assert result.success is True
    assert result.failures is None
    assert (await users.get_user("t1", b.id)).role == TenantRole.PARENT


async def test_invite_then_cancel(users):
    invitation = await users.invite_user("t1", {**_user("new@school.org"), "message": "Welcome aboard"})
    assert invitation.status == InvitationStatus.PENDING
    assert invitation.expires_at > invitation.created_at

    assert [i.id for i in await users.list_invitations("t1")] == [invitation.id]

    await users.cancel_invitation("t1", invitation.id)
    assert await users.list_invitations("t1") == []


async def test_duplicate_pending_invitation_is_conflict(users):
    await users.invite_user("t1", _user("new@school.org"))

    with pytest.raises(ApiError) as exc_info:
        await users.invite_user("t1", _user("new@school.org"))
    assert exc_info.value.status_code == 409


async def test_resend_keeps_expiry(users):
    invitation = await users.invite_user("t1", {**_user("new@school.org"), "expires_in": 48})

    resent = await users.resend_invitation("t1", invitation.id)

    assert resent.id == invitation.id
    assert resent.expires_at == invitation.expires_at


async def test_missing_invitation_is_not_found(users):
    with pytest.raises(ApiError) as exc_info:
        await users.resend_invitation("t1", "inv_missing")
    assert exc_info.value.status_code == 404
