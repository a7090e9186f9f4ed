from fastapi import Request

from edpsych_tenancy.storage.base import TenantStore


def get_store(request: Request) -> TenantStore:
    """The TenantStore the app was created with (set in create_app)."""
    return request.app.state.store
