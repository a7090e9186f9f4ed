import httpx
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient

from edpsych_tenancy.client.api_client import ApiClient
from edpsych_tenancy.config import settings
from edpsych_tenancy.main import create_app
from edpsych_tenancy.services.subscription_service import SubscriptionManagementService
from edpsych_tenancy.services.user_service import TenantUserManagementService
from edpsych_tenancy.storage.memory import InMemoryStore

SESSION = "test-session-token"


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def app(store):
    return create_app(store)


@pytest.fixture
def client(app):
    """Sync TestClient carrying a session cookie."""
    return TestClient(app, cookies={settings.session_cookie_name: SESSION})


@pytest.fixture
def anon_client(app):
    return TestClient(app)


@pytest_asyncio.fixture
async def api_client(app):
    """ApiClient talking to the sandbox app in-process."""
    api = ApiClient(
        "http://test",
        session_token=SESSION,
        transport=httpx.ASGITransport(app=app),
    )
    yield api
    await api.aclose()


@pytest.fixture
def subscriptions(api_client):
    return SubscriptionManagementService(api_client)


@pytest.fixture
def users(api_client):
    return TenantUserManagementService(api_client)


@pytest.fixture
def mock_api_client():
    """ApiClient stand-in whose api_call is an AsyncMock."""
    mock = MagicMock(spec=ApiClient)
    mock.api_call = AsyncMock(return_value=None)
    return mock


CHECKOUT = {
    "plan_id": "plan_standard",
    "billing_interval": "monthly",
    "quantity": 5,
    "success_url": "https://app.edpsychconnect.com/billing/success",
    "cancel_url": "https://app.edpsychconnect.com/billing/cancel",
}


@pytest.fixture
def subscribe(api_client, subscriptions):
    """Open a checkout session and complete it the way the provider would."""

    async def _subscribe(tenant_id: str, **overrides):
        session = await subscriptions.create_checkout_session(tenant_id, {**CHECKOUT, **overrides})
        return await api_client.api_call(
            f"/api/subscriptions/tenants/{tenant_id}/checkout/{session.session_id}/complete", "POST"
        )

    return _subscribe


@pytest.fixture
def checkout_data():
    return dict(CHECKOUT)
