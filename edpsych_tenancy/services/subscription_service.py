import logging
from typing import Any

from pydantic import TypeAdapter

from edpsych_tenancy.client.api_client import ApiClient, ApiError
from edpsych_tenancy.config import settings
from edpsych_tenancy.models.billing import (
    BillingPortalSessionResult,
    CancelRequest,
    CheckoutSessionResult,
    CreateCheckoutSessionData,
    QuantityUpdate,
    SubscriptionDetails,
    SubscriptionInvoice,
    SubscriptionPlan,
)

logger = logging.getLogger("edpsych-tenancy")

_plans = TypeAdapter(list[SubscriptionPlan])
_invoices = TypeAdapter(list[SubscriptionInvoice])


class SubscriptionManagementService:
    """Tenant billing: plan catalogue, subscription lifecycle, checkout, invoices."""

    def __init__(self, client: ApiClient, base_url: str | None = None):
        self._client = client
        self._base_url = (base_url or settings.subscriptions_api_base).rstrip("/")

    async def _api_call(self, endpoint: str, method: str = "GET", data: Any = None) -> Any:
        return await self._client.api_call(f"{self._base_url}{endpoint}", method, data)

    # Plans

    async def get_available_plans(self) -> list[SubscriptionPlan]:
        return _plans.validate_python(await self._api_call("/plans"))

    async def get_plan(self, plan_id: str) -> SubscriptionPlan:
        return SubscriptionPlan.model_validate(await self._api_call(f"/plans/{plan_id}"))

    # Subscription

    async def get_current_subscription(self, tenant_id: str) -> SubscriptionDetails | None:
        """Current subscription, or None when the tenant has none."""
        try:
            data = await self._api_call(f"/tenants/{tenant_id}/subscription")
        except ApiError as e:
            if e.status_code == 404 or "404" in str(e):
                return None
            raise
        return SubscriptionDetails.model_validate(data)

    async def update_subscription_quantity(self, tenant_id: str, quantity: int) -> SubscriptionDetails:
        body = QuantityUpdate(quantity=quantity)
        data = await self._api_call(f"/tenants/{tenant_id}/subscription/quantity", "PUT", body)
        logger.info("Subscription quantity for tenant %s set to %s", tenant_id, quantity)
        return SubscriptionDetails.model_validate(data)

    async def cancel_subscription(self, tenant_id: str, at_period_end: bool) -> SubscriptionDetails:
        body = CancelRequest(at_period_end=at_period_end)
        data = await self._api_call(f"/tenants/{tenant_id}/subscription/cancel", "POST", body)
        logger.info("Cancellation requested for tenant %s (at_period_end=%s)", tenant_id, at_period_end)
        return SubscriptionDetails.model_validate(data)

    async def reactivate_subscription(self, tenant_id: str) -> SubscriptionDetails:
        data = await self._api_call(f"/tenants/{tenant_id}/subscription/reactivate", "POST")
        logger.info("Reactivation requested for tenant %s", tenant_id)
        return SubscriptionDetails.model_validate(data)

    # Checkout

    async def create_checkout_session(
        self,
        tenant_id: str,
        data: CreateCheckoutSessionData | dict[str, Any],
    ) -> CheckoutSessionResult:
        """Validate locally, then ask the server for a hosted checkout page."""
        payload = CreateCheckoutSessionData.model_validate(data)
        result = await self._api_call(f"/tenants/{tenant_id}/checkout", "POST", payload)
        return CheckoutSessionResult.model_validate(result)

    async def create_billing_portal_session(self, tenant_id: str) -> BillingPortalSessionResult:
        result = await self._api_call(f"/tenants/{tenant_id}/billing-portal", "POST")
        return BillingPortalSessionResult.model_validate(result)

    # Invoices

    async def get_invoices(self, tenant_id: str) -> list[SubscriptionInvoice]:
        return _invoices.validate_python(await self._api_call(f"/tenants/{tenant_id}/invoices"))

    async def get_invoice(self, tenant_id: str, invoice_id: str) -> SubscriptionInvoice:
        data = await self._api_call(f"/tenants/{tenant_id}/invoices/{invoice_id}")
        return SubscriptionInvoice.model_validate(data)
