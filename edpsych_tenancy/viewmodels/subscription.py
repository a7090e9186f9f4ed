from typing import Any

from edpsych_tenancy.models.billing import (
    BillingPortalSessionResult,
    CheckoutSessionResult,
    CreateCheckoutSessionData,
    SubscriptionDetails,
    SubscriptionInvoice,
    SubscriptionPlan,
)
from edpsych_tenancy.services.subscription_service import SubscriptionManagementService
from edpsych_tenancy.viewmodels.base import TenantViewModel, ViewModel


class SubscriptionPlansViewModel(ViewModel):
    """Plan catalogue, fetched once on mount."""

    def __init__(self, service: SubscriptionManagementService) -> None:
        super().__init__()
        self._service = service
        self.plans: list[SubscriptionPlan] = []

    async def load_plans(self) -> list[SubscriptionPlan]:
        async with self._operation():
            plans = await self._call(self._service.get_available_plans())
            self._set_state(plans=plans)
            return plans

    async def mount(self) -> None:
        await self._mount_load(self.load_plans)


class TenantSubscriptionViewModel(TenantViewModel):
    """
    One tenant's subscription. Every successful mutation replaces
    ``subscription`` with the object the server returned.
    """

    subscription: SubscriptionDetails | None

    def __init__(self, service: SubscriptionManagementService, tenant_id: str | None) -> None:
        super().__init__(tenant_id)
        self._service = service

    def _empty_state(self) -> dict[str, Any]:
        return {"subscription": None}

    async def reload(self) -> SubscriptionDetails | None:
        return await self.load_subscription()

    async def load_subscription(self) -> SubscriptionDetails | None:
        if not self.tenant_id:
            return None
        async with self._operation():
            data = await self._call(self._service.get_current_subscription(self.tenant_id))
            self._set_state(subscription=data)
            return data

    async def create_checkout(
        self,
        data: CreateCheckoutSessionData | dict[str, Any],
    ) -> CheckoutSessionResult | None:
        if not self.tenant_id:
            return None
        async with self._operation():
            return await self._call(self._service.create_checkout_session(self.tenant_id, data))

    async def create_billing_portal(self) -> BillingPortalSessionResult | None:
        if not self.tenant_id:
            return None
        async with self._operation():
            return await self._call(self._service.create_billing_portal_session(self.tenant_id))

    async def update_quantity(self, quantity: int) -> SubscriptionDetails | None:
        if not self.tenant_id:
            return None
        async with self._operation():
            updated = await self._call(
                self._service.update_subscription_quantity(self.tenant_id, quantity)
            )
            self._set_state(subscription=updated)
            return updated

    async def cancel_subscription(self, at_period_end: bool = True) -> SubscriptionDetails | None:
        if not self.tenant_id:
            return None
        async with self._operation():
            updated = await self._call(self._service.cancel_subscription(self.tenant_id, at_period_end))
            self._set_state(subscription=updated)
            return updated

    async def reactivate_subscription(self) -> SubscriptionDetails | None:
        if not self.tenant_id:
            return None
        async with self._operation():
            updated = await self._call(self._service.reactivate_subscription(self.tenant_id))
            self._set_state(subscription=updated)
            return updated


class TenantInvoicesViewModel(TenantViewModel):
    invoices: list[SubscriptionInvoice]

    def __init__(self, service: SubscriptionManagementService, tenant_id: str | None) -> None:
        super().__init__(tenant_id)
        self._service = service

    def _empty_state(self) -> dict[str, Any]:
        return {"invoices": []}

    async def reload(self) -> list[SubscriptionInvoice] | None:
        return await self.load_invoices()

    async def load_invoices(self) -> list[SubscriptionInvoice] | None:
        if not self.tenant_id:
            return None
        async with self._operation():
            invoices = await self._call(self._service.get_invoices(self.tenant_id))
            self._set_state(invoices=invoices)
            return invoices

    async def get_invoice_details(self, invoice_id: str) -> SubscriptionInvoice | None:
        """Fetch one invoice on demand; the cached list is left alone."""
        if not self.tenant_id:
            return None
        async with self._operation():
            return await self._call(self._service.get_invoice(self.tenant_id, invoice_id))
