from fastapi import APIRouter, Depends, HTTPException

from edpsych_tenancy.dependencies import get_store
from edpsych_tenancy.models.billing import (
    BillingPortalSessionResult,
    CancelRequest,
    CheckoutCompletion,
    CheckoutSessionResult,
    CreateCheckoutSessionData,
    QuantityUpdate,
    SubscriptionDetails,
    SubscriptionInvoice,
    SubscriptionPlan,
)
from edpsych_tenancy.sandbox import billing_service
from edpsych_tenancy.storage.base import TenantStore

router = APIRouter(tags=["Subscriptions"])


@router.get("/plans", response_model=list[SubscriptionPlan])
async def list_plans(store: TenantStore = Depends(get_store)):
    return billing_service.list_plans(store)


@router.get("/plans/{plan_id}", response_model=SubscriptionPlan)
async def get_plan(plan_id: str, store: TenantStore = Depends(get_store)):
    plan = billing_service.get_plan(store, plan_id)
    if not plan:
        raise HTTPException(status_code=404, detail="Plan not found")
    return plan


@router.get("/tenants/{tenant_id}/subscription", response_model=SubscriptionDetails)
async def get_subscription(tenant_id: str, store: TenantStore = Depends(get_store)):
    sub = billing_service.get_subscription(store, tenant_id)
    if not sub:
        raise HTTPException(status_code=404, detail="No subscription for this tenant")
    return sub


@router.put("/tenants/{tenant_id}/subscription/quantity", response_model=SubscriptionDetails)
async def update_quantity(tenant_id: str, body: QuantityUpdate, store: TenantStore = Depends(get_store)):
    try:
        sub = billing_service.update_quantity(store, tenant_id, body.quantity)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not sub:
        raise HTTPException(status_code=404, detail="No subscription for this tenant")
    return sub


@router.post("/tenants/{tenant_id}/subscription/cancel", response_model=SubscriptionDetails)
async def cancel_subscription(tenant_id: str, body: CancelRequest, store: TenantStore = Depends(get_store)):
    try:
        sub = billing_service.cancel_subscription(store, tenant_id, body.at_period_end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not sub:
        raise HTTPException(status_code=404, detail="No subscription for this tenant")
    return sub


@router.post("/tenants/{tenant_id}/subscription/reactivate", response_model=SubscriptionDetails)
async def reactivate_subscription(tenant_id: str, store: TenantStore = Depends(get_store)):
    try:
        sub = billing_service.reactivate_subscription(store, tenant_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not sub:
        raise HTTPException(status_code=404, detail="No subscription for this tenant")
    return sub


@router.post("/tenants/{tenant_id}/checkout", response_model=CheckoutSessionResult)
async def create_checkout(tenant_id: str, body: CreateCheckoutSessionData, store: TenantStore = Depends(get_store)):
    try:
        session = billing_service.create_checkout_session(store, tenant_id, body)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not session:
        raise HTTPException(status_code=404, detail="Plan not found")
    return CheckoutSessionResult(**session)


@router.post("/tenants/{tenant_id}/checkout/{session_id}/complete", response_model=SubscriptionDetails)
async def complete_checkout(
    tenant_id: str,
    session_id: str,
    body: CheckoutCompletion | None = None,
    store: TenantStore = Depends(get_store),
):
    """Sandbox only: what the billing provider does once the customer has paid."""
    trial_days = body.trial_days if body else 0
    try:
        sub = billing_service.complete_checkout(store, tenant_id, session_id, trial_days)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not sub:
        raise HTTPException(status_code=404, detail="Checkout session not found")
    return sub


@router.post("/tenants/{tenant_id}/billing-portal", response_model=BillingPortalSessionResult)
async def create_billing_portal(tenant_id: str, store: TenantStore = Depends(get_store)):
    if not store.get_customer_id(tenant_id):
        raise HTTPException(status_code=400, detail="Tenant has no billing account yet")
    return BillingPortalSessionResult(**billing_service.create_billing_portal_session(tenant_id))


@router.get("/tenants/{tenant_id}/invoices", response_model=list[SubscriptionInvoice])
async def list_invoices(tenant_id: str, store: TenantStore = Depends(get_store)):
    return billing_service.list_invoices(store, tenant_id)


@router.get("/tenants/{tenant_id}/invoices/{invoice_id}", response_model=SubscriptionInvoice)
async def get_invoice(tenant_id: str, invoice_id: str, store: TenantStore = Depends(get_store)):
    invoice = billing_service.get_invoice(store, tenant_id, invoice_id)
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice
