"""
Sandbox stand-in for the billing provider: owns the subscription status
transitions the real provider would drive.
"""
import logging
import secrets
from datetime import datetime, timezone, timedelta

from edpsych_tenancy.config import settings
from edpsych_tenancy.models.billing import (
    BillingInterval,
    CreateCheckoutSessionData,
    InvoiceStatus,
    SubscriptionDetails,
    SubscriptionInvoice,
    SubscriptionPlan,
    SubscriptionStatus,
)
from edpsych_tenancy.storage.base import TenantStore

logger = logging.getLogger("edpsych-tenancy")

_PERIOD = {
    BillingInterval.MONTHLY: timedelta(days=30),
    BillingInterval.QUARTERLY: timedelta(days=91),
    BillingInterval.ANNUAL: timedelta(days=365),
}

_TIER_ORDER = ["free", "basic", "standard", "premium", "enterprise"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def list_plans(store: TenantStore) -> list[SubscriptionPlan]:
    """All plans, cheapest tier first."""
    return sorted(store.list_plans(), key=lambda p: _TIER_ORDER.index(p.tier.value))


def get_plan(store: TenantStore, plan_id: str) -> SubscriptionPlan | None:
    return store.get_plan(plan_id)


def _issue_invoice(store: TenantStore, sub: SubscriptionDetails, at: datetime) -> None:
    """Paid invoice for one period of the subscription's plan and seats."""
    plan = store.get_plan(sub.plan_id)
    if not plan:
        return
    price = plan.pricing[sub.billing_interval]
    number = len(store.list_invoices(sub.tenant_id)) + 1
    invoice_id = f"in_{secrets.token_hex(8)}"
    store.add_invoice(sub.tenant_id, SubscriptionInvoice(
        id=invoice_id,
        number=f"EPC-{number:05d}",
        amount=round(price.amount * sub.quantity, 2),
        currency=price.currency,
        status=InvoiceStatus.PAID,
        created_at=at,
        due_date=at,
        paid_at=at,
        pdf_url=f"{settings.invoice_base_url}/{invoice_id}.pdf",
    ))


def _advance(store: TenantStore, sub: SubscriptionDetails) -> SubscriptionDetails:
    """Apply the time-driven transitions the provider would have sent by now."""
    now = _now()
    changed = False

    trial_over = sub.status == SubscriptionStatus.TRIALING and sub.trial_end and sub.trial_end <= now
    if trial_over and not sub.cancel_at_period_end:
        # Sandbox customers always have a card on file. The first paid period starts when the trial ends
        sub.status = SubscriptionStatus.ACTIVE
        sub.current_period_start = sub.trial_end
        sub.current_period_end = sub.trial_end + _PERIOD[sub.billing_interval]
        _issue_invoice(store, sub, sub.trial_end)
        changed = True

    if sub.cancel_at_period_end and sub.status != SubscriptionStatus.CANCELED and sub.current_period_end <= now:
        sub.status = SubscriptionStatus.CANCELED
        sub.cancel_at_period_end = False
        changed = True

    if changed:
        store.save_subscription(sub)
        logger.info("Subscription %s for tenant %s moved to %s", sub.id, sub.tenant_id, sub.status.value)
    return sub


def get_subscription(store: TenantStore, tenant_id: str) -> SubscriptionDetails | None:
    sub = store.get_subscription(tenant_id)
    if not sub:
        return None
    return _advance(store, sub)


def update_quantity(store: TenantStore, tenant_id: str, quantity: int) -> SubscriptionDetails | None:
    sub = get_subscription(store, tenant_id)
    if not sub:
        return None
    if sub.status == SubscriptionStatus.CANCELED:
        raise ValueError("Cannot change the seat count of a canceled subscription")

    plan = store.get_plan(sub.plan_id)
    if plan and plan.max_users is not None and quantity > plan.max_users:
        raise ValueError(f"The {plan.name} plan allows at most {plan.max_users} seats")

    sub.quantity = quantity
    store.save_subscription(sub)
    logger.info("Tenant %s now has %s seats", tenant_id, quantity)
    return sub


def cancel_subscription(store: TenantStore, tenant_id: str, at_period_end: bool) -> SubscriptionDetails | None:
    sub = get_subscription(store, tenant_id)
    if not sub:
        return None
    if sub.status == SubscriptionStatus.CANCELED:
        raise ValueError("Subscription is already canceled")

    if at_period_end:
        sub.cancel_at_period_end = True
    else:
        sub.status = SubscriptionStatus.CANCELED
        sub.cancel_at_period_end = False
        # current_period_end is kept: it anchors the reactivation window

    store.save_subscription(sub)
    logger.info("Tenant %s canceled subscription %s (at_period_end=%s)", tenant_id, sub.id, at_period_end)
    return sub


def reactivate_subscription(store: TenantStore, tenant_id: str) -> SubscriptionDetails | None:
    sub = get_subscription(store, tenant_id)
    if not sub:
        return None

    if sub.status != SubscriptionStatus.CANCELED:
        if not sub.cancel_at_period_end:
            raise ValueError("Subscription is not scheduled for cancellation")
        sub.cancel_at_period_end = False
    else:
        window_end = sub.current_period_end + timedelta(days=settings.reactivation_window_days)
        if _now() > window_end:
            raise ValueError("Subscription can no longer be reactivated")
        now = _now()
        if sub.current_period_end <= now:
            sub.current_period_start = now
            sub.current_period_end = now + _PERIOD[sub.billing_interval]
        sub.status = SubscriptionStatus.ACTIVE

    store.save_subscription(sub)
    logger.info("Tenant %s reactivated subscription %s", tenant_id, sub.id)
    return sub


def create_checkout_session(store: TenantStore, tenant_id: str, data: CreateCheckoutSessionData) -> dict | None:
    """Open a hosted checkout session. None when the plan does not exist."""
    plan = store.get_plan(data.plan_id)
    if not plan:
        return None
    if plan.max_users is not None and data.quantity > plan.max_users:
        raise ValueError(f"The {plan.name} plan allows at most {plan.max_users} seats")

    session_id = f"cs_{secrets.token_urlsafe(18)}"
    store.save_checkout_session(tenant_id, session_id, data.model_dump())
    return {
        "checkout_url": f"{settings.checkout_base_url}/{session_id}",
        "session_id": session_id,
    }


def complete_checkout(
    store: TenantStore,
    tenant_id: str,
    session_id: str,
    trial_days: int = 0,
) -> SubscriptionDetails | None:
    """
    What the provider does once the customer pays: start the new subscription
    and retire the old one. Without a trial the first invoice is issued now;
    with one, the subscription is trialing and bills when the trial ends.
    """
    session = store.pop_checkout_session(tenant_id, session_id)
    if not session:
        return None

    data = CreateCheckoutSessionData.model_validate(session)
    plan = store.get_plan(data.plan_id)
    if not plan:
        raise ValueError("Plan no longer exists")

    previous = get_subscription(store, tenant_id)
    if previous and previous.status != SubscriptionStatus.CANCELED:
        previous.status = SubscriptionStatus.CANCELED
        previous.cancel_at_period_end = False
        store.save_subscription(previous)
        logger.info("Replaced subscription %s for tenant %s", previous.id, tenant_id)

    customer_id = store.get_customer_id(tenant_id)
    if not customer_id:
        customer_id = f"cus_{secrets.token_hex(8)}"
        store.save_customer_id(tenant_id, customer_id)

    now = _now()
    trial_end = now + timedelta(days=trial_days) if trial_days else None
    sub = SubscriptionDetails(
        id=f"sub_{secrets.token_hex(8)}",
        tenant_id=tenant_id,
        plan_id=plan.id,
        tier=plan.tier,
        status=SubscriptionStatus.TRIALING if trial_end else SubscriptionStatus.ACTIVE,
        billing_interval=data.billing_interval,
        current_period_start=now,
        current_period_end=trial_end or now + _PERIOD[data.billing_interval],
        trial_end=trial_end,
        cancel_at_period_end=False,
        quantity=data.quantity,
        external_subscription_id=f"ext_sub_{secrets.token_hex(8)}",
        external_customer_id=customer_id,
    )
    store.save_subscription(sub)
    if not trial_end:
        _issue_invoice(store, sub, now)

    logger.info("Tenant %s subscribed to %s (%s x%s)", tenant_id, plan.id, data.billing_interval.value, data.quantity)
    return sub


def create_billing_portal_session(tenant_id: str) -> dict:
    return {"portal_url": f"{settings.billing_portal_url}?tenant={tenant_id}&session={secrets.token_urlsafe(12)}"}


def list_invoices(store: TenantStore, tenant_id: str) -> list[SubscriptionInvoice]:
    """Newest first."""
    return sorted(store.list_invoices(tenant_id), key=lambda i: i.created_at, reverse=True)


def get_invoice(store: TenantStore, tenant_id: str, invoice_id: str) -> SubscriptionInvoice | None:
    return store.get_invoice(tenant_id, invoice_id)
