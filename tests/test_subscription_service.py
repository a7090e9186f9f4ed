import pytest
from pydantic import ValidationError

from edpsych_tenancy.client.api_client import ApiError
from edpsych_tenancy.models.billing import BillingInterval, InvoiceStatus, SubscriptionStatus, SubscriptionTier
from edpsych_tenancy.services.subscription_service import SubscriptionManagementService


# Validation happens before any request

@pytest.mark.parametrize("override", [
    {"quantity": 0},
    {"quantity": -1},
    {"quantity": "3"},
    {"plan_id": ""},
    {"billing_interval": "weekly"},
    {"success_url": "not a url"},
])
async def test_invalid_checkout_data_never_reaches_the_server(mock_api_client, checkout_data, override):
    service = SubscriptionManagementService(mock_api_client)

    with pytest.raises(ValidationError):
        await service.create_checkout_session("t1", {**checkout_data, **override})

    mock_api_client.api_call.assert_not_called()


async def test_invalid_quantity_update_never_reaches_the_server(mock_api_client):
    service = SubscriptionManagementService(mock_api_client)

    with pytest.raises(ValidationError):
        await service.update_subscription_quantity("t1", 0)

    mock_api_client.api_call.assert_not_called()


# Missing subscription

async def test_no_subscription_is_none(subscriptions):
    assert await subscriptions.get_current_subscription("tenant-without-plan") is None


async def test_404_in_message_is_none(mock_api_client):
    mock_api_client.api_call.side_effect = ApiError("Request failed with 404")
    service = SubscriptionManagementService(mock_api_client)

    assert await service.get_current_subscription("t1") is None


async def test_other_errors_propagate(mock_api_client):
    mock_api_client.api_call.side_effect = ApiError("boom", status_code=500)
    service = SubscriptionManagementService(mock_api_client)

    with pytest.raises(ApiError, match="boom"):
        await service.get_current_subscription("t1")


async def test_unknown_plan_raises(subscriptions):
    with pytest.raises(ApiError) as exc_info:
        await subscriptions.get_plan("plan_missing")
    assert exc_info.value.status_code == 404
    assert exc_info.value.message == "Plan not found"


# Against the sandbox

async def test_plan_catalogue(subscriptions):
    plans = await subscriptions.get_available_plans()

    assert [p.tier for p in plans] == list(SubscriptionTier)
    standard = await subscriptions.get_plan("plan_standard")
    assert standard.is_popular
    assert standard.pricing[BillingInterval.MONTHLY].currency == "GBP"
    assert standard.pricing[BillingInterval.ANNUAL].amount < standard.pricing[BillingInterval.MONTHLY].amount * 12


async def test_checkout_returns_hosted_page(subscriptions, checkout_data):
    session = await subscriptions.create_checkout_session("t1", checkout_data)

    assert session.session_id.startswith("cs_")
    assert session.checkout_url.endswith(session.session_id)
    # Nothing is subscribed until the customer pays
    assert await subscriptions.get_current_subscription("t1") is None


async def test_checkout_completion_starts_subscription_and_bills(subscriptions, subscribe):
    await subscribe("t1", quantity=4)

    sub = await subscriptions.get_current_subscription("t1")
    assert sub.status == SubscriptionStatus.ACTIVE
    assert sub.plan_id == "plan_standard"
    assert sub.quantity == 4
    assert sub.current_period_end > sub.current_period_start

    invoices = await subscriptions.get_invoices("t1")
    assert len(invoices) == 1
    assert invoices[0].status == InvoiceStatus.PAID
    assert invoices[0].number == "EPC-00001"
    assert invoices[0].amount == 149.0 * 4

    detail = await subscriptions.get_invoice("t1", invoices[0].id)
    assert detail == invoices[0]


async def test_cancel_at_period_end_then_reactivate(subscriptions, subscribe):
    await subscribe("t1")

    canceled = await subscriptions.cancel_subscription("t1", at_period_end=True)
    assert canceled.cancel_at_period_end is True
    assert canceled.status == SubscriptionStatus.ACTIVE

    reactivated = await subscriptions.reactivate_subscription("t1")
    assert reactivated.cancel_at_period_end is False
    assert reactivated.status == SubscriptionStatus.ACTIVE


async def test_immediate_cancel_then_reactivate(subscriptions, subscribe):
    await subscribe("t1")

    canceled = await subscriptions.cancel_subscription("t1", at_period_end=False)
    assert canceled.status == SubscriptionStatus.CANCELED

    with pytest.raises(ApiError, match="already canceled"):
        await subscriptions.cancel_subscription("t1", at_period_end=False)

    reactivated = await subscriptions.reactivate_subscription("t1")
    assert reactivated.status == SubscriptionStatus.ACTIVE


async def test_reactivate_without_pending_cancellation_fails(subscriptions, subscribe):
    await subscribe("t1")

    with pytest.raises(ApiError) as exc_info:
        await subscriptions.reactivate_subscription("t1")
    assert exc_info.value.status_code == 400


async def test_quantity_update_respects_plan_seats(subscriptions, subscribe):
    await subscribe("t1", plan_id="plan_basic")

    updated = await subscriptions.update_subscription_quantity("t1", 8)
    assert updated.quantity == 8

    with pytest.raises(ApiError, match="at most 10 seats"):
        await subscriptions.update_subscription_quantity("t1", 11)


async def test_new_checkout_replaces_live_subscription(subscriptions, subscribe):
    await subscribe("t1", plan_id="plan_basic")
    await subscribe("t1", plan_id="plan_premium", billing_interval="annual")

    sub = await subscriptions.get_current_subscription("t1")
    assert sub.tier == SubscriptionTier.PREMIUM
    assert sub.billing_interval == "annual"
    assert len(await subscriptions.get_invoices("t1")) == 2


async def test_billing_portal_needs_billing_account(subscriptions, subscribe):
    with pytest.raises(ApiError) as exc_info:
        await subscriptions.create_billing_portal_session("t1")
    assert exc_info.value.status_code == 400

    await subscribe("t1")
    portal = await subscriptions.create_billing_portal_session("t1")
    assert "tenant=t1" in portal.portal_url


async def test_subscriptions_are_tenant_scoped(subscriptions, subscribe):
    await subscribe("t1")

    assert await subscriptions.get_current_subscription("t2") is None
    assert await subscriptions.get_invoices("t2") == []
