from datetime import datetime
from enum import Enum

from pydantic import Field, field_validator

from edpsych_tenancy.models.common import ApiModel, RequestModel, validate_url


class SubscriptionTier(str, Enum):
    FREE = "free"
    BASIC = "basic"
    STANDARD = "standard"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class BillingInterval(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    TRIALING = "trialing"
    INCOMPLETE = "incomplete"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    OPEN = "open"
    PAID = "paid"
    UNCOLLECTIBLE = "uncollectible"
    VOID = "void"


class PlanPrice(ApiModel):
    amount: float
    currency: str
    external_price_id: str


class SubscriptionPlan(ApiModel):
    id: str
    name: str
    description: str = ""
    tier: SubscriptionTier
    features: list[str] = []
    pricing: dict[BillingInterval, PlanPrice]
    is_popular: bool = False
    max_users: int | None = None
    max_storage: int | None = None  # GB


class SubscriptionDetails(ApiModel):
    id: str
    tenant_id: str
    plan_id: str
    tier: SubscriptionTier
    status: SubscriptionStatus
    billing_interval: BillingInterval
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool = False
    trial_end: datetime | None = None
    quantity: int
    external_subscription_id: str
    external_customer_id: str


class SubscriptionInvoice(ApiModel):
    id: str
    number: str
    amount: float
    currency: str
    status: InvoiceStatus
    created_at: datetime
    due_date: datetime | None = None
    paid_at: datetime | None = None
    pdf_url: str


class CreateCheckoutSessionData(RequestModel):
    plan_id: str = Field(..., min_length=1)
    billing_interval: BillingInterval
    quantity: int = Field(..., gt=0, strict=True)
    success_url: str
    cancel_url: str

    @field_validator("success_url", "cancel_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return validate_url(value)


class CheckoutSessionResult(ApiModel):
    checkout_url: str
    session_id: str


class BillingPortalSessionResult(ApiModel):
    portal_url: str


class QuantityUpdate(RequestModel):
    quantity: int = Field(..., gt=0, strict=True)


class CancelRequest(RequestModel):
    at_period_end: bool = True


class CheckoutCompletion(RequestModel):
    trial_days: int = Field(0, ge=0, le=90)
