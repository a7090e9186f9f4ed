"""
In-process TenantStore for the sandbox API and tests.
"""
from collections import defaultdict

from edpsych_tenancy.models.billing import (
    BillingInterval,
    PlanPrice,
    SubscriptionDetails,
    SubscriptionInvoice,
    SubscriptionPlan,
    SubscriptionTier,
)
from edpsych_tenancy.models.invite import InvitationRecord
from edpsych_tenancy.models.user import TenantUser
from edpsych_tenancy.storage.base import TenantStore

# Monthly price in GBP; quarterly gets 5% off, annual 15% off
_CATALOGUE = [
    ("plan_free", "Free", SubscriptionTier.FREE, 0.0, 3, 1,
     "Try the platform with a handful of colleagues.",
     ["Core assessment tools", "Community resources"], False),
    ("plan_basic", "Basic", SubscriptionTier.BASIC, 49.0, 10, 10,
     "For small schools getting started.",
     ["Core assessment tools", "Progress tracking", "Email support"], False),
    ("plan_standard", "Standard", SubscriptionTier.STANDARD, 149.0, 50, 100,
     "For schools rolling out across year groups.",
     ["Everything in Basic", "Parent portal", "Curriculum planning", "Analytics"], True),
    ("plan_premium", "Premium", SubscriptionTier.PREMIUM, 349.0, 200, 500,
     "For multi-academy trusts and specialist services.",
     ["Everything in Standard", "AI-assisted reports", "Priority support"], False),
    ("plan_enterprise", "Enterprise", SubscriptionTier.ENTERPRISE, 999.0, None, None,
     "Local authorities and large trusts.",
     ["Everything in Premium", "SSO", "Dedicated success manager"], False),
]

_INTERVAL_FACTOR = {
    BillingInterval.MONTHLY: 1,
    BillingInterval.QUARTERLY: 3 * 0.95,
    BillingInterval.ANNUAL: 12 * 0.85,
}


def default_plans() -> list[SubscriptionPlan]:
    plans = []
    for plan_id, name, tier, monthly, max_users, max_storage, description, features, popular in _CATALOGUE:
        pricing = {
            interval: PlanPrice(
                amount=round(monthly * factor, 2),
                currency="GBP",
                external_price_id=f"price_{tier.value}_{interval.value}",
            )
            for interval, factor in _INTERVAL_FACTOR.items()
        }
        plans.append(SubscriptionPlan(
            id=plan_id,
            name=name,
            description=description,
            tier=tier,
            features=features,
            pricing=pricing,
            is_popular=popular,
            max_users=max_users,
            max_storage=max_storage,
        ))
    return plans


class InMemoryStore(TenantStore):
    def __init__(self, plans: list[SubscriptionPlan] | None = None):
        self._plans: dict[str, SubscriptionPlan] = {
            p.id: p for p in (default_plans() if plans is None else plans)
        }
        self._subscriptions: dict[str, SubscriptionDetails] = {}
        self._customers: dict[str, str] = {}
        self._checkout_sessions: dict[tuple[str, str], dict] = {}
        self._invoices: dict[str, dict[str, SubscriptionInvoice]] = defaultdict(dict)
        self._users: dict[str, dict[str, TenantUser]] = defaultdict(dict)
        self._invitations: dict[str, dict[str, InvitationRecord]] = defaultdict(dict)

    def list_plans(self) -> list[SubscriptionPlan]:
        return [p.model_copy(deep=True) for p in self._plans.values()]

    def get_plan(self, plan_id: str) -> SubscriptionPlan | None:
        plan = self._plans.get(plan_id)
        return plan.model_copy(deep=True) if plan else None

    def get_subscription(self, tenant_id: str) -> SubscriptionDetails | None:
        sub = self._subscriptions.get(tenant_id)
        return sub.model_copy() if sub else None

    def save_subscription(self, subscription: SubscriptionDetails) -> SubscriptionDetails:
        self._subscriptions[subscription.tenant_id] = subscription.model_copy()
        return subscription

    def get_customer_id(self, tenant_id: str) -> str | None:
        return self._customers.get(tenant_id)

    def save_customer_id(self, tenant_id: str, customer_id: str) -> None:
        self._customers[tenant_id] = customer_id

    def save_checkout_session(self, tenant_id: str, session_id: str, session: dict) -> None:
        self._checkout_sessions[(tenant_id, session_id)] = dict(session)

    def pop_checkout_session(self, tenant_id: str, session_id: str) -> dict | None:
        return self._checkout_sessions.pop((tenant_id, session_id), None)

    def list_invoices(self, tenant_id: str) -> list[SubscriptionInvoice]:
        return [i.model_copy() for i in self._invoices[tenant_id].values()]

    def get_invoice(self, tenant_id: str, invoice_id: str) -> SubscriptionInvoice | None:
        invoice = self._invoices[tenant_id].get(invoice_id)
        return invoice.model_copy() if invoice else None

    def add_invoice(self, tenant_id: str, invoice: SubscriptionInvoice) -> SubscriptionInvoice:
        self._invoices[tenant_id][invoice.id] = invoice.model_copy()
        return invoice

    def list_users(self, tenant_id: str) -> list[TenantUser]:
        return [u.model_copy(deep=True) for u in self._users[tenant_id].values()]

    def get_user(self, tenant_id: str, user_id: str) -> TenantUser | None:
        user = self._users[tenant_id].get(user_id)
        return user.model_copy(deep=True) if user else None

    def save_user(self, user: TenantUser) -> TenantUser:
        self._users[user.tenant_id][user.id] = user.model_copy(deep=True)
        return user

    def delete_user(self, tenant_id: str, user_id: str) -> bool:
        return self._users[tenant_id].pop(user_id, None) is not None

    def list_invitations(self, tenant_id: str) -> list[InvitationRecord]:
        return [i.model_copy(deep=True) for i in self._invitations[tenant_id].values()]

    def get_invitation(self, tenant_id: str, invitation_id: str) -> InvitationRecord | None:
        invitation = self._invitations[tenant_id].get(invitation_id)
        return invitation.model_copy(deep=True) if invitation else None

    def find_invitation_by_token_hash(self, token_hash: str) -> InvitationRecord | None:
        for invitations in self._invitations.values():
            for invitation in invitations.values():
                if invitation.token_hash == token_hash:
                    return invitation.model_copy(deep=True)
        return None

    def save_invitation(self, invitation: InvitationRecord) -> InvitationRecord:
        self._invitations[invitation.tenant_id][invitation.id] = invitation.model_copy(deep=True)
        return invitation

    def delete_invitation(self, tenant_id: str, invitation_id: str) -> bool:
        return self._invitations[tenant_id].pop(invitation_id, None) is not None
