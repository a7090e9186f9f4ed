from abc import ABC, abstractmethod

from edpsych_tenancy.models.billing import SubscriptionDetails, SubscriptionInvoice, SubscriptionPlan
from edpsych_tenancy.models.invite import InvitationRecord
from edpsych_tenancy.models.user import TenantUser


class TenantStore(ABC):
    """Persistence behind the sandbox API. Getters return copies."""

    # Plans

    @abstractmethod
    def list_plans(self) -> list[SubscriptionPlan]:
        ...

    @abstractmethod
    def get_plan(self, plan_id: str) -> SubscriptionPlan | None:
        ...

    # Subscriptions

    @abstractmethod
    def get_subscription(self, tenant_id: str) -> SubscriptionDetails | None:
        """Latest subscription for the tenant, canceled or not."""
        ...

    @abstractmethod
    def save_subscription(self, subscription: SubscriptionDetails) -> SubscriptionDetails:
        ...

    @abstractmethod
    def get_customer_id(self, tenant_id: str) -> str | None:
        ...

    @abstractmethod
    def save_customer_id(self, tenant_id: str, customer_id: str) -> None:
        ...

    # Checkout sessions

    @abstractmethod
    def save_checkout_session(self, tenant_id: str, session_id: str, session: dict) -> None:
        ...

    @abstractmethod
    def pop_checkout_session(self, tenant_id: str, session_id: str) -> dict | None:
        ...

    # Invoices

    @abstractmethod
    def list_invoices(self, tenant_id: str) -> list[SubscriptionInvoice]:
        ...

    @abstractmethod
    def get_invoice(self, tenant_id: str, invoice_id: str) -> SubscriptionInvoice | None:
        ...

    @abstractmethod
    def add_invoice(self, tenant_id: str, invoice: SubscriptionInvoice) -> SubscriptionInvoice:
        ...

    # Users

    @abstractmethod
    def list_users(self, tenant_id: str) -> list[TenantUser]:
        ...

    @abstractmethod
    def get_user(self, tenant_id: str, user_id: str) -> TenantUser | None:
        ...

    @abstractmethod
    def save_user(self, user: TenantUser) -> TenantUser:
        ...

    @abstractmethod
    def delete_user(self, tenant_id: str, user_id: str) -> bool:
        ...

    # Invitations

    @abstractmethod
    def list_invitations(self, tenant_id: str) -> list[InvitationRecord]:
        ...

    @abstractmethod
    def get_invitation(self, tenant_id: str, invitation_id: str) -> InvitationRecord | None:
        ...

    @abstractmethod
    def find_invitation_by_token_hash(self, token_hash: str) -> InvitationRecord | None:
        ...

    @abstractmethod
    def save_invitation(self, invitation: InvitationRecord) -> InvitationRecord:
        ...

    @abstractmethod
    def delete_invitation(self, tenant_id: str, invitation_id: str) -> bool:
        ...

    def ping(self) -> bool:
        return True
