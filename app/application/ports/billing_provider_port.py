from __future__ import annotations

from typing import Protocol

from app.domain.entities.billing_provider import (
    ProviderCheckoutSession,
    ProviderInvoice,
    ProviderProduct,
    ProviderSubscription,
)
from app.domain.entities.customer_billing import BillingAccount


class BillingProviderPort(Protocol):
    def list_accounts_by_email(self, *, email: str, limit: int) -> list[BillingAccount]:
        ...

    def list_subscriptions(self, *, account_id: str, limit: int) -> list[ProviderSubscription]:
        ...

    def retrieve_product(self, *, product_id: str) -> ProviderProduct | None:
        ...

    def list_checkout_sessions(self, *, account_id: str, limit: int) -> list[ProviderCheckoutSession]:
        ...

    def list_invoices(self, *, account_id: str, limit: int) -> list[ProviderInvoice]:
        ...
