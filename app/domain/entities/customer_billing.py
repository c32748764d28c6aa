from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class BillingAccount:
    account_id: str
    email: str | None


@dataclass(frozen=True)
class SubscriptionRecord:
    id: str
    status: str
    product_name: str
    current_period_start: str | None
    current_period_end: str | None
    cancel_at_period_end: bool
    amount: Decimal
    currency: str
    interval: str


@dataclass(frozen=True)
class PurchaseRecord:
    id: str
    product_name: str
    amount: Decimal
    currency: str
    created_at: str | None


@dataclass(frozen=True)
class InvoiceRecord:
    id: str
    amount: Decimal
    currency: str
    paid_at: str | None
    invoice_url: str | None
    invoice_pdf: str | None


@dataclass(frozen=True)
class CustomerBillingView:
    subscriptions: list[SubscriptionRecord] = field(default_factory=list)
    purchases: list[PurchaseRecord] = field(default_factory=list)
    invoices: list[InvoiceRecord] = field(default_factory=list)
    has_stripe_account: bool = False
