from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class CreateCheckoutSessionInput:
    product_id: str | None
    product_title: str | None
    price: Decimal | None
    currency: str
    interval: str | None
    customer_email: str | None
    success_url: str | None
    cancel_url: str | None
    stripe_price_id: str | None
    trial_days: int
    origin: str


@dataclass(frozen=True)
class CreateCheckoutSessionOutput:
    free: bool
    session_id: str | None = None
    url: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class CreateStripeProductInput:
    title: str | None
    description: str | None
    price: Decimal | None
    currency: str
    interval: str
    product_id: str | None


@dataclass(frozen=True)
class CreateStripeProductOutput:
    stripe_product_id: str
    stripe_price_id: str


@dataclass(frozen=True)
class StripeWebhookInput:
    signature: str | None
    payload: bytes


@dataclass(frozen=True)
class StripeWebhookOutput:
    event_type: str
    handled: bool


@dataclass(frozen=True)
class StripeCheckoutSessionResult:
    id: str
    url: str | None


@dataclass(frozen=True)
class StripeCheckoutCompletedEventData:
    session_id: str
    customer_id: str | None
    customer_email: str | None
    product_id: str | None
    amount_total: int | None
    currency: str | None


@dataclass(frozen=True)
class StripeSubscriptionEventData:
    subscription_id: str
    customer_id: str | None
    status: str
    current_period_start: datetime | None
    current_period_end: datetime | None
    cancel_at_period_end: bool
    plan_amount: int | None
    currency: str | None


@dataclass(frozen=True)
class StripeInvoiceEventData:
    invoice_id: str
    customer_id: str | None
    amount_paid: int | None
    amount_due: int | None
    tax: int | None
    currency: str | None
    hosted_invoice_url: str | None
    invoice_pdf: str | None
    attempt_count: int | None


@dataclass(frozen=True)
class StripeWebhookEvent:
    event_id: str | None
    event_type: str
    checkout_completed: StripeCheckoutCompletedEventData | None = None
    subscription: StripeSubscriptionEventData | None = None
    invoice: StripeInvoiceEventData | None = None


@dataclass(frozen=True)
class CatalogProduct:
    title: str | None
    type: str | None


@dataclass(frozen=True)
class LedgerEntry:
    event_type: str
    event_at: datetime
    stripe_event_id: str | None = None
    stripe_session_id: str | None = None
    stripe_subscription_id: str | None = None
    stripe_invoice_id: str | None = None
    stripe_customer_id: str | None = None
    user_id: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    tax_amount: Decimal | None = None
    product_id: str | None = None
    product_name: str | None = None
    product_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
