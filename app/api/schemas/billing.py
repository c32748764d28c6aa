from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CustomerDataRequest(_CamelModel):
    customer_email: str | None = None


class SubscriptionRecordResponse(_CamelModel):
    id: str
    status: str
    product_name: str
    current_period_start: str | None
    current_period_end: str | None
    cancel_at_period_end: bool
    amount: float
    currency: str
    interval: str


class PurchaseRecordResponse(_CamelModel):
    id: str
    product_name: str
    amount: float
    currency: str
    created_at: str | None


class InvoiceRecordResponse(_CamelModel):
    id: str
    amount: float
    currency: str
    paid_at: str | None
    invoice_url: str | None
    invoice_pdf: str | None


class CustomerDataResponse(_CamelModel):
    subscriptions: list[SubscriptionRecordResponse]
    purchases: list[PurchaseRecordResponse]
    invoices: list[InvoiceRecordResponse]
    has_stripe_account: bool


class CreateCheckoutSessionRequest(_CamelModel):
    product_id: str | None = None
    product_title: str | None = None
    price: Decimal | None = None
    currency: str = "eur"
    interval: str | None = None
    customer_email: str | None = None
    success_url: str | None = None
    cancel_url: str | None = None
    stripe_price_id: str | None = None
    trial_days: int = 0


class CreateCheckoutSessionResponse(_CamelModel):
    session_id: str
    url: str | None


class FreeCheckoutResponse(BaseModel):
    free: bool
    message: str


class CreateStripeProductRequest(_CamelModel):
    title: str | None = None
    description: str | None = None
    price: Decimal | None = None
    currency: str = "eur"
    interval: str = "month"
    product_id: str | None = None


class CreateStripeProductResponse(BaseModel):
    success: bool
    stripe_product_id: str
    stripe_price_id: str


class StripeWebhookResponse(BaseModel):
    received: bool
