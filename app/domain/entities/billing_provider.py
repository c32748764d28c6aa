from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ProviderSubscription:
    id: str
    status: str
    current_period_start: int | None
    current_period_end: int | None
    cancel_at_period_end: bool
    product_id: str | None
    unit_amount: int | None
    currency: str | None
    interval: str | None


@dataclass(frozen=True)
class ProviderProduct:
    id: str
    name: str | None


@dataclass(frozen=True)
class ProviderCheckoutSession:
    id: str
    status: str | None
    mode: str | None
    amount_total: int | None
    currency: str | None
    created: int | None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderInvoice:
    id: str
    status: str | None
    amount_paid: int | None
    currency: str | None
    paid_at: int | None
    hosted_invoice_url: str | None
    invoice_pdf: str | None
