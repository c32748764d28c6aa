from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from app.domain.entities.billing_provider import (
    ProviderCheckoutSession,
    ProviderInvoice,
    ProviderSubscription,
)
from app.domain.entities.customer_billing import InvoiceRecord, PurchaseRecord, SubscriptionRecord


DEFAULT_SUBSCRIPTION_PRODUCT_NAME = "Abonnement"
DEFAULT_PURCHASE_PRODUCT_NAME = "Einmalkauf"
DEFAULT_CURRENCY = "EUR"
DEFAULT_INTERVAL = "month"
PURCHASE_PRODUCT_TITLE_KEY = "productTitle"
MINOR_UNITS_PER_MAJOR = Decimal("100")
CENTS = Decimal("0.01")


def minor_to_major(amount: int | None) -> Decimal:
    if not amount:
        return Decimal("0.00")
    return (Decimal(int(amount)) / MINOR_UNITS_PER_MAJOR).quantize(CENTS)


def major_to_minor(amount: Decimal) -> int:
    return int((amount * MINOR_UNITS_PER_MAJOR).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def epoch_to_iso(seconds: int | None) -> str | None:
    """Convert epoch seconds to an ISO-8601 UTC string with millisecond precision."""
    if seconds is None:
        return None
    value = datetime.fromtimestamp(int(seconds), tz=timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def normalize_currency(code: str | None) -> str:
    return code.upper() if code else DEFAULT_CURRENCY


def normalize_subscription(sub: ProviderSubscription, *, product_name: str | None) -> SubscriptionRecord:
    return SubscriptionRecord(
        id=sub.id,
        status=sub.status,
        product_name=product_name or DEFAULT_SUBSCRIPTION_PRODUCT_NAME,
        current_period_start=epoch_to_iso(sub.current_period_start),
        current_period_end=epoch_to_iso(sub.current_period_end),
        cancel_at_period_end=bool(sub.cancel_at_period_end),
        amount=minor_to_major(sub.unit_amount),
        currency=normalize_currency(sub.currency),
        interval=sub.interval or DEFAULT_INTERVAL,
    )


def is_completed_purchase(session: ProviderCheckoutSession) -> bool:
    return session.status == "complete" and session.mode == "payment"


def normalize_purchase(session: ProviderCheckoutSession) -> PurchaseRecord:
    return PurchaseRecord(
        id=session.id,
        product_name=session.metadata.get(PURCHASE_PRODUCT_TITLE_KEY) or DEFAULT_PURCHASE_PRODUCT_NAME,
        amount=minor_to_major(session.amount_total),
        currency=normalize_currency(session.currency),
        created_at=epoch_to_iso(session.created),
    )


def is_paid_invoice(invoice: ProviderInvoice) -> bool:
    return invoice.status == "paid"


def normalize_invoice(invoice: ProviderInvoice) -> InvoiceRecord:
    return InvoiceRecord(
        id=invoice.id,
        amount=minor_to_major(invoice.amount_paid),
        currency=normalize_currency(invoice.currency),
        paid_at=epoch_to_iso(invoice.paid_at) if invoice.paid_at else None,
        invoice_url=invoice.hosted_invoice_url,
        invoice_pdf=invoice.invoice_pdf,
    )
