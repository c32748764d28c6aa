from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Protocol

from app.application.dto.billing import CatalogProduct, LedgerEntry


class BillingLedgerPort(Protocol):
    def get_profile_id_by_email(self, *, email: str) -> str | None:
        ...

    def get_catalog_product(self, *, product_id: str) -> CatalogProduct | None:
        ...

    def insert_purchase(
        self,
        *,
        user_id: str,
        product_id: str,
        stripe_session_id: str,
        stripe_customer_id: str | None,
        amount: Decimal,
        currency: str | None,
        status: str,
    ) -> None:
        ...

    def upsert_subscription(
        self,
        *,
        stripe_subscription_id: str,
        stripe_customer_id: str | None,
        status: str,
        current_period_start: datetime | None,
        current_period_end: datetime | None,
        cancel_at_period_end: bool,
    ) -> None:
        ...

    def mark_subscription_canceled(self, *, stripe_subscription_id: str) -> None:
        ...

    def get_subscription_user_id(self, *, stripe_subscription_id: str) -> str | None:
        ...

    def insert_invoice(
        self,
        *,
        stripe_invoice_id: str,
        stripe_customer_id: str | None,
        amount: Decimal,
        currency: str | None,
        invoice_url: str | None,
        invoice_pdf: str | None,
        paid_at: datetime,
    ) -> None:
        ...

    def append_ledger_entry(self, *, entry: LedgerEntry) -> None:
        ...
