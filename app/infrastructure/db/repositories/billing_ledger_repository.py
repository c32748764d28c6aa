from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from functools import wraps

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.application.dto.billing import CatalogProduct, LedgerEntry
from app.application.ports.billing_ledger_port import BillingLedgerPort
from app.domain.exceptions import BillingError
from app.infrastructure.db.mappers.billing_ledger_mapper import (
    map_ledger_entry_to_params,
    map_row_to_catalog_product,
)


def _wrap_db_errors(method):
    @wraps(method)
    def _wrapper(*args, **kwargs):
        try:
            return method(*args, **kwargs)
        except SQLAlchemyError as exc:
            raise BillingError(f"Database error in {method.__name__}: {exc.__class__.__name__}") from exc

    return _wrapper


class SqlBillingLedgerRepository(BillingLedgerPort):
    def __init__(self, engine):
        self._engine = engine

    @_wrap_db_errors
    def get_profile_id_by_email(self, *, email: str) -> str | None:
        sql = """
            SELECT id
            FROM public.profiles
            WHERE email = :email
            LIMIT 1
        """
        with self._engine.connect() as conn:
            row = conn.execute(text(sql), {"email": email}).mappings().first()
        if row is None:
            return None
        return str(row["id"])

    @_wrap_db_errors
    def get_catalog_product(self, *, product_id: str) -> CatalogProduct | None:
        sql = """
            SELECT title, type
            FROM public.products
            WHERE id = :product_id
            LIMIT 1
        """
        with self._engine.connect() as conn:
            row = conn.execute(text(sql), {"product_id": product_id}).mappings().first()
        if row is None:
            return None
        return map_row_to_catalog_product(row)

    @_wrap_db_errors
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
        sql = """
            INSERT INTO public.purchases (
                user_id, product_id, stripe_session_id, stripe_customer_id, amount, currency, status
            ) VALUES (
                :user_id, :product_id, :stripe_session_id, :stripe_customer_id, :amount, :currency, :status
            )
        """
        with self._engine.begin() as conn:
            conn.execute(
                text(sql),
                {
                    "user_id": user_id,
                    "product_id": product_id,
                    "stripe_session_id": stripe_session_id,
                    "stripe_customer_id": stripe_customer_id,
                    "amount": amount,
                    "currency": currency,
                    "status": status,
                },
            )

    @_wrap_db_errors
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
        sql = """
            INSERT INTO public.subscriptions (
                stripe_subscription_id, stripe_customer_id, status,
                current_period_start, current_period_end, cancel_at_period_end
            ) VALUES (
                :stripe_subscription_id, :stripe_customer_id, :status,
                :current_period_start, :current_period_end, :cancel_at_period_end
            )
            ON CONFLICT (stripe_subscription_id) DO UPDATE SET
                stripe_customer_id = EXCLUDED.stripe_customer_id,
                status = EXCLUDED.status,
                current_period_start = EXCLUDED.current_period_start,
                current_period_end = EXCLUDED.current_period_end,
                cancel_at_period_end = EXCLUDED.cancel_at_period_end
        """
        with self._engine.begin() as conn:
            conn.execute(
                text(sql),
                {
                    "stripe_subscription_id": stripe_subscription_id,
                    "stripe_customer_id": stripe_customer_id,
                    "status": status,
                    "current_period_start": current_period_start,
                    "current_period_end": current_period_end,
                    "cancel_at_period_end": cancel_at_period_end,
                },
            )

    @_wrap_db_errors
    def mark_subscription_canceled(self, *, stripe_subscription_id: str) -> None:
        sql = """
            UPDATE public.subscriptions
            SET status = 'canceled'
            WHERE stripe_subscription_id = :stripe_subscription_id
        """
        with self._engine.begin() as conn:
            conn.execute(text(sql), {"stripe_subscription_id": stripe_subscription_id})

    @_wrap_db_errors
    def get_subscription_user_id(self, *, stripe_subscription_id: str) -> str | None:
        sql = """
            SELECT user_id
            FROM public.subscriptions
            WHERE stripe_subscription_id = :stripe_subscription_id
            LIMIT 1
        """
        with self._engine.connect() as conn:
            row = conn.execute(
                text(sql),
                {"stripe_subscription_id": stripe_subscription_id},
            ).mappings().first()
        if row is None or row["user_id"] is None:
            return None
        return str(row["user_id"])

    @_wrap_db_errors
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
        sql = """
            INSERT INTO public.invoices (
                stripe_invoice_id, stripe_customer_id, amount, currency, status,
                invoice_url, invoice_pdf, paid_at
            ) VALUES (
                :stripe_invoice_id, :stripe_customer_id, :amount, :currency, 'paid',
                :invoice_url, :invoice_pdf, :paid_at
            )
        """
        with self._engine.begin() as conn:
            conn.execute(
                text(sql),
                {
                    "stripe_invoice_id": stripe_invoice_id,
                    "stripe_customer_id": stripe_customer_id,
                    "amount": amount,
                    "currency": currency,
                    "invoice_url": invoice_url,
                    "invoice_pdf": invoice_pdf,
                    "paid_at": paid_at,
                },
            )

    @_wrap_db_errors
    def append_ledger_entry(self, *, entry: LedgerEntry) -> None:
        sql = """
            INSERT INTO public.purchase_ledger (
                event_type, event_at, stripe_event_id, stripe_session_id, stripe_subscription_id,
                stripe_invoice_id, stripe_customer_id, user_id, amount, currency, tax_amount,
                product_id, product_name, product_type, metadata
            ) VALUES (
                :event_type, :event_at, :stripe_event_id, :stripe_session_id, :stripe_subscription_id,
                :stripe_invoice_id, :stripe_customer_id, :user_id, :amount, :currency, :tax_amount,
                :product_id, :product_name, :product_type, CAST(:metadata AS jsonb)
            )
        """
        with self._engine.begin() as conn:
            conn.execute(text(sql), map_ledger_entry_to_params(entry))
