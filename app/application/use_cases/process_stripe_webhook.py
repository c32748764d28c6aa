from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from app.application.dto.billing import (
    LedgerEntry,
    StripeCheckoutCompletedEventData,
    StripeInvoiceEventData,
    StripeSubscriptionEventData,
    StripeWebhookEvent,
    StripeWebhookInput,
    StripeWebhookOutput,
)
from app.application.ports.billing_ledger_port import BillingLedgerPort
from app.application.ports.stripe_port import StripePort
from app.domain.services.customer_billing import minor_to_major


DEFAULT_LEDGER_CURRENCY = "eur"
logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProcessStripeWebhookUseCase:
    """Applies Stripe billing events to the purchase, subscription and invoice tables.

    Every handled event also appends an entry to the immutable purchase ledger.
    Ledger writes are best effort: a failure is logged and never fails the event.
    """

    def __init__(
        self,
        *,
        stripe_port: StripePort,
        ledger_port: BillingLedgerPort,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._stripe_port = stripe_port
        self._ledger_port = ledger_port
        self._clock = clock

    def execute(self, command: StripeWebhookInput) -> StripeWebhookOutput:
        event = self._stripe_port.verify_webhook(signature=command.signature, payload=command.payload)
        logger.info("process_stripe_webhook: received event_type=%s event_id=%s", event.event_type, event.event_id)

        if event.event_type == "checkout.session.completed" and event.checkout_completed is not None:
            self._handle_checkout_completed(event, event.checkout_completed)
            return StripeWebhookOutput(event_type=event.event_type, handled=True)

        if (
            event.event_type in {"customer.subscription.created", "customer.subscription.updated"}
            and event.subscription is not None
        ):
            self._handle_subscription_changed(event, event.subscription)
            return StripeWebhookOutput(event_type=event.event_type, handled=True)

        if event.event_type == "customer.subscription.deleted" and event.subscription is not None:
            self._handle_subscription_deleted(event, event.subscription)
            return StripeWebhookOutput(event_type=event.event_type, handled=True)

        if event.event_type == "invoice.paid" and event.invoice is not None:
            self._handle_invoice_paid(event, event.invoice)
            return StripeWebhookOutput(event_type=event.event_type, handled=True)

        if event.event_type == "invoice.payment_failed" and event.invoice is not None:
            self._handle_invoice_failed(event, event.invoice)
            return StripeWebhookOutput(event_type=event.event_type, handled=True)

        logger.info("process_stripe_webhook: unhandled event_type=%s", event.event_type)
        return StripeWebhookOutput(event_type=event.event_type, handled=False)

    def _handle_checkout_completed(
        self,
        event: StripeWebhookEvent,
        session: StripeCheckoutCompletedEventData,
    ) -> None:
        if not session.product_id or not session.customer_email:
            logger.info(
                "process_stripe_webhook: checkout_skipped session_id=%s reason=missing_product_or_email",
                session.session_id,
            )
            return

        user_id = self._ledger_port.get_profile_id_by_email(email=session.customer_email)
        if user_id is None:
            logger.warning(
                "process_stripe_webhook: checkout_skipped session_id=%s reason=profile_not_found",
                session.session_id,
            )
            return

        amount = minor_to_major(session.amount_total)
        self._ledger_port.insert_purchase(
            user_id=user_id,
            product_id=session.product_id,
            stripe_session_id=session.session_id,
            stripe_customer_id=session.customer_id,
            amount=amount,
            currency=session.currency,
            status="completed",
        )

        product = self._ledger_port.get_catalog_product(product_id=session.product_id)
        self._log_to_ledger(
            LedgerEntry(
                event_type="CHECKOUT_COMPLETED",
                event_at=self._clock(),
                stripe_event_id=event.event_id,
                stripe_session_id=session.session_id,
                stripe_customer_id=session.customer_id,
                user_id=user_id,
                amount=amount,
                currency=session.currency or DEFAULT_LEDGER_CURRENCY,
                product_id=session.product_id,
                product_name=(product.title if product else None) or "Unknown",
                product_type=(product.type if product else None) or "unknown",
                metadata={"customer_email": session.customer_email},
            )
        )
        logger.info("process_stripe_webhook: purchase_recorded user_id=%s session_id=%s", user_id, session.session_id)

    def _handle_subscription_changed(
        self,
        event: StripeWebhookEvent,
        subscription: StripeSubscriptionEventData,
    ) -> None:
        self._ledger_port.upsert_subscription(
            stripe_subscription_id=subscription.subscription_id,
            stripe_customer_id=subscription.customer_id,
            status=subscription.status,
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
            cancel_at_period_end=subscription.cancel_at_period_end,
        )
        ledger_type = (
            "SUBSCRIPTION_CREATED"
            if event.event_type == "customer.subscription.created"
            else "SUBSCRIPTION_UPDATED"
        )
        self._log_to_ledger(
            LedgerEntry(
                event_type=ledger_type,
                event_at=self._clock(),
                stripe_event_id=event.event_id,
                stripe_subscription_id=subscription.subscription_id,
                stripe_customer_id=subscription.customer_id,
                user_id=self._ledger_port.get_subscription_user_id(
                    stripe_subscription_id=subscription.subscription_id
                ),
                amount=minor_to_major(subscription.plan_amount),
                currency=subscription.currency or DEFAULT_LEDGER_CURRENCY,
                metadata={
                    "status": subscription.status,
                    "cancel_at_period_end": subscription.cancel_at_period_end,
                },
            )
        )

    def _handle_subscription_deleted(
        self,
        event: StripeWebhookEvent,
        subscription: StripeSubscriptionEventData,
    ) -> None:
        self._ledger_port.mark_subscription_canceled(stripe_subscription_id=subscription.subscription_id)
        now = self._clock()
        self._log_to_ledger(
            LedgerEntry(
                event_type="SUBSCRIPTION_CANCELED",
                event_at=now,
                stripe_event_id=event.event_id,
                stripe_subscription_id=subscription.subscription_id,
                stripe_customer_id=subscription.customer_id,
                user_id=self._ledger_port.get_subscription_user_id(
                    stripe_subscription_id=subscription.subscription_id
                ),
                metadata={"canceled_at": now.isoformat()},
            )
        )

    def _handle_invoice_paid(self, event: StripeWebhookEvent, invoice: StripeInvoiceEventData) -> None:
        amount = minor_to_major(invoice.amount_paid)
        self._ledger_port.insert_invoice(
            stripe_invoice_id=invoice.invoice_id,
            stripe_customer_id=invoice.customer_id,
            amount=amount,
            currency=invoice.currency,
            invoice_url=invoice.hosted_invoice_url,
            invoice_pdf=invoice.invoice_pdf,
            paid_at=self._clock(),
        )
        self._log_to_ledger(
            LedgerEntry(
                event_type="INVOICE_PAID",
                event_at=self._clock(),
                stripe_event_id=event.event_id,
                stripe_invoice_id=invoice.invoice_id,
                stripe_customer_id=invoice.customer_id,
                amount=amount,
                currency=invoice.currency or DEFAULT_LEDGER_CURRENCY,
                tax_amount=minor_to_major(invoice.tax),
                metadata={"invoice_url": invoice.hosted_invoice_url},
            )
        )

    def _handle_invoice_failed(self, event: StripeWebhookEvent, invoice: StripeInvoiceEventData) -> None:
        logger.warning("process_stripe_webhook: invoice_payment_failed invoice_id=%s", invoice.invoice_id)
        self._log_to_ledger(
            LedgerEntry(
                event_type="INVOICE_FAILED",
                event_at=self._clock(),
                stripe_event_id=event.event_id,
                stripe_invoice_id=invoice.invoice_id,
                stripe_customer_id=invoice.customer_id,
                amount=minor_to_major(invoice.amount_due),
                currency=invoice.currency or DEFAULT_LEDGER_CURRENCY,
                metadata={"attempt_count": invoice.attempt_count},
            )
        )

    def _log_to_ledger(self, entry: LedgerEntry) -> None:
        try:
            self._ledger_port.append_ledger_entry(entry=entry)
        except Exception:  # noqa: BLE001
            logger.exception(
                "process_stripe_webhook: ledger_write_failed event_type=%s stripe_event_id=%s",
                entry.event_type,
                entry.stripe_event_id,
            )
