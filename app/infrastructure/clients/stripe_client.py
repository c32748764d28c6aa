from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping

import stripe

from app.application.dto.billing import (
    StripeCheckoutCompletedEventData,
    StripeCheckoutSessionResult,
    StripeInvoiceEventData,
    StripeSubscriptionEventData,
    StripeWebhookEvent,
)
from app.application.ports.billing_provider_port import BillingProviderPort
from app.application.ports.stripe_port import StripePort
from app.domain.entities.billing_provider import (
    ProviderCheckoutSession,
    ProviderInvoice,
    ProviderProduct,
    ProviderSubscription,
)
from app.domain.entities.customer_billing import BillingAccount
from app.domain.exceptions import BillingError, UpstreamProviderError, WebhookSignatureError


logger = logging.getLogger(__name__)


class StripeClient(BillingProviderPort, StripePort):
    def __init__(
        self,
        *,
        secret_key: str,
        webhook_secret: str,
        api_version: str | None = None,
        max_network_retries: int = 0,
    ):
        stripe.api_key = secret_key
        if api_version:
            stripe.api_version = api_version
        stripe.max_network_retries = max_network_retries
        self._webhook_secret = webhook_secret

    def list_accounts_by_email(self, *, email: str, limit: int) -> list[BillingAccount]:
        customers = _read(lambda: stripe.Customer.list(email=email, limit=limit))
        return [
            BillingAccount(account_id=str(customer["id"]), email=customer.get("email"))
            for customer in _data(customers)
        ]

    def list_subscriptions(self, *, account_id: str, limit: int) -> list[ProviderSubscription]:
        subscriptions = _read(lambda: stripe.Subscription.list(customer=account_id, limit=limit))
        return [map_subscription(sub) for sub in _data(subscriptions)]

    def retrieve_product(self, *, product_id: str) -> ProviderProduct | None:
        product = _to_plain(_read(lambda: stripe.Product.retrieve(product_id)))
        if product is None:
            return None
        return ProviderProduct(id=str(product.get("id", product_id)), name=product.get("name"))

    def list_checkout_sessions(self, *, account_id: str, limit: int) -> list[ProviderCheckoutSession]:
        sessions = _read(lambda: stripe.checkout.Session.list(customer=account_id, limit=limit))
        return [map_checkout_session(session) for session in _data(sessions)]

    def list_invoices(self, *, account_id: str, limit: int) -> list[ProviderInvoice]:
        invoices = _read(lambda: stripe.Invoice.list(customer=account_id, limit=limit))
        return [map_invoice(invoice) for invoice in _data(invoices)]

    def create_checkout_session(self, *, params: dict[str, Any]) -> StripeCheckoutSessionResult:
        try:
            session = stripe.checkout.Session.create(**params)
        except stripe.StripeError as exc:  # pragma: no cover - external API
            raise BillingError(_provider_message(exc, "Failed to create checkout session")) from exc

        session = _to_plain(session)
        session_id = session.get("id")
        if not session_id:
            raise BillingError("Stripe checkout session response is incomplete.")
        return StripeCheckoutSessionResult(id=str(session_id), url=session.get("url"))

    def create_product(self, *, name: str, description: str | None, metadata: dict[str, str]) -> str:
        payload: dict[str, Any] = {"name": name, "metadata": metadata}
        if description:
            payload["description"] = description
        try:
            product = stripe.Product.create(**payload)
        except stripe.StripeError as exc:  # pragma: no cover - external API
            raise BillingError(_provider_message(exc, "Failed to create Stripe product")) from exc
        return str(_to_plain(product)["id"])

    def create_price(self, *, params: dict[str, Any]) -> str:
        try:
            price = stripe.Price.create(**params)
        except stripe.StripeError as exc:  # pragma: no cover - external API
            raise BillingError(_provider_message(exc, "Failed to create Stripe product")) from exc
        return str(_to_plain(price)["id"])

    def verify_webhook(self, *, signature: str | None, payload: bytes) -> StripeWebhookEvent:
        if self._webhook_secret:
            try:
                event = stripe.Webhook.construct_event(
                    payload=payload,
                    sig_header=signature or "",
                    secret=self._webhook_secret,
                )
            except (ValueError, stripe.SignatureVerificationError) as exc:
                raise WebhookSignatureError(str(exc)) from exc
            event = _to_plain(event)
        else:
            logger.warning("stripe_client: webhook_signature_verification_skipped reason=no_secret_configured")
            try:
                event = json.loads(payload.decode("utf-8"))
            except ValueError as exc:
                raise WebhookSignatureError(str(exc)) from exc
            if not isinstance(event, dict):
                raise WebhookSignatureError("Webhook payload must be a JSON object.")
        return map_webhook_event(event)


def map_subscription(sub: Any) -> ProviderSubscription:
    sub = _to_plain(sub)
    items = (sub.get("items") or {}).get("data") or []
    price = (items[0].get("price") or {}) if items else {}
    recurring = price.get("recurring") or {}
    return ProviderSubscription(
        id=str(sub["id"]),
        status=str(sub.get("status")),
        current_period_start=sub.get("current_period_start"),
        current_period_end=sub.get("current_period_end"),
        cancel_at_period_end=bool(sub.get("cancel_at_period_end", False)),
        product_id=_object_id(price.get("product")),
        unit_amount=price.get("unit_amount"),
        currency=price.get("currency"),
        interval=recurring.get("interval"),
    )


def map_checkout_session(session: Any) -> ProviderCheckoutSession:
    session = _to_plain(session)
    return ProviderCheckoutSession(
        id=str(session["id"]),
        status=session.get("status"),
        mode=session.get("mode"),
        amount_total=session.get("amount_total"),
        currency=session.get("currency"),
        created=session.get("created"),
        metadata=dict(session.get("metadata") or {}),
    )


def map_invoice(invoice: Any) -> ProviderInvoice:
    invoice = _to_plain(invoice)
    transitions = invoice.get("status_transitions") or {}
    return ProviderInvoice(
        id=str(invoice["id"]),
        status=invoice.get("status"),
        amount_paid=invoice.get("amount_paid"),
        currency=invoice.get("currency"),
        paid_at=transitions.get("paid_at"),
        hosted_invoice_url=invoice.get("hosted_invoice_url"),
        invoice_pdf=invoice.get("invoice_pdf"),
    )


def map_webhook_event(event: Any) -> StripeWebhookEvent:
    event = _to_plain(event)
    event_type = str(event.get("type", ""))
    event_id = event.get("id")
    data = event.get("data") or {}
    data_object = (data.get("object") if isinstance(data, Mapping) else None) or {}
    if not isinstance(data_object, Mapping):
        raise WebhookSignatureError("Webhook payload data.object must be a JSON object.")

    if event_type == "checkout.session.completed":
        metadata = data_object.get("metadata") or {}
        customer_details = data_object.get("customer_details") or {}
        return StripeWebhookEvent(
            event_id=event_id,
            event_type=event_type,
            checkout_completed=StripeCheckoutCompletedEventData(
                session_id=str(data_object.get("id")),
                customer_id=_object_id(data_object.get("customer")),
                customer_email=data_object.get("customer_email") or customer_details.get("email"),
                product_id=metadata.get("productId") or None,
                amount_total=data_object.get("amount_total"),
                currency=data_object.get("currency"),
            ),
        )

    if event_type.startswith("customer.subscription."):
        plan = data_object.get("plan") or {}
        return StripeWebhookEvent(
            event_id=event_id,
            event_type=event_type,
            subscription=StripeSubscriptionEventData(
                subscription_id=str(data_object.get("id")),
                customer_id=_object_id(data_object.get("customer")),
                status=str(data_object.get("status")),
                current_period_start=_to_datetime(data_object.get("current_period_start")),
                current_period_end=_to_datetime(data_object.get("current_period_end")),
                cancel_at_period_end=bool(data_object.get("cancel_at_period_end", False)),
                plan_amount=plan.get("amount"),
                currency=data_object.get("currency"),
            ),
        )

    if event_type.startswith("invoice."):
        return StripeWebhookEvent(
            event_id=event_id,
            event_type=event_type,
            invoice=StripeInvoiceEventData(
                invoice_id=str(data_object.get("id")),
                customer_id=_object_id(data_object.get("customer")),
                amount_paid=data_object.get("amount_paid"),
                amount_due=data_object.get("amount_due"),
                tax=data_object.get("tax"),
                currency=data_object.get("currency"),
                hosted_invoice_url=data_object.get("hosted_invoice_url"),
                invoice_pdf=data_object.get("invoice_pdf"),
                attempt_count=data_object.get("attempt_count"),
            ),
        )

    return StripeWebhookEvent(event_id=event_id, event_type=event_type)


def _read(call):
    try:
        return call()
    except stripe.StripeError as exc:
        logger.warning("stripe_client: request_failed error_type=%s error=%s", type(exc).__name__, exc)
        raise UpstreamProviderError(_provider_message(exc, "Failed to get customer data")) from exc


def _data(listing) -> list:
    if listing is None:
        return []
    return list(_to_plain(listing).get("data") or [])


def _to_plain(value: Any) -> Any:
    # StripeObject stopped subclassing dict in stripe 15; normalize before reading.
    if isinstance(value, stripe.StripeObject):
        value = value.to_dict()
    if isinstance(value, Mapping):
        return {key: _to_plain(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_to_plain(item) for item in value]
    return value


def _object_id(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value or None
    object_id = value.get("id")
    return str(object_id) if object_id else None


def _provider_message(exc: stripe.StripeError, default: str) -> str:
    return getattr(exc, "user_message", None) or str(exc) or default


def _to_datetime(value: int | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)
