from __future__ import annotations

from decimal import Decimal
from typing import Any

from app.application.dto.billing import CreateCheckoutSessionInput, CreateCheckoutSessionOutput
from app.application.ports.stripe_port import StripePort
from app.domain.services.customer_billing import major_to_minor


DEFAULT_PRODUCT_TITLE = "Greenlight Fitness Produkt"
CHECKOUT_SOURCE = "greenlight-fitness"
ONE_TIME_INTERVAL = "onetime"
FREE_PRODUCT_MESSAGE = "Free product - no checkout needed"


def is_recurring_interval(interval: str | None) -> bool:
    return bool(interval) and interval != ONE_TIME_INTERVAL


def recurring_interval(interval: str | None) -> str:
    return "year" if interval == "year" else "month"


class CreateCheckoutSessionUseCase:
    def __init__(self, *, stripe_port: StripePort):
        self._stripe_port = stripe_port

    def execute(self, command: CreateCheckoutSessionInput) -> CreateCheckoutSessionOutput:
        price = command.price if command.price is not None else Decimal("0")
        if price <= 0 and not command.stripe_price_id:
            return CreateCheckoutSessionOutput(free=True, message=FREE_PRODUCT_MESSAGE)

        result = self._stripe_port.create_checkout_session(params=self.build_params(command))
        return CreateCheckoutSessionOutput(free=False, session_id=result.id, url=result.url)

    @staticmethod
    def build_params(command: CreateCheckoutSessionInput) -> dict[str, Any]:
        recurring = is_recurring_interval(command.interval)
        mode = "subscription" if recurring else "payment"

        if command.stripe_price_id:
            line_item: dict[str, Any] = {"price": command.stripe_price_id, "quantity": 1}
        else:
            price_data: dict[str, Any] = {
                "currency": command.currency.lower(),
                "product_data": {"name": command.product_title or DEFAULT_PRODUCT_TITLE},
                "unit_amount": major_to_minor(command.price or Decimal("0")),
            }
            if recurring:
                price_data["recurring"] = {"interval": recurring_interval(command.interval)}
            line_item = {"price_data": price_data, "quantity": 1}

        product_ref = command.product_id or ""
        params: dict[str, Any] = {
            "payment_method_types": ["card"],
            "line_items": [line_item],
            "mode": mode,
            "success_url": command.success_url
            or f"{command.origin}/shop?success=true&product={command.product_id}",
            "cancel_url": command.cancel_url or f"{command.origin}/shop?canceled=true",
            "metadata": {"productId": product_ref, "source": CHECKOUT_SOURCE},
            "allow_promotion_codes": True,
            "billing_address_collection": "auto",
        }
        if command.customer_email:
            params["customer_email"] = command.customer_email
        if mode == "subscription" and command.trial_days > 0:
            params["subscription_data"] = {"trial_period_days": int(command.trial_days)}
        return params
