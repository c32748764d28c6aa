from __future__ import annotations

import logging
from typing import Any

from app.application.dto.billing import CreateStripeProductInput, CreateStripeProductOutput
from app.application.ports.stripe_port import StripePort
from app.application.use_cases.create_checkout_session import (
    ONE_TIME_INTERVAL,
    recurring_interval,
)
from app.domain.exceptions import BillingInputError
from app.domain.services.customer_billing import major_to_minor


PRODUCT_REFERENCE_KEY = "greenlight_product_id"
logger = logging.getLogger(__name__)


class CreateStripeProductUseCase:
    def __init__(self, *, stripe_port: StripePort):
        self._stripe_port = stripe_port

    def execute(self, command: CreateStripeProductInput) -> CreateStripeProductOutput:
        if not command.title or not command.price:
            raise BillingInputError("Title and price are required")

        metadata = {PRODUCT_REFERENCE_KEY: command.product_id or ""}
        stripe_product_id = self._stripe_port.create_product(
            name=command.title,
            description=command.description or None,
            metadata=metadata,
        )
        logger.info("create_stripe_product: product_created stripe_product_id=%s", stripe_product_id)

        price_params: dict[str, Any] = {
            "product": stripe_product_id,
            "unit_amount": major_to_minor(command.price),
            "currency": command.currency.lower(),
            "metadata": metadata,
        }
        if command.interval != ONE_TIME_INTERVAL:
            price_params["recurring"] = {"interval": recurring_interval(command.interval)}

        stripe_price_id = self._stripe_port.create_price(params=price_params)
        logger.info("create_stripe_product: price_created stripe_price_id=%s", stripe_price_id)

        return CreateStripeProductOutput(
            stripe_product_id=stripe_product_id,
            stripe_price_id=stripe_price_id,
        )
