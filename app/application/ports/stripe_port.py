from __future__ import annotations

from typing import Any, Protocol

from app.application.dto.billing import StripeCheckoutSessionResult, StripeWebhookEvent


class StripePort(Protocol):
    def create_checkout_session(self, *, params: dict[str, Any]) -> StripeCheckoutSessionResult:
        ...

    def create_product(self, *, name: str, description: str | None, metadata: dict[str, str]) -> str:
        ...

    def create_price(self, *, params: dict[str, Any]) -> str:
        ...

    def verify_webhook(self, *, signature: str | None, payload: bytes) -> StripeWebhookEvent:
        ...
