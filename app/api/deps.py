from __future__ import annotations

from functools import lru_cache

from fastapi import HTTPException

from app.application.ports.billing_provider_port import BillingProviderPort
from app.application.use_cases.create_checkout_session import CreateCheckoutSessionUseCase
from app.application.use_cases.create_stripe_product import CreateStripeProductUseCase
from app.application.use_cases.get_customer_billing import GetCustomerBillingUseCase
from app.application.use_cases.process_stripe_webhook import ProcessStripeWebhookUseCase
from app.domain.exceptions import UpstreamProviderError
from app.infrastructure.clients.stripe_client import StripeClient
from app.infrastructure.db.engine import get_engine
from app.infrastructure.db.repositories.billing_ledger_repository import SqlBillingLedgerRepository
from app.shared.config import get_settings


STRIPE_SECRET_KEY_REQUIRED_MESSAGE = "STRIPE_SECRET_KEY is required."


class _UnconfiguredBillingProvider(BillingProviderPort):
    """Fails on first provider call so request validation still runs without a key."""

    def _fail(self):
        raise UpstreamProviderError(STRIPE_SECRET_KEY_REQUIRED_MESSAGE)

    def list_accounts_by_email(self, *, email, limit):
        self._fail()

    def list_subscriptions(self, *, account_id, limit):
        self._fail()

    def retrieve_product(self, *, product_id):
        self._fail()

    def list_checkout_sessions(self, *, account_id, limit):
        self._fail()

    def list_invoices(self, *, account_id, limit):
        self._fail()


def _get_db_engine():
    settings = get_settings()
    if not settings.postgres_dsn:
        raise HTTPException(status_code=500, detail="POSTGRES_DSN is required.")
    return get_engine(settings.postgres_dsn)


@lru_cache(maxsize=1)
def _get_stripe_client() -> StripeClient:
    settings = get_settings()
    if not settings.stripe_secret_key:
        raise HTTPException(status_code=500, detail=STRIPE_SECRET_KEY_REQUIRED_MESSAGE)
    return StripeClient(
        secret_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        api_version=settings.stripe_api_version,
        max_network_retries=settings.stripe_max_network_retries,
    )


def get_customer_billing_use_case() -> GetCustomerBillingUseCase:
    settings = get_settings()
    provider = _get_stripe_client() if settings.stripe_secret_key else _UnconfiguredBillingProvider()
    return GetCustomerBillingUseCase(
        billing_provider_port=provider,
        max_concurrency=settings.billing_max_concurrency,
        request_timeout_seconds=settings.billing_request_timeout_seconds,
    )


def get_create_checkout_session_use_case() -> CreateCheckoutSessionUseCase:
    return CreateCheckoutSessionUseCase(stripe_port=_get_stripe_client())


def get_create_stripe_product_use_case() -> CreateStripeProductUseCase:
    return CreateStripeProductUseCase(stripe_port=_get_stripe_client())


def get_process_stripe_webhook_use_case() -> ProcessStripeWebhookUseCase:
    return ProcessStripeWebhookUseCase(
        stripe_port=_get_stripe_client(),
        ledger_port=SqlBillingLedgerRepository(_get_db_engine()),
    )
