from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from threading import Lock
from time import monotonic, perf_counter

from app.application.dto.customer_billing import GetCustomerBillingInput
from app.application.ports.billing_provider_port import BillingProviderPort
from app.domain.entities.billing_provider import ProviderSubscription
from app.domain.entities.customer_billing import (
    BillingAccount,
    CustomerBillingView,
    InvoiceRecord,
    PurchaseRecord,
    SubscriptionRecord,
)
from app.domain.exceptions import CustomerBillingInputError, UpstreamProviderError
from app.domain.services.customer_billing import (
    is_completed_purchase,
    is_paid_invoice,
    normalize_invoice,
    normalize_purchase,
    normalize_subscription,
)


ACCOUNT_LIMIT = 10
SUBSCRIPTION_LIMIT = 10
CHECKOUT_SESSION_LIMIT = 20
INVOICE_LIMIT = 10
CUSTOMER_EMAIL_REQUIRED_MESSAGE = "customerEmail required"
DEFAULT_FAILURE_MESSAGE = "Failed to get customer data"
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _AccountBilling:
    subscriptions: list[SubscriptionRecord]
    purchases: list[PurchaseRecord]
    invoices: list[InvoiceRecord]


class _ProductNameCache:
    """Resolves product display names at most once per product id."""

    def __init__(self, provider: BillingProviderPort):
        self._provider = provider
        self._lock = Lock()
        self._entries: dict[str, Future] = {}
        self.lookups = 0

    def get(self, product_id: str) -> str | None:
        with self._lock:
            entry = self._entries.get(product_id)
            owner = entry is None
            if owner:
                entry = Future()
                self._entries[product_id] = entry
                self.lookups += 1
        if owner:
            try:
                product = self._provider.retrieve_product(product_id=product_id)
            except BaseException as exc:
                entry.set_exception(exc)
                raise
            entry.set_result(product.name if product is not None else None)
        return entry.result()


class GetCustomerBillingUseCase:
    def __init__(
        self,
        *,
        billing_provider_port: BillingProviderPort,
        max_concurrency: int = 8,
        request_timeout_seconds: float = 20.0,
    ):
        self._provider = billing_provider_port
        self._max_concurrency = max(1, max_concurrency)
        self._request_timeout_seconds = request_timeout_seconds

    def execute(self, command: GetCustomerBillingInput) -> CustomerBillingView:
        customer_email = command.customer_email
        if not customer_email:
            raise CustomerBillingInputError(CUSTOMER_EMAIL_REQUIRED_MESSAGE)

        started_at = perf_counter()
        try:
            view = self._aggregate(customer_email)
        except UpstreamProviderError:
            raise
        except Exception as exc:
            logger.exception("get_customer_billing: aggregation_failed")
            raise UpstreamProviderError(str(exc) or DEFAULT_FAILURE_MESSAGE) from exc

        logger.info(
            "get_customer_billing: done has_account=%s subscriptions=%s purchases=%s invoices=%s elapsed_ms=%.1f",
            view.has_stripe_account,
            len(view.subscriptions),
            len(view.purchases),
            len(view.invoices),
            (perf_counter() - started_at) * 1000,
        )
        return view

    def _aggregate(self, customer_email: str) -> CustomerBillingView:
        deadline = monotonic() + self._request_timeout_seconds
        accounts = self._provider.list_accounts_by_email(email=customer_email, limit=ACCOUNT_LIMIT)
        if not accounts:
            return CustomerBillingView(has_stripe_account=False)
        accounts = accounts[:ACCOUNT_LIMIT]

        product_names = _ProductNameCache(self._provider)
        executor = ThreadPoolExecutor(
            max_workers=self._max_concurrency,
            thread_name_prefix="customer-billing",
        )
        try:
            pending = [
                (
                    executor.submit(self._fetch_subscriptions, account, product_names),
                    executor.submit(self._fetch_purchases, account),
                    executor.submit(self._fetch_invoices, account),
                )
                for account in accounts
            ]
            per_account = [
                _AccountBilling(
                    subscriptions=_wait(subscriptions, deadline),
                    purchases=_wait(purchases, deadline),
                    invoices=_wait(invoices, deadline),
                )
                for subscriptions, purchases, invoices in pending
            ]
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        logger.debug(
            "get_customer_billing: fanned_out accounts=%s product_lookups=%s",
            len(accounts),
            product_names.lookups,
        )
        return CustomerBillingView(
            subscriptions=[record for item in per_account for record in item.subscriptions],
            purchases=[record for item in per_account for record in item.purchases],
            invoices=[record for item in per_account for record in item.invoices],
            has_stripe_account=True,
        )

    def _fetch_subscriptions(
        self,
        account: BillingAccount,
        product_names: _ProductNameCache,
    ) -> list[SubscriptionRecord]:
        subscriptions = self._provider.list_subscriptions(
            account_id=account.account_id,
            limit=SUBSCRIPTION_LIMIT,
        )
        return [
            normalize_subscription(sub, product_name=_product_name(sub, product_names))
            for sub in subscriptions
        ]

    def _fetch_purchases(self, account: BillingAccount) -> list[PurchaseRecord]:
        sessions = self._provider.list_checkout_sessions(
            account_id=account.account_id,
            limit=CHECKOUT_SESSION_LIMIT,
        )
        return [normalize_purchase(session) for session in sessions if is_completed_purchase(session)]

    def _fetch_invoices(self, account: BillingAccount) -> list[InvoiceRecord]:
        invoices = self._provider.list_invoices(account_id=account.account_id, limit=INVOICE_LIMIT)
        return [normalize_invoice(invoice) for invoice in invoices if is_paid_invoice(invoice)]


def _product_name(sub: ProviderSubscription, product_names: _ProductNameCache) -> str | None:
    if not sub.product_id:
        return None
    return product_names.get(sub.product_id)


def _wait(future: Future, deadline: float):
    remaining = max(0.0, deadline - monotonic())
    try:
        return future.result(timeout=remaining)
    except FutureTimeoutError as exc:
        raise UpstreamProviderError("Billing provider request timed out.") from exc
