from __future__ import annotations

from decimal import Decimal
from threading import Event, Lock
import unittest

from app.application.dto.customer_billing import GetCustomerBillingInput
from app.application.use_cases.get_customer_billing import GetCustomerBillingUseCase
from app.domain.entities.billing_provider import (
    ProviderCheckoutSession,
    ProviderInvoice,
    ProviderProduct,
    ProviderSubscription,
)
from app.domain.entities.customer_billing import BillingAccount
from app.domain.exceptions import CustomerBillingInputError, UpstreamProviderError


def _subscription(sub_id: str, *, product_id: str | None = "prod_1", unit_amount: int | None = 2999):
    return ProviderSubscription(
        id=sub_id,
        status="active",
        current_period_start=1704067200,
        current_period_end=1706745600,
        cancel_at_period_end=False,
        product_id=product_id,
        unit_amount=unit_amount,
        currency="eur",
        interval="month",
    )


def _session(session_id: str, *, status: str = "complete", mode: str = "payment"):
    return ProviderCheckoutSession(
        id=session_id,
        status=status,
        mode=mode,
        amount_total=4900,
        currency="eur",
        created=1704067200,
        metadata={"productTitle": "Ernaehrungsplan"},
    )


def _invoice(invoice_id: str, *, status: str = "paid"):
    return ProviderInvoice(
        id=invoice_id,
        status=status,
        amount_paid=2999,
        currency="eur",
        paid_at=1704067200,
        hosted_invoice_url=f"https://invoice.stripe.com/i/{invoice_id}",
        invoice_pdf=None,
    )


class FakeBillingProviderPort:
    def __init__(
        self,
        *,
        accounts: dict[str, list[BillingAccount]] | None = None,
        subscriptions: dict[str, list[ProviderSubscription]] | None = None,
        sessions: dict[str, list[ProviderCheckoutSession]] | None = None,
        invoices: dict[str, list[ProviderInvoice]] | None = None,
        products: dict[str, ProviderProduct | None] | None = None,
    ):
        self.accounts = accounts or {}
        self.subscriptions = subscriptions or {}
        self.sessions = sessions or {}
        self.invoices = invoices or {}
        self.products = products or {}
        self.calls: list[tuple] = []
        self._lock = Lock()

    def _record(self, *call) -> None:
        with self._lock:
            self.calls.append(call)

    def list_accounts_by_email(self, *, email: str, limit: int) -> list[BillingAccount]:
        self._record("accounts", email, limit)
        return list(self.accounts.get(email, []))

    def list_subscriptions(self, *, account_id: str, limit: int) -> list[ProviderSubscription]:
        self._record("subscriptions", account_id, limit)
        return list(self.subscriptions.get(account_id, []))

    def retrieve_product(self, *, product_id: str) -> ProviderProduct | None:
        self._record("product", product_id)
        return self.products.get(product_id)

    def list_checkout_sessions(self, *, account_id: str, limit: int) -> list[ProviderCheckoutSession]:
        self._record("sessions", account_id, limit)
        return list(self.sessions.get(account_id, []))

    def list_invoices(self, *, account_id: str, limit: int) -> list[ProviderInvoice]:
        self._record("invoices", account_id, limit)
        return list(self.invoices.get(account_id, []))


class FailingInvoicesPort(FakeBillingProviderPort):
    def list_invoices(self, *, account_id: str, limit: int) -> list[ProviderInvoice]:
        if account_id == "cus_2":
            raise UpstreamProviderError("Rate limit exceeded")
        return super().list_invoices(account_id=account_id, limit=limit)


class BrokenRecordPort(FakeBillingProviderPort):
    def list_checkout_sessions(self, *, account_id: str, limit: int) -> list[ProviderCheckoutSession]:
        raise KeyError("id")


class BlockingPort(FakeBillingProviderPort):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.release = Event()

    def list_invoices(self, *, account_id: str, limit: int) -> list[ProviderInvoice]:
        self.release.wait(timeout=5)
        return []


def _accounts(*ids: str) -> list[BillingAccount]:
    return [BillingAccount(account_id=account_id, email="a@x.com") for account_id in ids]


class GetCustomerBillingUseCaseTests(unittest.TestCase):
    def _execute(self, port, email: str | None = "a@x.com", **kwargs):
        use_case = GetCustomerBillingUseCase(billing_provider_port=port, **kwargs)
        return use_case.execute(GetCustomerBillingInput(customer_email=email))

    def test_missing_email_is_rejected_without_provider_calls(self):
        port = FakeBillingProviderPort()

        for email in (None, ""):
            with self.assertRaises(CustomerBillingInputError) as ctx:
                self._execute(port, email=email)
            self.assertEqual(str(ctx.exception), "customerEmail required")

        self.assertEqual(port.calls, [])

    def test_no_accounts_returns_empty_view(self):
        port = FakeBillingProviderPort()

        view = self._execute(port)

        self.assertFalse(view.has_stripe_account)
        self.assertEqual(view.subscriptions, [])
        self.assertEqual(view.purchases, [])
        self.assertEqual(view.invoices, [])
        self.assertEqual(port.calls, [("accounts", "a@x.com", 10)])

    def test_single_account_with_monthly_subscription(self):
        port = FakeBillingProviderPort(
            accounts={"a@x.com": _accounts("cus_1")},
            subscriptions={"cus_1": [_subscription("sub_1")]},
            products={"prod_1": ProviderProduct(id="prod_1", name="Coaching Basic")},
        )

        view = self._execute(port)

        self.assertTrue(view.has_stripe_account)
        self.assertEqual(len(view.subscriptions), 1)
        record = view.subscriptions[0]
        self.assertEqual(record.amount, Decimal("29.99"))
        self.assertEqual(record.currency, "EUR")
        self.assertEqual(record.interval, "month")
        self.assertEqual(record.product_name, "Coaching Basic")
        self.assertEqual(view.purchases, [])
        self.assertEqual(view.invoices, [])

    def test_duplicate_accounts_keep_account_order(self):
        port = FakeBillingProviderPort(
            accounts={"a@x.com": _accounts("cus_1", "cus_2")},
            invoices={"cus_1": [_invoice("in_1")], "cus_2": [_invoice("in_2")]},
            sessions={
                "cus_1": [_session("cs_1"), _session("cs_1b")],
                "cus_2": [_session("cs_2")],
            },
        )

        view = self._execute(port, max_concurrency=4)

        self.assertEqual([invoice.id for invoice in view.invoices], ["in_1", "in_2"])
        self.assertEqual([purchase.id for purchase in view.purchases], ["cs_1", "cs_1b", "cs_2"])

    def test_filters_sessions_and_invoices_but_not_subscriptions(self):
        canceled = ProviderSubscription(
            id="sub_old",
            status="canceled",
            current_period_start=1704067200,
            current_period_end=1706745600,
            cancel_at_period_end=True,
            product_id=None,
            unit_amount=None,
            currency=None,
            interval=None,
        )
        port = FakeBillingProviderPort(
            accounts={"a@x.com": _accounts("cus_1")},
            subscriptions={"cus_1": [canceled]},
            sessions={
                "cus_1": [
                    _session("cs_paid"),
                    _session("cs_sub", mode="subscription"),
                    _session("cs_open", status="open"),
                ]
            },
            invoices={"cus_1": [_invoice("in_paid"), _invoice("in_open", status="open")]},
        )

        view = self._execute(port)

        self.assertEqual([sub.id for sub in view.subscriptions], ["sub_old"])
        self.assertEqual(view.subscriptions[0].product_name, "Abonnement")
        self.assertEqual([purchase.id for purchase in view.purchases], ["cs_paid"])
        self.assertEqual([invoice.id for invoice in view.invoices], ["in_paid"])

    def test_uses_provider_limits(self):
        port = FakeBillingProviderPort(accounts={"a@x.com": _accounts("cus_1")})

        self._execute(port)

        self.assertIn(("subscriptions", "cus_1", 10), port.calls)
        self.assertIn(("sessions", "cus_1", 20), port.calls)
        self.assertIn(("invoices", "cus_1", 10), port.calls)

    def test_only_first_ten_accounts_are_aggregated(self):
        ids = [f"cus_{index}" for index in range(12)]
        port = FakeBillingProviderPort(
            accounts={"a@x.com": _accounts(*ids)},
            invoices={account_id: [_invoice(f"in_{account_id}")] for account_id in ids},
        )

        view = self._execute(port)

        self.assertEqual(len(view.invoices), 10)
        self.assertEqual(view.invoices[-1].id, "in_cus_9")

    def test_product_is_retrieved_once_per_request(self):
        port = FakeBillingProviderPort(
            accounts={"a@x.com": _accounts("cus_1", "cus_2")},
            subscriptions={
                "cus_1": [_subscription("sub_1"), _subscription("sub_2")],
                "cus_2": [_subscription("sub_3")],
            },
            products={"prod_1": ProviderProduct(id="prod_1", name="Coaching Basic")},
        )

        view = self._execute(port)

        product_calls = [call for call in port.calls if call[0] == "product"]
        self.assertEqual(product_calls, [("product", "prod_1")])
        self.assertEqual({sub.product_name for sub in view.subscriptions}, {"Coaching Basic"})

    def test_product_lookup_without_name_falls_back(self):
        port = FakeBillingProviderPort(
            accounts={"a@x.com": _accounts("cus_1")},
            subscriptions={"cus_1": [_subscription("sub_1", product_id="prod_missing")]},
            products={"prod_missing": None},
        )

        view = self._execute(port)

        self.assertEqual(view.subscriptions[0].product_name, "Abonnement")

    def test_any_provider_failure_fails_whole_request(self):
        port = FailingInvoicesPort(
            accounts={"a@x.com": _accounts("cus_1", "cus_2")},
            invoices={"cus_1": [_invoice("in_1")]},
        )

        with self.assertRaises(UpstreamProviderError) as ctx:
            self._execute(port)

        self.assertEqual(str(ctx.exception), "Rate limit exceeded")

    def test_unexpected_error_is_reported_as_upstream_error(self):
        port = BrokenRecordPort(accounts={"a@x.com": _accounts("cus_1")})

        with self.assertRaises(UpstreamProviderError):
            self._execute(port)

    def test_request_timeout_is_reported_as_upstream_error(self):
        port = BlockingPort(accounts={"a@x.com": _accounts("cus_1")})

        try:
            with self.assertRaises(UpstreamProviderError) as ctx:
                self._execute(port, request_timeout_seconds=0.05)
        finally:
            port.release.set()

        self.assertIn("timed out", str(ctx.exception))

    def test_repeated_requests_are_identical(self):
        port = FakeBillingProviderPort(
            accounts={"a@x.com": _accounts("cus_1", "cus_2")},
            subscriptions={"cus_1": [_subscription("sub_1")], "cus_2": [_subscription("sub_2")]},
            sessions={"cus_2": [_session("cs_1")]},
            invoices={"cus_1": [_invoice("in_1")]},
            products={"prod_1": ProviderProduct(id="prod_1", name="Coaching Basic")},
        )

        first = self._execute(port)
        second = self._execute(port)

        self.assertEqual(first, second)


if __name__ == "__main__":
    unittest.main()
