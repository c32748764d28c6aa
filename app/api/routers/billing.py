from __future__ import annotations

import logging

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Request, Response

from app.api.deps import (
    get_create_checkout_session_use_case,
    get_create_stripe_product_use_case,
    get_customer_billing_use_case,
    get_process_stripe_webhook_use_case,
)
from app.api.schemas.billing import (
    CreateCheckoutSessionRequest,
    CreateCheckoutSessionResponse,
    CreateStripeProductRequest,
    CreateStripeProductResponse,
    CustomerDataRequest,
    CustomerDataResponse,
    FreeCheckoutResponse,
    InvoiceRecordResponse,
    PurchaseRecordResponse,
    StripeWebhookResponse,
    SubscriptionRecordResponse,
)
from app.application.dto.billing import (
    CreateCheckoutSessionInput,
    CreateStripeProductInput,
    StripeWebhookInput,
)
from app.application.dto.customer_billing import GetCustomerBillingInput
from app.application.use_cases.create_checkout_session import CreateCheckoutSessionUseCase
from app.application.use_cases.create_stripe_product import CreateStripeProductUseCase
from app.application.use_cases.get_customer_billing import GetCustomerBillingUseCase
from app.application.use_cases.process_stripe_webhook import ProcessStripeWebhookUseCase
from app.domain.entities.customer_billing import CustomerBillingView
from app.domain.exceptions import (
    BillingError,
    BillingInputError,
    CustomerBillingInputError,
    UpstreamProviderError,
    WebhookSignatureError,
)
from app.shared.config import get_settings


logger = logging.getLogger(__name__)
router = APIRouter()


@router.options("/api/get-customer-data", include_in_schema=False)
@router.options("/api/create-checkout-session", include_in_schema=False)
@router.options("/api/create-stripe-product", include_in_schema=False)
def preflight() -> Response:
    return Response(status_code=200)


@router.post("/api/get-customer-data", response_model=CustomerDataResponse)
def get_customer_data(
    req: CustomerDataRequest | None = Body(default=None),
    use_case: GetCustomerBillingUseCase = Depends(get_customer_billing_use_case),
):
    customer_email = req.customer_email if req is not None else None
    try:
        view = use_case.execute(GetCustomerBillingInput(customer_email=customer_email))
    except CustomerBillingInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except UpstreamProviderError as exc:
        logger.error("billing_router: get_customer_data_failed error=%s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return _to_customer_data_response(view)


@router.post(
    "/api/create-checkout-session",
    response_model=CreateCheckoutSessionResponse | FreeCheckoutResponse,
)
def create_checkout_session(
    req: CreateCheckoutSessionRequest,
    origin: str | None = Header(default=None),
    use_case: CreateCheckoutSessionUseCase = Depends(get_create_checkout_session_use_case),
):
    try:
        output = use_case.execute(
            CreateCheckoutSessionInput(
                product_id=req.product_id,
                product_title=req.product_title,
                price=req.price,
                currency=req.currency,
                interval=req.interval,
                customer_email=req.customer_email,
                success_url=req.success_url,
                cancel_url=req.cancel_url,
                stripe_price_id=req.stripe_price_id,
                trial_days=req.trial_days,
                origin=origin or get_settings().app_public_url,
            )
        )
    except BillingError as exc:
        logger.error("billing_router: checkout_session_failed error=%s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    if output.free:
        return FreeCheckoutResponse(free=True, message=output.message or "")
    return CreateCheckoutSessionResponse(session_id=output.session_id, url=output.url)


@router.post("/api/create-stripe-product", response_model=CreateStripeProductResponse)
def create_stripe_product(
    req: CreateStripeProductRequest,
    use_case: CreateStripeProductUseCase = Depends(get_create_stripe_product_use_case),
):
    try:
        output = use_case.execute(
            CreateStripeProductInput(
                title=req.title,
                description=req.description,
                price=req.price,
                currency=req.currency,
                interval=req.interval,
                product_id=req.product_id,
            )
        )
    except BillingInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except BillingError as exc:
        logger.error("billing_router: create_stripe_product_failed error=%s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return CreateStripeProductResponse(
        success=True,
        stripe_product_id=output.stripe_product_id,
        stripe_price_id=output.stripe_price_id,
    )


@router.post("/api/stripe-webhook", response_model=StripeWebhookResponse)
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
    use_case: ProcessStripeWebhookUseCase = Depends(get_process_stripe_webhook_use_case),
):
    payload = await request.body()
    try:
        use_case.execute(StripeWebhookInput(signature=stripe_signature, payload=payload))
    except WebhookSignatureError as exc:
        logger.warning("billing_router: webhook_verification_failed error=%s", exc)
        raise HTTPException(status_code=400, detail=f"Webhook Error: {exc}") from exc
    except BillingError as exc:
        logger.error("billing_router: webhook_handler_failed error=%s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return StripeWebhookResponse(received=True)


def _to_customer_data_response(view: CustomerBillingView) -> CustomerDataResponse:
    return CustomerDataResponse(
        subscriptions=[
            SubscriptionRecordResponse(
                id=record.id,
                status=record.status,
                product_name=record.product_name,
                current_period_start=record.current_period_start,
                current_period_end=record.current_period_end,
                cancel_at_period_end=record.cancel_at_period_end,
                amount=float(record.amount),
                currency=record.currency,
                interval=record.interval,
            )
            for record in view.subscriptions
        ],
        purchases=[
            PurchaseRecordResponse(
                id=record.id,
                product_name=record.product_name,
                amount=float(record.amount),
                currency=record.currency,
                created_at=record.created_at,
            )
            for record in view.purchases
        ],
        invoices=[
            InvoiceRecordResponse(
                id=record.id,
                amount=float(record.amount),
                currency=record.currency,
                paid_at=record.paid_at,
                invoice_url=record.invoice_url,
                invoice_pdf=record.invoice_pdf,
            )
            for record in view.invoices
        ],
        has_stripe_account=view.has_stripe_account,
    )
