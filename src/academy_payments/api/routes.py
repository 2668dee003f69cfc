"""FastAPI routes for payments and gateway webhooks."""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from starlette.concurrency import run_in_threadpool

from academy_payments.actors import Actor
from academy_payments.api.dependencies import current_actor, get_services
from academy_payments.api.schemas import (
    ConfigureGatewayRequest,
    CreatedPaymentResponse,
    CreatePaymentRequest,
    GatewayConfigResponse,
    PaymentResponse,
    PaymentStatusResponse,
    WebhookResponse,
)
from academy_payments.gateway.fake_adapter import FakeGateway
from academy_payments.services import Services

payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("", status_code=201, response_model=CreatedPaymentResponse)
def create_payment(
    body: CreatePaymentRequest,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
) -> CreatedPaymentResponse:
    """Create a payment and return the client secret used to complete it."""
    created = services.payments.create_payment(
        owner_id=body.owner_id,
        amount=body.amount,
        currency=body.currency,
        linked_resource_id=body.linked_resource_id,
        description=body.description,
        requested_by=actor,
    )
    payment = created.payment
    return CreatedPaymentResponse(
        payment_id=payment.id,
        status=payment.status.value,
        external_intent_id=payment.external_intent_id,
        client_secret=created.client_secret,
        amount=payment.amount,
        currency=payment.currency,
    )


@payment_router.get("/recent", response_model=list[PaymentResponse])
def recent_payments(
    limit: int = Query(default=10),
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
) -> list[PaymentResponse]:
    payments = services.payments.recent_payments(actor, limit=limit)
    return [PaymentResponse.from_payment(payment) for payment in payments]


@payment_router.post("/webhook", response_model=WebhookResponse)
async def process_webhook(request: Request, services: Services = Depends(get_services)) -> WebhookResponse:
    """Process a payment gateway webhook callback.

    The signature covers the raw body, so the body is read as bytes and never
    re-serialized before verification.
    """
    settings = services.settings
    raw_payload = await request.body()
    signature = request.headers.get(settings.webhook_signature_header, "")
    event_id = request.headers.get(settings.webhook_event_id_header) or None

    ack = await run_in_threadpool(services.webhooks.handle, raw_payload, signature, event_id)
    return WebhookResponse(status=ack.outcome.value)


@payment_router.post("/gateway/configure", response_model=GatewayConfigResponse)
def configure_gateway(body: ConfigureGatewayRequest, services: Services = Depends(get_services)) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only).

    It allows toggling failure and timeout behavior for manual API testing.
    """
    if services.settings.is_production:
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = services.gateway
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    gateway.configure(
        should_succeed=body.should_succeed,
        failure_reason=body.failure_reason,
        time_out=body.time_out,
    )
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_reason=gateway.failure_reason,
        time_out=gateway.time_out,
    )


@payment_router.get("/{payment_id}", response_model=PaymentResponse)
def get_payment(
    payment_id: str,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
) -> PaymentResponse:
    return PaymentResponse.from_payment(services.payments.get_payment(payment_id, actor))


@payment_router.get("/{payment_id}/status", response_model=PaymentStatusResponse)
def payment_status(
    payment_id: str,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
) -> PaymentStatusResponse:
    payment = services.payments.get_payment(payment_id, actor)
    return PaymentStatusResponse(
        payment_id=payment.id,
        is_successful=services.payments.is_successful(payment.id),
        status=payment.status.value,
    )


@payment_router.post("/{payment_id}/refresh", response_model=PaymentResponse)
def refresh_payment(
    payment_id: str,
    actor: Actor = Depends(current_actor),
    services: Services = Depends(get_services),
) -> PaymentResponse:
    """Reconcile the payment with the gateway's current view of its intent."""
    return PaymentResponse.from_payment(services.payments.refresh_from_gateway(payment_id, actor))
