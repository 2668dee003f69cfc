"""Pydantic request/response schemas for the Payments API.

These are external contracts, kept separate from the internal Payment model.
The client secret only ever appears in the creation response.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from academy_payments.payment.payment import Payment


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class CreatePaymentRequest(BaseModel):
    owner_id: str
    amount: Decimal = Field(gt=0)
    currency: str = "EUR"
    linked_resource_id: str | None = None
    description: str = Field(default="", max_length=1000)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "owner_id": "student-42",
                    "amount": "50.00",
                    "currency": "EUR",
                    "linked_resource_id": "class-7",
                    "description": "Enrollment: Advanced Spanish (B2)",
                }
            ]
        }
    }


class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Gateway unavailable"
    time_out: bool = False


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class CreatedPaymentResponse(BaseModel):
    payment_id: str
    status: str
    external_intent_id: str
    client_secret: str
    amount: Decimal
    currency: str


class PaymentResponse(BaseModel):
    payment_id: str
    amount: Decimal
    currency: str
    method: str
    status: str
    external_intent_id: str
    external_charge_id: str | None = None
    failure_reason: str | None = None
    owner_id: str
    linked_resource_id: str | None = None
    description: str
    version: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_payment(cls, payment: Payment) -> "PaymentResponse":
        return cls(
            payment_id=payment.id,
            amount=payment.amount,
            currency=payment.currency,
            method=payment.method.value,
            status=payment.status.value,
            external_intent_id=payment.external_intent_id,
            external_charge_id=payment.external_charge_id,
            failure_reason=payment.failure_reason,
            owner_id=payment.owner_id,
            linked_resource_id=payment.linked_resource_id,
            description=payment.description,
            version=payment.version,
            created_at=payment.created_at,
            updated_at=payment.updated_at,
        )


class PaymentStatusResponse(BaseModel):
    payment_id: str
    is_successful: bool
    status: str


class WebhookResponse(BaseModel):
    status: str


class GatewayConfigResponse(BaseModel):
    gateway: str
    should_succeed: bool
    failure_reason: str
    time_out: bool
