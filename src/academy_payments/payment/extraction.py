"""Finding the payment intent a webhook event is about.

Event bodies do not always carry the full intent object, so extraction is an
ordered chain of strategies. Each returns an intent or None; the first
intent wins:

    1. EmbeddedIntentExtractor: validate `data.object` as an intent
    2. RemoteFetchExtractor: scan the raw body for ids with the gateway's
       intent prefix and fetch the intent from the gateway

Gateway errors raised while fetching are not swallowed: a timeout is a
transient failure the webhook sender should retry.
"""

import json
import re
from typing import Any, Protocol

import structlog
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PayloadError

from academy_payments.gateway.port import GatewayIntent, PaymentGateway

logger = structlog.get_logger(__name__)

MAX_SCANNED_IDS = 3


class PaymentErrorPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: str | None = None


class IntentPayload(BaseModel):
    """The subset of an embedded intent object we rely on."""

    model_config = ConfigDict(extra="ignore")

    id: str
    status: str
    latest_charge: str | dict[str, Any] | None = None
    last_payment_error: PaymentErrorPayload | None = None
    metadata: dict[str, Any] = {}

    def to_intent(self) -> GatewayIntent:
        charge = self.latest_charge
        if isinstance(charge, dict):
            charge = charge.get("id")
        return GatewayIntent(
            id=self.id,
            status=self.status,
            latest_charge=charge,
            failure_message=self.last_payment_error.message if self.last_payment_error else None,
            metadata={key: str(value) for key, value in self.metadata.items()},
        )


class IntentExtractor(Protocol):
    def extract(self, envelope: dict[str, Any], raw_payload: bytes) -> GatewayIntent | None: ...


class EmbeddedIntentExtractor:
    def __init__(self, id_prefix: str) -> None:
        self.id_prefix = id_prefix

    def extract(self, envelope: dict[str, Any], raw_payload: bytes) -> GatewayIntent | None:
        data = envelope.get("data")
        obj = data.get("object") if isinstance(data, dict) else None
        if not isinstance(obj, dict):
            return None

        try:
            payload = IntentPayload.model_validate(obj)
        except PayloadError as exc:
            logger.debug("Embedded intent is incomplete", errors=exc.error_count())
            return None

        if not payload.id.startswith(self.id_prefix):
            return None
        return payload.to_intent()


class RemoteFetchExtractor:
    def __init__(self, gateway: PaymentGateway) -> None:
        self.gateway = gateway
        self.pattern = re.compile(rf"\b{re.escape(gateway.intent_id_prefix)}[A-Za-z0-9]+")

    def extract(self, envelope: dict[str, Any], raw_payload: bytes) -> GatewayIntent | None:
        text = raw_payload.decode("utf-8", errors="replace")
        candidates = list(dict.fromkeys(self.pattern.findall(text)))[:MAX_SCANNED_IDS]

        for intent_id in candidates:
            intent = self.gateway.fetch_intent(intent_id)
            if intent is not None:
                logger.info("Intent recovered by remote fetch", intent_id=intent_id)
                return intent
        return None


def default_extractors(gateway: PaymentGateway) -> list[IntentExtractor]:
    return [EmbeddedIntentExtractor(gateway.intent_id_prefix), RemoteFetchExtractor(gateway)]


def extract_intent(
    extractors: list[IntentExtractor],
    envelope: dict[str, Any],
    raw_payload: bytes,
) -> GatewayIntent | None:
    for extractor in extractors:
        intent = extractor.extract(envelope, raw_payload)
        if intent is not None:
            return intent
    return None


def parse_envelope(raw_payload: bytes) -> dict[str, Any] | None:
    """Decode the webhook body. None if it is not a JSON object."""
    try:
        envelope = json.loads(raw_payload)
    except (UnicodeDecodeError, ValueError):
        return None
    return envelope if isinstance(envelope, dict) else None
