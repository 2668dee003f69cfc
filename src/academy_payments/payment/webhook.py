"""Gateway webhook processing.

Turns one inbound gateway callback into at most one state transition and at
most one enrollment side effect, however often and in whatever order the
gateway delivers it.

Only a bad signature is an error the sender sees (400). Payloads we cannot
use (not JSON, no recognizable intent, an intent we never created, an event
type we do not handle) are acknowledged and logged, because redelivering
them can never succeed. Transient failures (gateway fetch timeouts, the
database, the enrollment service) propagate so the sender retries.
"""

from dataclasses import dataclass
from enum import Enum

import structlog

from academy_payments.errors import InvalidSignature
from academy_payments.gateway.port import INTENT_FAILED, INTENT_PROCESSING, INTENT_SUCCEEDED, PaymentGateway
from academy_payments.payment.extraction import (
    IntentExtractor,
    default_extractors,
    extract_intent,
    parse_envelope,
)
from academy_payments.payment.ledger import EventAlreadyRecorded, IdempotencyLedger
from academy_payments.payment.payment import PaymentStatus
from academy_payments.payment.reconciliation import PaymentReconciler
from academy_payments.payment.store import PaymentStore

logger = structlog.get_logger(__name__)

_TARGET_STATUS = {
    INTENT_SUCCEEDED: PaymentStatus.SUCCEEDED,
    INTENT_FAILED: PaymentStatus.FAILED,
    INTENT_PROCESSING: PaymentStatus.PROCESSING,
}


class WebhookOutcome(Enum):
    APPLIED = "applied"
    REJECTED = "rejected"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    UNKNOWN_PAYMENT = "unknown_payment"
    UNPARSEABLE = "unparseable"


@dataclass(frozen=True)
class Ack:
    """A delivery the gateway should consider handled."""

    outcome: WebhookOutcome
    event_id: str | None = None
    payment_id: str | None = None


class WebhookProcessor:
    def __init__(
        self,
        gateway: PaymentGateway,
        store: PaymentStore,
        ledger: IdempotencyLedger,
        reconciler: PaymentReconciler,
        extractors: list[IntentExtractor] | None = None,
    ) -> None:
        self._gateway = gateway
        self._store = store
        self._ledger = ledger
        self._reconciler = reconciler
        self._extractors = extractors if extractors is not None else default_extractors(gateway)

    def handle(self, raw_payload: bytes, signature: str, event_id: str | None = None) -> Ack:
        """Process one webhook delivery.

        `event_id` comes from the delivery header when the gateway sends one;
        otherwise the envelope's own `id` is used. Raises `InvalidSignature`
        when the payload is not authentic.
        """
        if not self._gateway.verify_signature(raw_payload, signature):
            logger.warning("Rejected webhook with invalid signature")
            raise InvalidSignature("Invalid webhook signature")

        envelope = parse_envelope(raw_payload)
        if envelope is None:
            logger.error("Webhook payload is not a JSON object", event_id=event_id)
            return Ack(WebhookOutcome.UNPARSEABLE, event_id=event_id or None)

        body_id = envelope.get("id")
        event_id = event_id or (body_id if isinstance(body_id, str) and body_id else None)

        with structlog.contextvars.bound_contextvars(event_id=event_id):
            return self._process(envelope, raw_payload, event_id)

    def _process(self, envelope: dict, raw_payload: bytes, event_id: str | None) -> Ack:
        if event_id and self._ledger.is_processed(event_id):
            logger.info("Duplicate webhook delivery skipped")
            return Ack(WebhookOutcome.DUPLICATE, event_id=event_id)

        event_type = self._gateway.translate_event_type(str(envelope.get("type") or ""))
        target = _TARGET_STATUS.get(event_type)
        if target is None:
            logger.info("Ignoring unhandled webhook event type", event_type=event_type)
            return Ack(WebhookOutcome.IGNORED, event_id=event_id)

        intent = extract_intent(self._extractors, envelope, raw_payload)
        if intent is None:
            logger.error("Could not extract a payment intent from webhook payload", event_type=event_type)
            return Ack(WebhookOutcome.UNPARSEABLE, event_id=event_id)

        payment = self._store.find_by_intent(intent.id)
        if payment is None:
            logger.warning("Webhook event for an intent we did not create", intent_id=intent.id)
            return Ack(WebhookOutcome.UNKNOWN_PAYMENT, event_id=event_id)

        try:
            result = self._reconciler.apply(
                payment.id,
                target,
                charge_id=intent.latest_charge,
                failure_reason=intent.failure_message,
                event_id=event_id,
                event_type=event_type,
            )
        except EventAlreadyRecorded:
            logger.info("Concurrent delivery already applied this event", payment_id=payment.id)
            return Ack(WebhookOutcome.DUPLICATE, event_id=event_id, payment_id=payment.id)

        outcome = WebhookOutcome.APPLIED if result.applied else WebhookOutcome.REJECTED
        return Ack(outcome, event_id=event_id, payment_id=payment.id)
