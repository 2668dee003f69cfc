"""Stripe payment gateway adapter.

Uses the stripe-python SDK to:
- Create PaymentIntents (automatic payment methods, amounts in minor units)
- Retrieve and cancel PaymentIntents
- Verify webhook signatures using Stripe's signing secret

Every call goes through an HTTP client with a bounded timeout and no SDK
retries; redelivery is the webhook sender's job and creation retries are
the caller's.
"""

import re
from decimal import Decimal
from typing import Any

import requests
import stripe
import structlog

from academy_payments.errors import GatewayTimeout, GatewayUnavailable
from academy_payments.gateway.port import (
    INTENT_FAILED,
    INTENT_PROCESSING,
    INTENT_SUCCEEDED,
    GatewayIntent,
    IntentHandle,
    PaymentGateway,
    to_minor_units,
)

logger = structlog.get_logger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 300


# RequestsClient appends "(Network error: <ExceptionName>: ...)" to connection errors
_NETWORK_TIMEOUT = re.compile(r"\(Network error: (?:ConnectTimeout|ReadTimeout|Timeout)\b")


def _is_timeout(exc: stripe.APIConnectionError) -> bool:
    if isinstance(exc.__cause__, requests.exceptions.Timeout):
        return True
    return _NETWORK_TIMEOUT.search(str(exc)) is not None


def _translate_error(exc: stripe.StripeError) -> GatewayUnavailable:
    if isinstance(exc, stripe.APIConnectionError) and _is_timeout(exc):
        return GatewayTimeout(str(exc))
    return GatewayUnavailable(str(exc))


def _to_intent(obj: Any) -> GatewayIntent:
    latest_charge = obj.get("latest_charge")
    if latest_charge is not None and not isinstance(latest_charge, str):
        latest_charge = latest_charge.get("id")
    last_error = obj.get("last_payment_error") or {}
    return GatewayIntent(
        id=obj["id"],
        status=obj.get("status") or "",
        latest_charge=latest_charge,
        failure_message=last_error.get("message"),
        metadata=dict(obj.get("metadata") or {}),
    )


class StripeGateway(PaymentGateway):
    """Production Stripe gateway adapter."""

    intent_id_prefix = "pi_"
    event_aliases = {
        "payment_intent.succeeded": INTENT_SUCCEEDED,
        "payment_intent.payment_failed": INTENT_FAILED,
        "payment_intent.processing": INTENT_PROCESSING,
    }

    def __init__(
        self,
        api_key: str,
        webhook_secret: str,
        timeout: float = 10.0,
        client: stripe.StripeClient | None = None,
    ) -> None:
        self.webhook_secret = webhook_secret
        self._client = client or stripe.StripeClient(
            api_key,
            http_client=stripe.RequestsClient(timeout=timeout),
            max_network_retries=0,
        )

    def create_intent(
        self,
        amount: Decimal,
        currency: str,
        description: str,
        metadata: dict[str, str],
    ) -> IntentHandle:
        try:
            intent = self._client.payment_intents.create(
                params={
                    "amount": to_minor_units(amount, currency),
                    "currency": currency.lower(),  # Stripe expects lowercase
                    "description": description,
                    "metadata": metadata,
                    "automatic_payment_methods": {"enabled": True},
                }
            )
        except stripe.StripeError as exc:
            logger.warning("Stripe intent creation failed", error=str(exc))
            raise _translate_error(exc) from exc

        return IntentHandle(intent_id=intent["id"], client_secret=intent["client_secret"])

    def fetch_intent(self, intent_id: str) -> GatewayIntent | None:
        try:
            intent = self._client.payment_intents.retrieve(intent_id)
        except stripe.InvalidRequestError as exc:
            if exc.code == "resource_missing":
                return None
            raise _translate_error(exc) from exc
        except stripe.StripeError as exc:
            raise _translate_error(exc) from exc

        return _to_intent(intent)

    def cancel_intent(self, intent_id: str) -> None:
        try:
            self._client.payment_intents.cancel(intent_id)
        except stripe.StripeError as exc:
            raise _translate_error(exc) from exc

    def verify_signature(self, payload: bytes, signature: str) -> bool:
        if not signature:
            return False
        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"),
                signature,
                self.webhook_secret,
                tolerance=SIGNATURE_TOLERANCE_SECONDS,
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError):
            return False
        return True
