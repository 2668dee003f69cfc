"""Configurable fake payment gateway for development and testing.

This adapter simulates a real payment gateway without any external calls.
It can be configured at runtime to fail or time out, making it useful for:
- Manual API testing via /payments/gateway/configure
- Automated tests with predictable outcomes
- Development without real gateway credentials

Webhook payloads are signed with HMAC-SHA256 over the raw body using a
shared secret, the same shape of check a real gateway performs.
"""

import hashlib
import hmac
from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

from academy_payments.errors import GatewayTimeout, GatewayUnavailable
from academy_payments.gateway.port import GatewayIntent, IntentHandle, PaymentGateway


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    intent_id_prefix = "pi_"

    def __init__(self, webhook_secret: str = "whsec_fake") -> None:
        self.webhook_secret = webhook_secret
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.time_out: bool = False
        self.intents: dict[str, GatewayIntent] = {}
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool,
        failure_reason: str = "Gateway unavailable",
        time_out: bool = False,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.time_out = time_out

    def _check_reachable(self) -> None:
        if self.time_out:
            raise GatewayTimeout("Fake gateway timed out")
        if not self.should_succeed:
            raise GatewayUnavailable(self.failure_reason)

    def create_intent(
        self,
        amount: Decimal,
        currency: str,
        description: str,
        metadata: dict[str, str],
    ) -> IntentHandle:
        self.calls.append(
            {
                "method": "create_intent",
                "amount": amount,
                "currency": currency,
                "description": description,
                "metadata": metadata,
            }
        )
        self._check_reachable()

        intent_id = f"pi_fake{uuid4().hex[:16]}"
        self.intents[intent_id] = GatewayIntent(
            id=intent_id,
            status="requires_payment_method",
            metadata=dict(metadata),
        )
        return IntentHandle(intent_id=intent_id, client_secret=f"{intent_id}_secret_{uuid4().hex[:12]}")

    def fetch_intent(self, intent_id: str) -> GatewayIntent | None:
        self.calls.append({"method": "fetch_intent", "intent_id": intent_id})
        self._check_reachable()
        return self.intents.get(intent_id)

    def cancel_intent(self, intent_id: str) -> None:
        self.calls.append({"method": "cancel_intent", "intent_id": intent_id})
        self._check_reachable()
        if intent_id in self.intents:
            self.intents[intent_id] = replace(self.intents[intent_id], status="canceled")

    def set_intent_status(
        self,
        intent_id: str,
        status: str,
        latest_charge: str | None = None,
        failure_message: str | None = None,
    ) -> GatewayIntent:
        """Move an intent along, as the customer completing payment would."""
        intent = replace(
            self.intents.get(intent_id) or GatewayIntent(id=intent_id, status=status),
            status=status,
            latest_charge=latest_charge,
            failure_message=failure_message,
        )
        self.intents[intent_id] = intent
        return intent

    def sign(self, payload: bytes) -> str:
        return hmac.new(self.webhook_secret.encode(), payload, hashlib.sha256).hexdigest()

    def verify_signature(self, payload: bytes, signature: str) -> bool:
        return hmac.compare_digest(self.sign(payload), signature or "")
