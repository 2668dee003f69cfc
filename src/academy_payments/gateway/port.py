"""Payment gateway port (abstract interface).

Defines the contract that all payment gateway adapters must implement.
This enables swapping between FakeGateway (dev/test) and StripeGateway
(production) without changing any service or webhook code.

Adapters translate their own failures into `GatewayUnavailable` /
`GatewayTimeout` so callers never see SDK exceptions.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal

# Currencies whose smallest unit is the whole unit (no cents)
ZERO_DECIMAL_CURRENCIES = frozenset(
    {"BIF", "CLP", "DJF", "GNF", "JPY", "KMF", "KRW", "MGA", "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF"}
)

# Canonical webhook event types understood by the webhook processor
INTENT_SUCCEEDED = "intent.succeeded"
INTENT_FAILED = "intent.failed"
INTENT_PROCESSING = "intent.processing"


def to_minor_units(amount: Decimal, currency: str) -> int:
    """Convert a decimal amount into the gateway's integer unit (cents for EUR)."""
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return int(amount)
    return int(amount * 100)


@dataclass(frozen=True)
class IntentHandle:
    """What the gateway hands back when an intent is created."""

    intent_id: str
    client_secret: str


@dataclass(frozen=True)
class GatewayIntent:
    """The gateway's view of a single payment attempt."""

    id: str
    status: str
    latest_charge: str | None = None
    failure_message: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    #: Prefix of the gateway's intent identifiers, used to scan raw payloads
    intent_id_prefix: str = "pi_"

    #: Gateway-native event type → canonical event type
    event_aliases: dict[str, str] = {}

    @abstractmethod
    def create_intent(
        self,
        amount: Decimal,
        currency: str,
        description: str,
        metadata: dict[str, str],
    ) -> IntentHandle:
        """Create a payment intent the caller completes out-of-band."""
        ...

    @abstractmethod
    def fetch_intent(self, intent_id: str) -> GatewayIntent | None:
        """Fetch an intent by id. Returns None if the gateway does not know it."""
        ...

    @abstractmethod
    def cancel_intent(self, intent_id: str) -> None:
        """Cancel an intent that will never be completed."""
        ...

    @abstractmethod
    def verify_signature(self, payload: bytes, signature: str) -> bool:
        """Verify that a webhook payload is authentically from the gateway."""
        ...

    def translate_event_type(self, event_type: str) -> str:
        return self.event_aliases.get(event_type, event_type)
