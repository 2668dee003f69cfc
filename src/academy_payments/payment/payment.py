"""Payment model and state machine.

State Machine:
    PENDING → PROCESSING → SUCCEEDED / FAILED
    PENDING → SUCCEEDED / FAILED (gateways may skip PROCESSING)

SUCCEEDED and FAILED are terminal. A transition that is not an allowed edge
is not an error: gateways redeliver and reorder events, so a late
`processing` event for a succeeded payment is simply discarded by the
caller. Every applied transition bumps `version`, which the store uses for
compare-and-swap writes.
"""

from dataclasses import dataclass, replace
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from uuid import uuid4

DEFAULT_FAILURE_REASON = "Payment failed"


class PaymentStatus(Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class PaymentMethod(Enum):
    STRIPE = "STRIPE"


_VALID_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.PROCESSING, PaymentStatus.SUCCEEDED, PaymentStatus.FAILED},
    PaymentStatus.PROCESSING: {PaymentStatus.SUCCEEDED, PaymentStatus.FAILED},
    PaymentStatus.SUCCEEDED: set(),  # Terminal
    PaymentStatus.FAILED: set(),  # Terminal
}

TERMINAL_STATUSES = frozenset({PaymentStatus.SUCCEEDED, PaymentStatus.FAILED})


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in _VALID_TRANSITIONS[current]


# ---------------------------------------------------------------------------
# Terminal outcomes
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ChargeCaptured:
    """The gateway captured the money."""

    charge_id: str | None


@dataclass(frozen=True)
class ChargeDeclined:
    """The gateway gave up on the payment."""

    reason: str


PaymentOutcome = ChargeCaptured | ChargeDeclined


# ---------------------------------------------------------------------------
# Payment
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Payment:
    id: str
    amount: Decimal
    currency: str
    method: PaymentMethod
    status: PaymentStatus
    external_intent_id: str
    owner_id: str
    linked_resource_id: str | None
    description: str
    version: int
    created_at: datetime
    updated_at: datetime
    outcome: PaymentOutcome | None = None

    @classmethod
    def create(
        cls,
        owner_id: str,
        amount: Decimal,
        currency: str,
        external_intent_id: str,
        linked_resource_id: str | None = None,
        description: str = "",
        method: PaymentMethod = PaymentMethod.STRIPE,
    ) -> "Payment":
        """A fresh PENDING payment for an intent the gateway just created."""
        now = datetime.now(UTC)
        return cls(
            id=str(uuid4()),
            amount=amount,
            currency=currency,
            method=method,
            status=PaymentStatus.PENDING,
            external_intent_id=external_intent_id,
            owner_id=owner_id,
            linked_resource_id=linked_resource_id,
            description=description,
            version=0,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def external_charge_id(self) -> str | None:
        if isinstance(self.outcome, ChargeCaptured):
            return self.outcome.charge_id
        return None

    @property
    def failure_reason(self) -> str | None:
        if isinstance(self.outcome, ChargeDeclined):
            return self.outcome.reason
        return None

    def is_owned_by(self, actor_id: str) -> bool:
        return self.owner_id == actor_id

    def transition_to(
        self,
        target: PaymentStatus,
        charge_id: str | None = None,
        failure_reason: str | None = None,
    ) -> "Payment | None":
        """Return the payment after moving to `target`, or None if the edge is not allowed.

        `charge_id` is kept only when landing in SUCCEEDED, `failure_reason`
        only when landing in FAILED.
        """
        if not can_transition(self.status, target):
            return None

        outcome: PaymentOutcome | None = None
        if target == PaymentStatus.SUCCEEDED:
            outcome = ChargeCaptured(charge_id=charge_id)
        elif target == PaymentStatus.FAILED:
            outcome = ChargeDeclined(reason=failure_reason or DEFAULT_FAILURE_REASON)

        return replace(
            self,
            status=target,
            outcome=outcome,
            version=self.version + 1,
            updated_at=datetime.now(UTC),
        )
