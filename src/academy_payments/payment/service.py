"""Payment creation and ownership-scoped queries."""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

import structlog

from academy_payments.actors import Actor, ActorDirectory, Role
from academy_payments.errors import Forbidden, ValidationError
from academy_payments.gateway.port import ZERO_DECIMAL_CURRENCIES, PaymentGateway
from academy_payments.payment.payment import Payment, PaymentStatus
from academy_payments.payment.reconciliation import PaymentReconciler
from academy_payments.payment.store import PaymentStore

logger = structlog.get_logger(__name__)

MAX_RECENT_PAYMENTS = 50

# Gateway intent statuses that settle a payment during a synchronous check
_GATEWAY_STATUS = {
    "processing": PaymentStatus.PROCESSING,
    "succeeded": PaymentStatus.SUCCEEDED,
    "canceled": PaymentStatus.FAILED,
}


@dataclass(frozen=True)
class CreatedPayment:
    """A new payment plus the one-time client secret for completing it."""

    payment: Payment
    client_secret: str


class PaymentService:
    def __init__(
        self,
        gateway: PaymentGateway,
        store: PaymentStore,
        reconciler: PaymentReconciler,
        directory: ActorDirectory,
        supported_currencies: frozenset[str],
    ) -> None:
        self._gateway = gateway
        self._store = store
        self._reconciler = reconciler
        self._directory = directory
        self._supported_currencies = supported_currencies

    # -------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------
    def create_payment(
        self,
        owner_id: str,
        amount: Decimal | str | int,
        currency: str,
        linked_resource_id: str | None = None,
        description: str = "",
        requested_by: Actor | None = None,
    ) -> CreatedPayment:
        """Create a gateway intent and the PENDING payment tracking it.

        Either both exist afterwards or neither does: gateway errors leave no
        local row, and a failed insert cancels the intent just created.
        """
        if requested_by is not None and requested_by.role == Role.STUDENT and requested_by.id != owner_id:
            raise Forbidden("Students can only create payments for themselves")

        amount, currency = self._validate(owner_id, amount, currency)

        handle = self._gateway.create_intent(
            amount,
            currency,
            description,
            metadata={"owner_id": owner_id, "linked_resource_id": linked_resource_id or ""},
        )

        payment = Payment.create(
            owner_id=owner_id,
            amount=amount,
            currency=currency,
            external_intent_id=handle.intent_id,
            linked_resource_id=linked_resource_id,
            description=description,
        )
        try:
            self._store.add(payment)
        except Exception:
            logger.exception("Persisting payment failed, cancelling gateway intent", intent_id=handle.intent_id)
            self._cancel_orphaned_intent(handle.intent_id)
            raise

        logger.info(
            "Payment created",
            payment_id=payment.id,
            intent_id=payment.external_intent_id,
            owner_id=owner_id,
            amount=str(amount),
            currency=currency,
        )
        return CreatedPayment(payment=payment, client_secret=handle.client_secret)

    def _validate(self, owner_id: str, amount: Decimal | str | int, currency: str) -> tuple[Decimal, str]:
        errors: dict[str, list[str]] = {}

        code = (currency or "").strip().upper()
        if len(code) != 3 or not code.isalpha():
            errors["currency"] = ["Currency must be a 3-letter ISO code"]
        elif code not in self._supported_currencies:
            errors["currency"] = [f"Currency {code} is not supported"]

        try:
            value = Decimal(str(amount))
        except InvalidOperation:
            errors["amount"] = ["Amount must be a decimal number"]
        else:
            max_places = 0 if code in ZERO_DECIMAL_CURRENCIES else 2
            if not value.is_finite() or value <= 0:
                errors["amount"] = ["Amount must be greater than zero"]
            elif -value.as_tuple().exponent > max_places:
                errors["amount"] = [f"Amount allows at most {max_places} decimal places"]

        if not owner_id or not self._directory.exists(owner_id):
            errors["owner_id"] = [f"Unknown actor {owner_id!r}"]

        if errors:
            raise ValidationError(errors)
        return value, code

    def _cancel_orphaned_intent(self, intent_id: str) -> None:
        try:
            self._gateway.cancel_intent(intent_id)
        except Exception:
            # The intent stays open at the gateway; webhooks for it will be
            # acknowledged as unknown-payment events.
            logger.exception("Could not cancel orphaned intent", intent_id=intent_id)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get_payment(self, payment_id: str, requesting_actor: Actor) -> Payment:
        payment = self._store.get(payment_id)
        if not (requesting_actor.is_staff or payment.is_owned_by(requesting_actor.id)):
            raise Forbidden(f"Actor {requesting_actor.id} may not access payment {payment_id}")
        return payment

    def is_successful(self, payment_id: str) -> bool:
        return self._store.get(payment_id).status == PaymentStatus.SUCCEEDED

    def recent_payments(self, requesting_actor: Actor, limit: int = 10) -> list[Payment]:
        """Newest payments first. Staff see everyone's, students only their own."""
        if not 1 <= limit <= MAX_RECENT_PAYMENTS:
            raise ValidationError({"limit": [f"Limit must be between 1 and {MAX_RECENT_PAYMENTS}"]})
        owner_id = None if requesting_actor.is_staff else requesting_actor.id
        return self._store.recent(limit, owner_id=owner_id)

    # -------------------------------------------------------------------
    # Synchronous gateway check
    # -------------------------------------------------------------------
    def refresh_from_gateway(self, payment_id: str, requesting_actor: Actor) -> Payment:
        """Ask the gateway for the intent's status and apply it as a webhook would."""
        payment = self.get_payment(payment_id, requesting_actor)
        if payment.is_terminal:
            return payment

        intent = self._gateway.fetch_intent(payment.external_intent_id)
        if intent is None:
            logger.warning("Gateway does not know intent", payment_id=payment_id, intent_id=payment.external_intent_id)
            return payment

        target = _GATEWAY_STATUS.get(intent.status)
        if target is None:
            return payment

        result = self._reconciler.apply(
            payment.id,
            target,
            charge_id=intent.latest_charge,
            failure_reason=intent.failure_message or ("Payment canceled" if intent.status == "canceled" else None),
        )
        return result.payment
