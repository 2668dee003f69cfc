"""Applying gateway-reported status changes to local payments.

Both webhook deliveries and the synchronous gateway check end up here. One
call is one database transaction:

    1. insert the event id into the ledger (if there is one)
    2. re-read the payment, ask the state machine for the next state,
       compare-and-swap it (re-read and retry on version conflicts)
    3. tell the enrollment service about terminal outcomes
    4. commit

Anything raised before the commit rolls the whole unit back, including the
ledger row, so the gateway's redelivery gets another chance.
"""

from dataclasses import dataclass

import structlog
from sqlalchemy.orm import Session
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt

from academy_payments.enrollment import EnrollmentLinkage
from academy_payments.errors import ConcurrentUpdate, NotFound
from academy_payments.payment.ledger import IdempotencyLedger
from academy_payments.payment.payment import Payment, PaymentStatus
from academy_payments.payment.store import PaymentStore
from academy_payments.utils.db import Database

logger = structlog.get_logger(__name__)

MAX_TRANSITION_ATTEMPTS = 3


@dataclass(frozen=True)
class Reconciliation:
    payment: Payment
    applied: bool


class PaymentReconciler:
    def __init__(
        self,
        database: Database,
        store: PaymentStore,
        ledger: IdempotencyLedger,
        linkage: EnrollmentLinkage,
    ) -> None:
        self._db = database
        self._store = store
        self._ledger = ledger
        self._linkage = linkage

    def apply(
        self,
        payment_id: str,
        target: PaymentStatus,
        charge_id: str | None = None,
        failure_reason: str | None = None,
        event_id: str | None = None,
        event_type: str = "",
    ) -> Reconciliation:
        """Move a payment towards `target`, recording `event_id` in the same transaction.

        Raises `EventAlreadyRecorded` if another delivery of `event_id` got
        there first, and `ConcurrentUpdate` if the payment kept changing for
        MAX_TRANSITION_ATTEMPTS attempts.
        """
        with self._db.transaction() as session:
            if event_id:
                self._ledger.record(session, event_id, event_type)

            for attempt in Retrying(
                stop=stop_after_attempt(MAX_TRANSITION_ATTEMPTS),
                retry=retry_if_exception_type(ConcurrentUpdate),
                reraise=True,
            ):
                with attempt:
                    current, updated = self._try_transition(session, payment_id, target, charge_id, failure_reason)

            if updated is None:
                logger.info(
                    "Transition rejected by state machine",
                    payment_id=payment_id,
                    current_status=current.status.value,
                    target_status=target.value,
                )
                return Reconciliation(payment=current, applied=False)

            self._notify_enrollment(updated)
            logger.info(
                "Payment transitioned",
                payment_id=payment_id,
                from_status=current.status.value,
                to_status=updated.status.value,
                version=updated.version,
            )
            return Reconciliation(payment=updated, applied=True)

    def _try_transition(
        self,
        session: Session,
        payment_id: str,
        target: PaymentStatus,
        charge_id: str | None,
        failure_reason: str | None,
    ) -> tuple[Payment, Payment | None]:
        current = self._store.find(payment_id, session=session)
        if current is None:
            raise NotFound("id", payment_id)

        updated = current.transition_to(target, charge_id=charge_id, failure_reason=failure_reason)
        if updated is None:
            return current, None

        if not self._store.compare_and_swap(session, updated, expected_version=current.version):
            logger.debug("Version conflict, re-reading payment", payment_id=payment_id, version=current.version)
            raise ConcurrentUpdate(f"Payment {payment_id} changed while transitioning to {target.value}")
        return current, updated

    def _notify_enrollment(self, payment: Payment) -> None:
        if payment.linked_resource_id is None:
            return
        if payment.status == PaymentStatus.SUCCEEDED:
            self._linkage.confirm(payment.linked_resource_id, payment.owner_id)
        elif payment.status == PaymentStatus.FAILED:
            self._linkage.cancel(payment.linked_resource_id, payment.owner_id)
