"""Payment persistence with optimistic versioning.

Rows are only ever mutated through `compare_and_swap`, an UPDATE guarded by
the version the caller read. A zero row count means someone else moved the
payment first and the caller has to re-read and decide again.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, Integer, Numeric, String, Text, select, update
from sqlalchemy.orm import Session

from academy_payments.errors import NotFound
from academy_payments.payment.payment import (
    ChargeCaptured,
    ChargeDeclined,
    Payment,
    PaymentMethod,
    PaymentOutcome,
    PaymentStatus,
)
from academy_payments.utils.db import Base, Database


class PaymentRecord(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    method = Column(String(32), nullable=False)
    status = Column(String(32), nullable=False, index=True)
    external_intent_id = Column(String(255), nullable=False, unique=True)
    external_charge_id = Column(String(255))
    failure_reason = Column(Text)
    owner_id = Column(String(255), nullable=False, index=True)
    linked_resource_id = Column(String(255))
    description = Column(Text, nullable=False, default="")
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def _to_domain(record: PaymentRecord) -> Payment:
    status = PaymentStatus(record.status)
    outcome: PaymentOutcome | None = None
    if status == PaymentStatus.SUCCEEDED:
        outcome = ChargeCaptured(charge_id=record.external_charge_id)
    elif status == PaymentStatus.FAILED:
        outcome = ChargeDeclined(reason=record.failure_reason or "")

    return Payment(
        id=record.id,
        amount=record.amount,
        currency=record.currency,
        method=PaymentMethod(record.method),
        status=status,
        external_intent_id=record.external_intent_id,
        owner_id=record.owner_id,
        linked_resource_id=record.linked_resource_id,
        description=record.description or "",
        version=record.version,
        created_at=_aware(record.created_at),
        updated_at=_aware(record.updated_at),
        outcome=outcome,
    )


class PaymentStore:
    def __init__(self, database: Database) -> None:
        self._db = database

    @contextmanager
    def _session(self, session: Session | None) -> Iterator[Session]:
        if session is not None:
            yield session
        else:
            with self._db.session() as own:
                yield own

    def add(self, payment: Payment) -> Payment:
        """Insert a new payment row."""
        with self._db.transaction() as session:
            session.add(
                PaymentRecord(
                    id=payment.id,
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
            )
        return payment

    def find(self, payment_id: str, session: Session | None = None) -> Payment | None:
        with self._session(session) as s:
            record = s.scalars(
                select(PaymentRecord).where(PaymentRecord.id == payment_id).execution_options(populate_existing=True)
            ).first()
            return _to_domain(record) if record else None

    def get(self, payment_id: str) -> Payment:
        payment = self.find(payment_id)
        if payment is None:
            raise NotFound("id", payment_id)
        return payment

    def find_by_intent(self, intent_id: str, session: Session | None = None) -> Payment | None:
        with self._session(session) as s:
            record = s.scalars(
                select(PaymentRecord)
                .where(PaymentRecord.external_intent_id == intent_id)
                .execution_options(populate_existing=True)
            ).first()
            return _to_domain(record) if record else None

    def recent(self, limit: int, owner_id: str | None = None) -> list[Payment]:
        """Newest payments first, optionally only those owned by `owner_id`."""
        query = select(PaymentRecord).order_by(PaymentRecord.created_at.desc()).limit(limit)
        if owner_id is not None:
            query = query.where(PaymentRecord.owner_id == owner_id)
        with self._db.session() as session:
            return [_to_domain(record) for record in session.scalars(query)]

    def compare_and_swap(self, session: Session, payment: Payment, expected_version: int) -> bool:
        """Write `payment`'s mutable state if the stored version is still `expected_version`."""
        result = session.execute(
            update(PaymentRecord)
            .where(PaymentRecord.id == payment.id, PaymentRecord.version == expected_version)
            .values(
                status=payment.status.value,
                external_charge_id=payment.external_charge_id,
                failure_reason=payment.failure_reason,
                version=payment.version,
                updated_at=payment.updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
