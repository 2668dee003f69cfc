"""Idempotency ledger of gateway events that have already been applied.

The event id is the primary key: when two deliveries of the same event race,
both may pass the `is_processed` pre-check but only one insert can commit.
The loser sees the constraint violation as `EventAlreadyRecorded` and takes
the duplicate path.
"""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, String, delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from academy_payments.utils.db import Base, Database


class EventAlreadyRecorded(Exception):
    def __init__(self, event_id: str) -> None:
        self.event_id = event_id
        super().__init__(f"Event {event_id} is already in the ledger")


class ProcessedEvent(Base):
    __tablename__ = "processed_events"

    event_id = Column(String(255), primary_key=True)
    event_type = Column(String(255), nullable=False, default="")
    applied_at = Column(DateTime(timezone=True), nullable=False, index=True)


class IdempotencyLedger:
    def __init__(self, database: Database) -> None:
        self._db = database

    def is_processed(self, event_id: str) -> bool:
        with self._db.session() as session:
            return session.scalar(select(ProcessedEvent.event_id).where(ProcessedEvent.event_id == event_id)) is not None

    def record(self, session: Session, event_id: str, event_type: str = "") -> None:
        """Insert `event_id` inside the caller's transaction.

        Raises `EventAlreadyRecorded` on a unique-constraint violation. The
        session is unusable afterwards; the caller's transaction must be
        rolled back.
        """
        session.add(ProcessedEvent(event_id=event_id, event_type=event_type, applied_at=datetime.now(UTC)))
        try:
            session.flush()
        except IntegrityError as exc:
            raise EventAlreadyRecorded(event_id) from exc

    def prune(self, older_than: datetime) -> int:
        """Delete entries applied before `older_than`. Returns the number removed."""
        with self._db.transaction() as session:
            result = session.execute(delete(ProcessedEvent).where(ProcessedEvent.applied_at < older_than))
            return result.rowcount
