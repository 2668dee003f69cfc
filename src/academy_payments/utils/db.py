"""Database engine, sessions and schema management."""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    """Create an engine for `database_url`.

    SQLite connections are shared across threads (FastAPI runs sync handlers
    in a thread pool) and wait on locked databases instead of failing
    immediately. In-memory SQLite keeps a single connection so every session
    sees the same database.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)

    connect_args = {"check_same_thread": False, "timeout": 15}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(database_url, connect_args=connect_args, poolclass=StaticPool)
    return create_engine(database_url, connect_args=connect_args)


class Database:
    def __init__(self, database_url: str) -> None:
        self.engine = build_engine(database_url)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Read-only or caller-committed session."""
        with self._session_factory() as session:
            yield session

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Session wrapped in a transaction: commits on exit, rolls back on error."""
        with self._session_factory.begin() as session:
            yield session

    def setup(self) -> None:
        """Create all tables."""
        # Table definitions register themselves with Base on import
        from academy_payments.payment import ledger, store  # noqa: F401

        Base.metadata.create_all(self.engine)

    def drop(self) -> None:
        """Drop all tables."""
        from academy_payments.payment import ledger, store  # noqa: F401

        Base.metadata.drop_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()
