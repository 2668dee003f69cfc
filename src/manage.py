"""Academy Payments database management CLI.

Usage:
    python src/manage.py setup-db               # Create all tables
    python src/manage.py drop-db                # Drop all tables
    python src/manage.py prune-events --days 30 # Forget old webhook event ids
"""

import argparse
import sys
from datetime import UTC, datetime, timedelta

from academy_payments.config import Settings
from academy_payments.payment.ledger import IdempotencyLedger
from academy_payments.utils.db import Database


def setup_database(settings: Settings) -> None:
    print(f"Creating schema in {settings.database_url}...")
    Database(settings.database_url).setup()
    print("Done.")


def drop_database(settings: Settings) -> None:
    print(f"Dropping schema in {settings.database_url}...")
    Database(settings.database_url).drop()
    print("Done.")


def prune_events(settings: Settings, days: int | None = None) -> int:
    """Delete ledger entries older than the retention window."""
    retention = days if days is not None else settings.ledger_retention_days
    cutoff = datetime.now(UTC) - timedelta(days=retention)
    removed = IdempotencyLedger(Database(settings.database_url)).prune(cutoff)
    print(f"Pruned {removed} processed event(s) older than {retention} day(s).")
    return removed


def main():
    parser = argparse.ArgumentParser(description="Academy Payments database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    prune_parser = subparsers.add_parser("prune-events", help="Prune the webhook idempotency ledger")
    prune_parser.add_argument(
        "--days",
        type=int,
        help="Retention window in days (default: LEDGER_RETENTION_DAYS)",
    )

    args = parser.parse_args()
    settings = Settings.from_env()

    if args.command == "setup-db":
        setup_database(settings)
    elif args.command == "drop-db":
        drop_database(settings)
    elif args.command == "prune-events":
        prune_events(settings, args.days)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
