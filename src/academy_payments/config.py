"""Runtime configuration.

Values come from the process environment; a `.env` file in the working
directory is loaded first so local development does not need exported
variables.
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

DEFAULT_CURRENCIES = ("EUR", "USD", "GBP")


def _split_codes(raw: str | None) -> frozenset[str]:
    if not raw:
        return frozenset(DEFAULT_CURRENCIES)
    return frozenset(code.strip().upper() for code in raw.split(",") if code.strip())


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    database_url: str = "sqlite:///./payments.db"
    payment_gateway: str = "fake"
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    gateway_timeout_seconds: float = 10.0
    supported_currencies: frozenset[str] = field(default_factory=lambda: frozenset(DEFAULT_CURRENCIES))
    webhook_signature_header: str = "Stripe-Signature"
    webhook_event_id_header: str = "Stripe-Event-Id"
    ledger_retention_days: int = 30

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables (and `.env`, if present)."""
        load_dotenv()
        return cls(
            environment=os.getenv("ENVIRONMENT", "development").lower(),
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            payment_gateway=os.getenv("PAYMENT_GATEWAY", cls.payment_gateway).lower(),
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY", ""),
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET", ""),
            gateway_timeout_seconds=float(os.getenv("GATEWAY_TIMEOUT_SECONDS", cls.gateway_timeout_seconds)),
            supported_currencies=_split_codes(os.getenv("SUPPORTED_CURRENCIES")),
            webhook_signature_header=os.getenv("WEBHOOK_SIGNATURE_HEADER", cls.webhook_signature_header),
            webhook_event_id_header=os.getenv("WEBHOOK_EVENT_ID_HEADER", cls.webhook_event_id_header),
            ledger_retention_days=int(os.getenv("LEDGER_RETENTION_DAYS", cls.ledger_retention_days)),
        )
