"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing
- StripeGateway for production
"""

from academy_payments.config import Settings
from academy_payments.gateway.fake_adapter import FakeGateway
from academy_payments.gateway.port import PaymentGateway
from academy_payments.gateway.stripe_adapter import StripeGateway

_current_gateway: PaymentGateway | None = None


def build_gateway(settings: Settings) -> PaymentGateway:
    """Instantiate the adapter selected by `PAYMENT_GATEWAY`."""
    if settings.payment_gateway == "stripe":
        return StripeGateway(
            api_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            timeout=settings.gateway_timeout_seconds,
        )
    if settings.payment_gateway == "fake":
        return FakeGateway(webhook_secret=settings.stripe_webhook_secret or "whsec_fake")
    raise ValueError(f"Unknown payment gateway: {settings.payment_gateway}")


def get_gateway(settings: Settings | None = None) -> PaymentGateway:
    """Return the process-wide payment gateway, building it from settings on first use.

    Later calls return the same adapter whatever `settings` they pass; call
    `reset_gateway()` or `set_gateway()` to switch adapters.
    """
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = build_gateway(settings or Settings.from_env())
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
