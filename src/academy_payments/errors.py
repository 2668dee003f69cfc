"""Error taxonomy for the payments subsystem.

Soft failures inside webhook processing (unparseable payloads, events for
payments we never created) are not represented here: they never raise and
are reported through the webhook acknowledgement instead.
"""


class PaymentError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(PaymentError):
    """Bad input for payment creation. Carries per-field messages."""

    def __init__(self, messages: dict[str, list[str]]) -> None:
        self.messages = messages
        super().__init__(messages)


class GatewayUnavailable(PaymentError):
    """The payment gateway errored or could not be reached. Transient."""


class GatewayTimeout(GatewayUnavailable):
    """The payment gateway did not answer within the configured timeout."""


class InvalidSignature(PaymentError):
    """A webhook payload failed signature verification. Permanent."""


class NotFound(PaymentError):
    def __init__(self, field: str, value: str) -> None:
        self.field = field
        self.value = value
        super().__init__(f"Payment with {field}={value!r} not found")


class Forbidden(PaymentError):
    """The requesting actor may not access this payment."""


class ConcurrentUpdate(PaymentError):
    """A payment kept changing underneath a transition. Transient."""
