"""Shared BDD fixtures and step definitions for webhook reconciliation."""

import pytest
from academy_payments.errors import InvalidSignature
from pytest_bdd import given, parsers, then


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def delivery():
    """Container for the last webhook acknowledgement or error."""
    return {"ack": None, "exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('a pending payment of "{amount}" "{currency}" for "{owner_id}" linked to "{resource_id}"'),
    target_fixture="payment",
)
def pending_payment(services, amount, currency, owner_id, resource_id):
    return services.payments.create_payment(owner_id, amount, currency, resource_id, "Enrollment fee").payment


@given("the gateway no longer knows the payment's intent")
def gateway_forgets_intent(gateway, payment):
    gateway.intents.pop(payment.external_intent_id)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the webhook is acknowledged as "{outcome}"'))
def acknowledged_as(delivery, outcome):
    assert delivery["exc"] is None
    assert delivery["ack"].outcome.value == outcome


@then("the webhook is rejected as not authentic")
def rejected_as_forged(delivery):
    assert isinstance(delivery["exc"], InvalidSignature)


@then(parsers.cfparse('the payment status is "{status}"'))
def payment_status_is(services, payment, status):
    assert services.store.get(payment.id).status.value == status


@then(parsers.cfparse("the payment version is {version:d}"))
def payment_version_is(services, payment, version):
    assert services.store.get(payment.id).version == version


@then(parsers.cfparse('the payment failure reason is "{reason}"'))
def payment_failure_reason_is(services, payment, reason):
    assert services.store.get(payment.id).failure_reason == reason


@then(parsers.cfparse("the enrollment was confirmed {count:d} time"))
def enrollment_confirmed(linkage, count):
    assert len(linkage.confirmed) == count


@then(parsers.cfparse("the enrollment was cancelled {count:d} time"))
def enrollment_cancelled(linkage, count):
    assert len(linkage.cancelled) == count


@then(parsers.cfparse('event "{event_id}" is not in the ledger'))
def event_not_recorded(services, event_id):
    assert not services.ledger.is_processed(event_id)
