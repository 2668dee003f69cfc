"""Tests for WebhookProcessor: authenticity, deduplication, extraction and transitions."""

import json

import pytest
from academy_payments.errors import GatewayTimeout, InvalidSignature
from academy_payments.gateway.port import INTENT_FAILED, INTENT_PROCESSING, INTENT_SUCCEEDED
from academy_payments.payment.payment import PaymentStatus
from academy_payments.payment.webhook import WebhookOutcome


class TestAuthenticity:
    def test_bad_signature_is_rejected(self, services, create_payment, event_payload, intent_object):
        payment = create_payment()
        payload = event_payload(INTENT_SUCCEEDED, intent_object(payment.external_intent_id), event_id="evt_1")

        with pytest.raises(InvalidSignature):
            services.webhooks.handle(payload, "forged", None)

        assert services.store.get(payment.id).status == PaymentStatus.PENDING
        assert not services.ledger.is_processed("evt_1")

    def test_signature_over_different_body_is_rejected(self, services, gateway, event_payload):
        signed = event_payload(INTENT_SUCCEEDED, {"id": "pi_a", "status": "succeeded"})
        delivered = event_payload(INTENT_SUCCEEDED, {"id": "pi_b", "status": "succeeded"})

        with pytest.raises(InvalidSignature):
            services.webhooks.handle(delivered, gateway.sign(signed), None)


class TestHappyPath:
    def test_success_event_applies_and_confirms_enrollment(
        self, services, create_payment, event_payload, intent_object, deliver, linkage
    ):
        payment = create_payment()
        payload = event_payload(INTENT_SUCCEEDED, intent_object(payment.external_intent_id, latest_charge="ch_42"))

        ack = deliver(payload, event_id="evt_1")

        assert ack.outcome == WebhookOutcome.APPLIED
        assert ack.payment_id == payment.id
        stored = services.store.get(payment.id)
        assert stored.status == PaymentStatus.SUCCEEDED
        assert stored.external_charge_id == "ch_42"
        assert stored.version == 1
        assert linkage.confirmed == [("class-1", "student-1")]
        assert services.ledger.is_processed("evt_1")

    def test_failure_event_records_reason_and_cancels_enrollment(
        self, services, create_payment, event_payload, intent_object, deliver, linkage
    ):
        payment = create_payment()
        obj = intent_object(
            payment.external_intent_id,
            status="requires_payment_method",
            latest_charge=None,
            failure_message="Your card was declined.",
        )

        ack = deliver(event_payload(INTENT_FAILED, obj))

        assert ack.outcome == WebhookOutcome.APPLIED
        stored = services.store.get(payment.id)
        assert stored.status == PaymentStatus.FAILED
        assert stored.failure_reason == "Your card was declined."
        assert stored.external_charge_id is None
        assert linkage.cancelled == [("class-1", "student-1")]
        assert linkage.confirmed == []

    def test_failure_without_message_uses_default_reason(
        self, services, create_payment, event_payload, intent_object, deliver
    ):
        payment = create_payment()
        deliver(event_payload(INTENT_FAILED, intent_object(payment.external_intent_id, status="canceled")))

        assert services.store.get(payment.id).failure_reason == "Payment failed"

    def test_processing_then_success(self, services, create_payment, event_payload, intent_object, deliver, linkage):
        payment = create_payment()
        intent_id = payment.external_intent_id

        deliver(event_payload(INTENT_PROCESSING, intent_object(intent_id, status="processing", latest_charge=None)))
        assert services.store.get(payment.id).status == PaymentStatus.PROCESSING
        assert linkage.confirmed == []

        deliver(event_payload(INTENT_SUCCEEDED, intent_object(intent_id)))
        stored = services.store.get(payment.id)
        assert stored.status == PaymentStatus.SUCCEEDED
        assert stored.version == 2
        assert len(linkage.confirmed) == 1

    def test_payment_without_linked_resource_skips_enrollment(
        self, services, create_payment, event_payload, intent_object, deliver, linkage
    ):
        payment = create_payment(linked_resource_id=None)

        ack = deliver(event_payload(INTENT_SUCCEEDED, intent_object(payment.external_intent_id)))

        assert ack.outcome == WebhookOutcome.APPLIED
        assert linkage.confirmed == []


class TestIdempotency:
    def test_redelivery_is_a_duplicate(self, services, create_payment, event_payload, intent_object, deliver, linkage):
        payment = create_payment()
        payload = event_payload(INTENT_SUCCEEDED, intent_object(payment.external_intent_id), event_id="evt_1")

        first = deliver(payload)
        second = deliver(payload)

        assert first.outcome == WebhookOutcome.APPLIED
        assert second.outcome == WebhookOutcome.DUPLICATE
        assert services.store.get(payment.id).version == 1
        assert len(linkage.confirmed) == 1

    def test_header_event_id_takes_precedence(self, services, create_payment, event_payload, intent_object, deliver):
        payment = create_payment()
        payload = event_payload(INTENT_SUCCEEDED, intent_object(payment.external_intent_id), event_id="evt_body")

        ack = deliver(payload, event_id="evt_header")

        assert ack.event_id == "evt_header"
        assert services.ledger.is_processed("evt_header")
        assert not services.ledger.is_processed("evt_body")

    def test_falls_back_to_envelope_id(self, services, create_payment, event_payload, intent_object, deliver):
        payment = create_payment()
        payload = event_payload(INTENT_SUCCEEDED, intent_object(payment.external_intent_id), event_id="evt_body")

        assert deliver(payload).event_id == "evt_body"
        assert services.ledger.is_processed("evt_body")

    def test_event_without_any_id_still_applies_once(self, services, create_payment, intent_object, deliver, linkage):
        payment = create_payment()
        payload = json.dumps({"type": INTENT_SUCCEEDED, "data": {"object": intent_object(payment.external_intent_id)}})

        first = deliver(payload.encode())
        second = deliver(payload.encode())

        assert first.outcome == WebhookOutcome.APPLIED
        assert first.event_id is None
        assert second.outcome == WebhookOutcome.REJECTED
        assert len(linkage.confirmed) == 1

    def test_rejected_transition_is_still_recorded(
        self, services, create_payment, event_payload, intent_object, deliver
    ):
        payment = create_payment()
        intent_id = payment.external_intent_id
        deliver(event_payload(INTENT_SUCCEEDED, intent_object(intent_id)))

        ack = deliver(event_payload(INTENT_PROCESSING, intent_object(intent_id, status="processing"), "evt_late"))

        assert ack.outcome == WebhookOutcome.REJECTED
        assert services.ledger.is_processed("evt_late")


class TestOutOfOrderDelivery:
    def test_late_processing_after_success(
        self, services, create_payment, event_payload, intent_object, deliver, linkage
    ):
        payment = create_payment()
        intent_id = payment.external_intent_id

        deliver(event_payload(INTENT_SUCCEEDED, intent_object(intent_id)))
        ack = deliver(event_payload(INTENT_PROCESSING, intent_object(intent_id, status="processing")))

        assert ack.outcome == WebhookOutcome.REJECTED
        stored = services.store.get(payment.id)
        assert stored.status == PaymentStatus.SUCCEEDED
        assert stored.version == 1
        assert len(linkage.confirmed) == 1

    def test_failure_after_success_is_discarded(
        self, services, create_payment, event_payload, intent_object, deliver, linkage
    ):
        payment = create_payment()
        intent_id = payment.external_intent_id

        deliver(event_payload(INTENT_SUCCEEDED, intent_object(intent_id)))
        ack = deliver(event_payload(INTENT_FAILED, intent_object(intent_id, status="canceled")))

        assert ack.outcome == WebhookOutcome.REJECTED
        assert services.store.get(payment.id).status == PaymentStatus.SUCCEEDED
        assert linkage.cancelled == []


class TestSoftFailures:
    def test_unparseable_body(self, services, gateway, create_payment):
        payload = b"this is not json"

        ack = services.webhooks.handle(payload, gateway.sign(payload), "evt_1")

        assert ack.outcome == WebhookOutcome.UNPARSEABLE
        assert not services.ledger.is_processed("evt_1")

    def test_unknown_event_type_is_ignored(self, services, create_payment, event_payload, intent_object, deliver):
        payment = create_payment()

        ack = deliver(event_payload("charge.refunded", intent_object(payment.external_intent_id), "evt_1"))

        assert ack.outcome == WebhookOutcome.IGNORED
        assert services.store.get(payment.id).status == PaymentStatus.PENDING
        assert not services.ledger.is_processed("evt_1")

    def test_unknown_intent(self, services, event_payload, intent_object, deliver):
        ack = deliver(event_payload(INTENT_SUCCEEDED, intent_object("pi_neverseen"), "evt_1"))

        assert ack.outcome == WebhookOutcome.UNKNOWN_PAYMENT
        assert not services.ledger.is_processed("evt_1")

    def test_no_intent_anywhere(self, services, event_payload, deliver):
        ack = deliver(event_payload(INTENT_SUCCEEDED, {"object": "charge", "id": "ch_1"}))
        assert ack.outcome == WebhookOutcome.UNPARSEABLE


class TestPartialPayloads:
    def test_partial_payload_recovered_by_remote_fetch(
        self, services, create_payment, event_payload, gateway, deliver, linkage
    ):
        payment = create_payment()
        gateway.set_intent_status(payment.external_intent_id, "succeeded", latest_charge="ch_remote")

        ack = deliver(event_payload(INTENT_SUCCEEDED, {"id": payment.external_intent_id}))

        assert ack.outcome == WebhookOutcome.APPLIED
        assert services.store.get(payment.id).external_charge_id == "ch_remote"
        assert len(linkage.confirmed) == 1

    def test_fetch_timeout_propagates_without_recording(
        self, services, create_payment, event_payload, gateway, deliver
    ):
        payment = create_payment()
        gateway.configure(should_succeed=True, time_out=True)

        with pytest.raises(GatewayTimeout):
            deliver(event_payload(INTENT_SUCCEEDED, {"id": payment.external_intent_id}, "evt_1"))

        assert not services.ledger.is_processed("evt_1")
        assert services.store.get(payment.id).status == PaymentStatus.PENDING

    def test_redelivery_after_timeout_succeeds(self, services, create_payment, event_payload, gateway, deliver):
        payment = create_payment()
        gateway.set_intent_status(payment.external_intent_id, "succeeded")
        payload = event_payload(INTENT_SUCCEEDED, {"id": payment.external_intent_id}, "evt_1")

        gateway.configure(should_succeed=True, time_out=True)
        with pytest.raises(GatewayTimeout):
            deliver(payload)

        gateway.configure(should_succeed=True, time_out=False)
        assert deliver(payload).outcome == WebhookOutcome.APPLIED


class TestEnrollmentFailure:
    def test_linkage_error_rolls_back_everything(
        self, services, create_payment, event_payload, intent_object, deliver, linkage, monkeypatch
    ):
        payment = create_payment()
        payload = event_payload(INTENT_SUCCEEDED, intent_object(payment.external_intent_id), "evt_1")

        def unavailable(resource_id, owner_id):
            raise ConnectionError("enrollment service down")

        monkeypatch.setattr(linkage, "confirm", unavailable)
        with pytest.raises(ConnectionError):
            deliver(payload)

        assert services.store.get(payment.id).status == PaymentStatus.PENDING
        assert not services.ledger.is_processed("evt_1")

        monkeypatch.undo()
        assert deliver(payload).outcome == WebhookOutcome.APPLIED
        assert linkage.confirmed == [("class-1", "student-1")]
