import json
import threading
from pathlib import Path
from uuid import uuid4

import pytest
from academy_payments.actors import StaticActorDirectory
from academy_payments.config import Settings
from academy_payments.enrollment import EnrollmentLinkage
from academy_payments.gateway import reset_gateway
from academy_payments.gateway.fake_adapter import FakeGateway
from academy_payments.services import build_services
from academy_payments.utils.db import Database

WEBHOOK_SECRET = "whsec_test"
KNOWN_ACTORS = {"student-1", "student-2", "admin-1", "prof-1"}


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in str(test_path):
            item.add_marker(pytest.mark.bdd)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


class RecordingLinkage(EnrollmentLinkage):
    """Enrollment linkage that remembers every call."""

    def __init__(self) -> None:
        self.confirmed: list[tuple[str, str]] = []
        self.cancelled: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def confirm(self, resource_id: str, owner_id: str) -> None:
        with self._lock:
            self.confirmed.append((resource_id, owner_id))

    def cancel(self, resource_id: str, owner_id: str) -> None:
        with self._lock:
            self.cancelled.append((resource_id, owner_id))


@pytest.fixture(autouse=True)
def _reset_gateway():
    yield
    reset_gateway()


@pytest.fixture
def settings():
    return Settings(
        environment="test",
        database_url="sqlite://",
        payment_gateway="fake",
        stripe_webhook_secret=WEBHOOK_SECRET,
    )


@pytest.fixture
def database(settings):
    db = Database(settings.database_url)
    db.setup()
    yield db
    db.drop()
    db.dispose()


@pytest.fixture
def gateway():
    return FakeGateway(webhook_secret=WEBHOOK_SECRET)


@pytest.fixture
def linkage():
    return RecordingLinkage()


@pytest.fixture
def directory():
    return StaticActorDirectory(KNOWN_ACTORS)


@pytest.fixture
def services(settings, database, gateway, linkage, directory):
    return build_services(settings, gateway=gateway, linkage=linkage, directory=directory, database=database)


@pytest.fixture
def create_payment(services):
    """Create a PENDING payment through the service."""

    def _create(owner_id="student-1", amount="50.00", currency="EUR", linked_resource_id="class-1"):
        return services.payments.create_payment(
            owner_id=owner_id,
            amount=amount,
            currency=currency,
            linked_resource_id=linked_resource_id,
            description="Enrollment fee",
        ).payment

    return _create


@pytest.fixture
def event_payload():
    """Build a raw webhook body in the gateway's envelope format."""

    def _build(event_type, intent_object, event_id=None):
        envelope = {
            "id": event_id or f"evt_{uuid4().hex[:16]}",
            "type": event_type,
            "data": {"object": intent_object},
        }
        return json.dumps(envelope).encode()

    return _build


@pytest.fixture
def intent_object():
    """A full embedded intent object for `intent_id`."""

    def _build(intent_id, status="succeeded", latest_charge="ch_123", failure_message=None):
        obj = {"id": intent_id, "object": "payment_intent", "status": status, "latest_charge": latest_charge}
        if failure_message is not None:
            obj["last_payment_error"] = {"message": failure_message}
        return obj

    return _build


@pytest.fixture
def deliver(services, gateway):
    """Hand a correctly signed payload to the webhook processor."""

    def _deliver(payload, event_id=None):
        return services.webhooks.handle(payload, gateway.sign(payload), event_id)

    return _deliver
