"""Composition root: wires the database, stores and services together."""

from dataclasses import dataclass

from academy_payments.actors import ActorDirectory, TrustingActorDirectory
from academy_payments.config import Settings
from academy_payments.enrollment import EnrollmentLinkage, LoggingEnrollmentLinkage
from academy_payments.gateway import get_gateway
from academy_payments.gateway.port import PaymentGateway
from academy_payments.payment.ledger import IdempotencyLedger
from academy_payments.payment.reconciliation import PaymentReconciler
from academy_payments.payment.service import PaymentService
from academy_payments.payment.store import PaymentStore
from academy_payments.payment.webhook import WebhookProcessor
from academy_payments.utils.db import Database


@dataclass
class Services:
    settings: Settings
    database: Database
    gateway: PaymentGateway
    store: PaymentStore
    ledger: IdempotencyLedger
    payments: PaymentService
    webhooks: WebhookProcessor


def build_services(
    settings: Settings,
    gateway: PaymentGateway | None = None,
    linkage: EnrollmentLinkage | None = None,
    directory: ActorDirectory | None = None,
    database: Database | None = None,
) -> Services:
    database = database or Database(settings.database_url)
    gateway = gateway or get_gateway(settings)
    linkage = linkage or LoggingEnrollmentLinkage()
    directory = directory or TrustingActorDirectory()

    store = PaymentStore(database)
    ledger = IdempotencyLedger(database)
    reconciler = PaymentReconciler(database, store, ledger, linkage)

    return Services(
        settings=settings,
        database=database,
        gateway=gateway,
        store=store,
        ledger=ledger,
        payments=PaymentService(gateway, store, reconciler, directory, settings.supported_currencies),
        webhooks=WebhookProcessor(gateway, store, ledger, reconciler),
    )
