"""Enrollment linkage port.

Enrollments live in the academy's class management service. Payments only
tell it when a linked enrollment should be confirmed or rolled back. Both
calls may arrive more than once for the same resource and must be
idempotent on the receiving side.
"""

from abc import ABC, abstractmethod

import structlog

logger = structlog.get_logger(__name__)


class EnrollmentLinkage(ABC):
    @abstractmethod
    def confirm(self, resource_id: str, owner_id: str) -> None:
        """Confirm the enrollment paid for by `owner_id`."""
        ...

    @abstractmethod
    def cancel(self, resource_id: str, owner_id: str) -> None:
        """Roll back the enrollment whose payment failed."""
        ...


class LoggingEnrollmentLinkage(EnrollmentLinkage):
    """Default linkage when no enrollment service is wired in: records the intent in the log."""

    def confirm(self, resource_id: str, owner_id: str) -> None:
        logger.info("Enrollment confirmed", resource_id=resource_id, owner_id=owner_id)

    def cancel(self, resource_id: str, owner_id: str) -> None:
        logger.info("Enrollment cancelled", resource_id=resource_id, owner_id=owner_id)
