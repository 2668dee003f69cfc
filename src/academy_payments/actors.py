"""Actors and the directory that tells whether one exists.

User and role management belong to the academy's identity service; this
module only carries the identity of whoever is calling and answers the
existence check payment creation needs.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class Role(Enum):
    ADMIN = "ADMIN"
    PROFESSOR = "PROFESSOR"
    STUDENT = "STUDENT"


# Roles allowed to see every payment
STAFF_ROLES = frozenset({Role.ADMIN, Role.PROFESSOR})


@dataclass(frozen=True)
class Actor:
    id: str
    role: Role

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


class ActorDirectory(ABC):
    @abstractmethod
    def exists(self, actor_id: str) -> bool: ...


class StaticActorDirectory(ActorDirectory):
    """Directory over a fixed set of known actor ids."""

    def __init__(self, actor_ids: set[str] | None = None) -> None:
        self.actor_ids = set(actor_ids or ())

    def exists(self, actor_id: str) -> bool:
        return actor_id in self.actor_ids


class TrustingActorDirectory(ActorDirectory):
    """Accepts any non-blank id. For deployments where the identity service already vetted the caller."""

    def exists(self, actor_id: str) -> bool:
        return bool(actor_id and actor_id.strip())
