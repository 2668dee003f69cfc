"""FastAPI dependencies: wired services and the calling actor."""

from fastapi import Header, HTTPException, Request

from academy_payments.actors import Actor, Role
from academy_payments.services import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def current_actor(
    x_actor_id: str = Header(default=""),
    x_actor_role: str = Header(default=""),
) -> Actor:
    """The caller, as asserted by the upstream authentication layer."""
    if not x_actor_id:
        raise HTTPException(status_code=401, detail="Missing actor identity")
    try:
        role = Role(x_actor_role.upper())
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Unknown actor role {x_actor_role!r}") from None
    return Actor(id=x_actor_id, role=role)
