"""Acting-user resolution for the HTTP layer.

Authentication happens upstream; the caller's identity and role arrive as
opaque request headers. The ledger core only records the actor id. Role
checks live here, at the HTTP boundary.
"""

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, status

MANAGER_ROLES: frozenset[str] = frozenset({"manager", "admin", "superadmin"})


@dataclass(frozen=True)
class Actor:
    id: str
    role: str


def normalize_role(role: str | None) -> str:
    return (role or "").strip().lower()


def get_current_actor(
    x_actor_id: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
) -> Actor:
    """Resolve the acting user from ``X-Actor-Id`` and ``X-Actor-Role``."""
    actor_id = (x_actor_id or "").strip()
    if not actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Actor-Id header is required",
        )
    return Actor(id=actor_id, role=normalize_role(x_actor_role))


def require_manager(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Allow manager-or-higher roles only."""
    if actor.role not in MANAGER_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Manager role required")
    return actor
