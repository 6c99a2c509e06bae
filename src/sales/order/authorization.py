"""Actor roles and the role check every order command runs first."""

from enum import Enum

from sales.errors import Unauthorized


class ActorRole(Enum):
    ADMIN = "admin"
    STOCK = "stock"


def require_role(action, actor_id, actor_role, *roles):
    """Fail with Unauthorized unless the actor is authenticated and holds one of ``roles``.

    With no ``roles`` given, any authenticated actor (non-blank id) passes.
    """
    required = [role.value if isinstance(role, ActorRole) else role for role in roles]
    if not (actor_id or "").strip():
        raise Unauthorized(action, actor_role, required)
    if required and actor_role not in required:
        raise Unauthorized(action, actor_role, required)
