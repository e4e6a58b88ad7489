from __future__ import annotations

from ...auth.cognito import VerifiedUser
from ...errors import AuthorizationError
from ...observability.logging import get_logger
from ...repositories.users_repo import UsersRepository
from ..workflow.engine import actor_from_claims
from ..workflow.models import Actor

log = get_logger("identity")


def resolve_actor(user: VerifiedUser, users: UsersRepository) -> Actor:
    """
    Map a verified token onto a workflow actor.

    The `users` record is authoritative for name and role. Tokens for users
    without a record fall back to the `custom:role` and `name` claims; a user
    with no role either way is refused (403).
    """
    record = users.get(user.sub) or {}
    if record and str(record.get("status") or "active") != "active":
        log.info("identity_inactive_user", uid=user.sub)
        raise AuthorizationError("User account is not active")

    role = record.get("role") or user.role_claim
    name = str(record.get("name") or "").strip() or user.display_name
    email = record.get("email") or user.email
    return actor_from_claims(user.sub, name, role, email)
