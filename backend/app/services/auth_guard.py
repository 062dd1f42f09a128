# app/services/auth_guard.py
import logging
from typing import Iterable, Optional

from app.core.exceptions import Forbidden, Unauthenticated
from app.db.repositories import UserRepository
from app.models.enums import Role
from app.models.user import User

logger = logging.getLogger(__name__)


class AuthorizationGuard:
    """
    Resolves the acting identity to its User record and accepts or rejects an action.

    The identity is the email claimed by the caller (see
    app.core.security.get_requester_email). The guard only reads.
    """

    def __init__(self, users: UserRepository):
        self.users = users

    async def require_authenticated(self, identity: Optional[str]) -> User:
        if not identity:
            logger.warning("Request rejected: no requester identity supplied.")
            raise Unauthenticated("Requester identity is required")
        user = await self.users.get_by_email(identity)
        if user is None:
            logger.warning(f"Request rejected: no user record for requester {identity}.")
            raise Unauthenticated(f"No user record for {identity}")
        return user

    async def require_role(self, identity: Optional[str], allowed_roles: Iterable[Role]) -> User:
        user = await self.require_authenticated(identity)
        allowed = {Role(role).value for role in allowed_roles}
        if user.role not in allowed:
            logger.warning(f"User {identity} (role: {user.role}) denied; requires one of {sorted(allowed)}.")
            raise Forbidden(f"Requires role: {', '.join(sorted(allowed))}")
        return user

    async def require_admin(self, identity: Optional[str]) -> User:
        return await self.require_role(identity, {Role.ADMIN})

    async def require_self_or_admin(self, identity: Optional[str], target_email: str) -> User:
        user = await self.require_authenticated(identity)
        if user.email == target_email or user.role == Role.ADMIN.value:
            return user
        logger.warning(f"User {identity} denied access to the record of {target_email}.")
        raise Forbidden("You may only access your own record")
