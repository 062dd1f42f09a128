# app/services/users.py
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pymongo.errors import DuplicateKeyError

from app.core.exceptions import Conflict, NotFound, Unauthenticated, validate_payload
from app.core.security import SecurityError, validate_token
from app.db.repositories import UserRepository
from app.models.base import utc_now
from app.models.enums import Role
from app.models.user import User, UserCreate
from .auth_guard import AuthorizationGuard
from .identity_provider import IdentityProviderError, KindeManagementClient

logger = logging.getLogger(__name__)

TokenValidator = Callable[[str], Awaitable[Dict[str, Any]]]


class UserDirectory:
    """Registration, login and removal of portal users."""

    def __init__(
        self,
        users: UserRepository,
        guard: AuthorizationGuard,
        identity_provider: KindeManagementClient,
        token_validator: TokenValidator = validate_token,
    ):
        self.users = users
        self.guard = guard
        self.identity_provider = identity_provider
        self.token_validator = token_validator

    async def register(self, fields: Dict[str, Any]) -> User:
        """Creates a 'user'-role record. Roles are only granted later by an admin."""
        registration = validate_payload(UserCreate, fields)
        if await self.users.get_by_email(registration.email) is not None:
            raise Conflict(f"{registration.email} is already registered")

        doc = registration.model_dump(by_alias=True, exclude_none=True)
        doc["role"] = Role.USER.value
        try:
            user = await self.users.create(doc)
        except DuplicateKeyError as e:
            raise Conflict(f"{registration.email} is already registered") from e
        logger.info(f"Registered user {user.email}.")
        return user

    async def login(self, token: Optional[str]) -> User:
        """Exchanges an identity-provider token for the stored User record."""
        if not token:
            raise Unauthenticated("An identity-provider token is required")
        try:
            payload = await self.token_validator(token)
        except SecurityError as e:
            logger.warning(f"Login rejected: {e}")
            raise Unauthenticated("Invalid authentication credentials") from e

        email = payload.get("email")
        if not email:
            logger.warning(f"Login rejected: token for subject {payload.get('sub')} has no email claim.")
            raise Unauthenticated("Token does not carry an email claim")

        user = await self.users.update_by_email(email, {"lastLoginAt": utc_now()})
        if user is None:
            raise NotFound(f"No user record for {email}")
        logger.info(f"User {email} logged in.")
        return user

    async def list_users(self, identity: Optional[str], role: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[User]:
        await self.guard.require_admin(identity)
        return await self.users.list_users(role=role, skip=skip, limit=limit)

    async def get_user(self, email: str, identity: Optional[str]) -> User:
        await self.guard.require_self_or_admin(identity, email)
        user = await self.users.get_by_email(email)
        if user is None:
            raise NotFound(f"No user record for {email}")
        return user

    async def delete_user(self, email: str, acting_admin: Optional[str]) -> int:
        """
        Deletes the User record, then the identity-provider account.

        The provider call is best-effort: if it fails the error is logged and
        the store deletion stands.
        """
        await self.guard.require_admin(acting_admin)
        deleted = await self.users.delete_by_email(email)
        if not deleted:
            raise NotFound(f"No user record for {email}")
        logger.info(f"Admin {acting_admin} deleted user record {email}.")

        try:
            await self.identity_provider.delete_user_by_email(email)
        except IdentityProviderError as e:
            logger.error(f"User {email} removed from the store but not from the identity provider: {e}")
        return deleted
