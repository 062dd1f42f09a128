# app/services/identity_provider.py
"""Client for the Kinde management API, used to remove accounts of deleted users."""
import logging
from typing import Optional

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)


class IdentityProviderError(Exception):
    """Raised when the identity provider cannot be reached or rejects a request."""
    pass


class KindeManagementClient:
    def __init__(
        self,
        domain: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self.domain = (domain or "").rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> "KindeManagementClient":
        return cls(
            domain=settings.KINDE_DOMAIN,
            client_id=settings.KINDE_M2M_CLIENT_ID,
            client_secret=settings.KINDE_M2M_CLIENT_SECRET,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.domain and self.client_id and self.client_secret)

    async def _get_access_token(self, client: httpx.AsyncClient) -> str:
        response = await client.post(
            f"{self.domain}/oauth2/token",
            data={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "audience": f"{self.domain}/api",
            },
        )
        response.raise_for_status()
        token = response.json().get("access_token")
        if not token:
            raise IdentityProviderError("Kinde token response did not contain an access_token")
        return token

    async def delete_user_by_email(self, email: str) -> bool:
        """
        Deletes the Kinde account registered with email.

        Returns False when no account exists for the email.
        Raises IdentityProviderError on any transport or API failure.
        """
        if not self.is_configured:
            raise IdentityProviderError("Kinde management credentials are not configured")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                token = await self._get_access_token(client)
                headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}

                lookup = await client.get(f"{self.domain}/api/v1/users", params={"email": email}, headers=headers)
                lookup.raise_for_status()
                accounts = lookup.json().get("users") or []
                if not accounts:
                    logger.info(f"No Kinde account found for {email}; nothing to delete.")
                    return False

                kinde_id = accounts[0]["id"]
                deletion = await client.delete(f"{self.domain}/api/v1/user", params={"id": kinde_id}, headers=headers)
                deletion.raise_for_status()
                logger.info(f"Deleted Kinde account {kinde_id} for {email}.")
                return True
        except httpx.HTTPError as e:
            raise IdentityProviderError(f"Kinde request failed while deleting {email}: {e}") from e
        except (KeyError, ValueError) as e:
            raise IdentityProviderError(f"Unexpected Kinde response while deleting {email}: {e}") from e
