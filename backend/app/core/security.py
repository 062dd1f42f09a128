# app/core/security.py
"""
Security module for identity-provider (Kinde) tokens and request identity.

Provides functionality for:
- JWKS (JSON Web Key Set) fetching with a time-based in-memory cache.
- JWT validation (signature, expiry, issuer, audience) used by POST /login.
- Extraction of the caller-supplied identity claim used by every other route.

Security Considerations:
- Only /login verifies a token. After login the frontend sends the user's
  email in the `x-user-email` header (or the `requesterEmail` / `email` query
  parameter) and the API trusts that claim as-is. Anyone who can set the
  header can act as the named user; this mirrors how the portal is deployed
  and is covered by the API tests.
"""

import logging
import httpx
from typing import Dict, Any, Optional
from datetime import datetime, timedelta, timezone

from jose import jwt, exceptions as jose_exceptions
from fastapi import Request

from .config import settings

logger = logging.getLogger(__name__)

IDENTITY_HEADER = "x-user-email"
IDENTITY_QUERY_PARAMS = ("requesterEmail", "email")

# --- Custom Exceptions ---
class SecurityError(Exception):
    """Base class for security-related exceptions."""
    pass

class JWKSFetchError(SecurityError):
    """Raised when there is an error fetching or parsing the JWKS."""
    pass

class TokenValidationError(SecurityError):
    """Raised when token validation fails (expiry, signature, claims, etc.)."""
    pass

# --- JWKS Handling ---

_jwks_cache: Optional[Dict[str, Any]] = None
_jwks_cache_timestamp: Optional[datetime] = None
JWKS_CACHE_TTL = timedelta(hours=1)

def get_jwks_url() -> Optional[str]:
    if not settings.KINDE_DOMAIN:
        return None
    return f"{settings.KINDE_DOMAIN.rstrip('/')}/.well-known/jwks.json"

async def get_jwks() -> Dict[str, Any]:
    """
    Fetches the JWKS keys from the Kinde instance's well-known endpoint.
    Uses a simple time-based in-memory cache. Raises JWKSFetchError on failure.
    """
    global _jwks_cache, _jwks_cache_timestamp

    if _jwks_cache and _jwks_cache_timestamp and \
       (datetime.now(timezone.utc) - _jwks_cache_timestamp < JWKS_CACHE_TTL):
        logger.debug(f"Returning JWKS from cache (timestamp: {_jwks_cache_timestamp}).")
        return _jwks_cache

    jwks_url = get_jwks_url()
    if not jwks_url:
        err_msg = "Cannot fetch JWKS: KINDE_DOMAIN is not configured."
        logger.error(err_msg)
        raise JWKSFetchError(err_msg)

    logger.info(f"Fetching JWKS keys from {jwks_url}...")
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(jwks_url)
            response.raise_for_status()

            jwks = response.json()
            if "keys" not in jwks or not isinstance(jwks["keys"], list):
                raise JWKSFetchError("Invalid JWKS format received: 'keys' array not found.")

            logger.info(f"Fetched {len(jwks['keys'])} JWKS keys. Updating cache.")
            _jwks_cache = jwks
            _jwks_cache_timestamp = datetime.now(timezone.utc)
            return jwks

    except JWKSFetchError:
        raise
    except httpx.TimeoutException as e:
        raise JWKSFetchError(f"Timeout while trying to fetch JWKS from {jwks_url}: {e}")
    except httpx.HTTPError as e:
        raise JWKSFetchError(f"Network error fetching JWKS from {jwks_url}: {e}")
    except ValueError as e:
        raise JWKSFetchError(f"Error parsing JWKS JSON response from {jwks_url}: {e}")


# --- JWT Validation Function ---

async def validate_token(token: str) -> Dict[str, Any]:
    """
    Decodes and validates a JWT issued by Kinde.

    Args:
        token: The encoded JWT string.

    Returns:
        The decoded token payload.

    Raises:
        TokenValidationError: If Kinde config is missing, the JWKS cannot be
                              fetched, or the token fails validation.
    """
    if not settings.KINDE_DOMAIN or not settings.KINDE_AUDIENCE:
        raise TokenValidationError("Kinde domain or audience not configured.")

    try:
        jwks = await get_jwks()
    except JWKSFetchError as e:
        raise TokenValidationError(f"Token validation failed: Could not retrieve JWKS keys - {e}")

    try:
        unverified_header = jwt.get_unverified_header(token)
    except jose_exceptions.JWTError as e:
        raise TokenValidationError(f"Error getting unverified header from token: {e}")
    if "kid" not in unverified_header:
        raise TokenValidationError("JWT header does not contain 'kid' (Key ID).")
    rsa_key_kid = unverified_header["kid"]

    key_found = next((key for key in jwks["keys"] if key.get("kid") == rsa_key_kid), None)
    if not key_found:
        # Keys may have rotated; the next login attempt refetches
        clear_jwks_cache()
        logger.warning(f"Public key with kid '{rsa_key_kid}' not found in JWKS. Cache cleared.")
        raise TokenValidationError(f"Public key with kid '{rsa_key_kid}' not found in JWKS.")

    try:
        payload = jwt.decode(
            token,
            key_found,
            algorithms=["RS256"],
            audience=settings.KINDE_AUDIENCE,
            issuer=settings.KINDE_DOMAIN,
        )
        logger.info("Token successfully validated.")
        return payload
    except jose_exceptions.ExpiredSignatureError:
        raise TokenValidationError("Token validation failed: Expired signature.")
    except jose_exceptions.JWTClaimsError as e:
        raise TokenValidationError(f"Token validation failed: Invalid claims - {e}")
    except jose_exceptions.JWTError as e:
        raise TokenValidationError(f"Token validation failed: Invalid token - {e}")


# --- Request identity ---

def get_requester_email(request: Request) -> Optional[str]:
    """
    Returns the identity claimed by the caller, or None.

    Looks at the `x-user-email` header first, then the `requesterEmail` and
    `email` query parameters. The value is not verified against any token.
    """
    claimed = request.headers.get(IDENTITY_HEADER)
    if not claimed:
        for param in IDENTITY_QUERY_PARAMS:
            claimed = request.query_params.get(param)
            if claimed:
                break
    if claimed:
        claimed = claimed.strip()
    return claimed or None


# --- Cache Management Functions ---

def clear_jwks_cache():
    """Clears the JWKS cache, forcing a fresh fetch on the next call to get_jwks."""
    global _jwks_cache, _jwks_cache_timestamp
    _jwks_cache = None
    _jwks_cache_timestamp = None
    logger.info("Cleared JWKS cache.")

def get_jwks_cache_info() -> Dict[str, Any]:
    """Gets information about the current JWKS cache state."""
    return {
        "cached": _jwks_cache is not None,
        "timestamp": _jwks_cache_timestamp.isoformat() if _jwks_cache_timestamp else None,
        "expires_in_seconds": (JWKS_CACHE_TTL - (datetime.now(timezone.utc) - _jwks_cache_timestamp)).total_seconds()
                               if _jwks_cache and _jwks_cache_timestamp else None,
        "ttl_seconds": JWKS_CACHE_TTL.total_seconds()
    }
