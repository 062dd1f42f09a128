# backend/tests/test_security.py

import json
import pytest
import httpx
from unittest.mock import AsyncMock, MagicMock, patch
from datetime import datetime, timedelta, timezone
from jose import jwt
from jose.utils import base64url_encode
from starlette.requests import Request

from app.core.config import settings
from app.core.security import (
    get_jwks,
    get_jwks_cache_info,
    get_requester_email,
    validate_token,
    clear_jwks_cache,
    JWKSFetchError,
    TokenValidationError,
)

# --- Test Data ---
MOCK_JWKS = {
    "keys": [
        {
            "kid": "test_key_1",
            "kty": "RSA",
            "n": "test_n",
            "e": "AQAB",
            "use": "sig",
            "alg": "RS256"
        }
    ]
}

# Structurally valid token whose kid matches MOCK_JWKS; jwt.decode is mocked
_mock_header = {"alg": "RS256", "typ": "JWT", "kid": "test_key_1"}
_mock_header_b64 = base64url_encode(json.dumps(_mock_header).encode('utf-8')).decode('utf-8')
_mock_payload_b64 = base64url_encode(b'{}').decode('utf-8')
_mock_signature_b64 = base64url_encode(b"fakesignature").decode('utf-8')
MOCK_TOKEN = f"{_mock_header_b64}.{_mock_payload_b64}.{_mock_signature_b64}"

MOCK_PAYLOAD = {
    "sub": "kp_test_user",
    "email": "amina@example.com",
    "aud": "test_audience",
    "iss": "https://school.kinde.com",
    "exp": int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp())
}


@pytest.fixture(autouse=True)
def kinde_settings():
    clear_jwks_cache()
    with patch.object(settings, "KINDE_DOMAIN", "https://school.kinde.com"), \
         patch.object(settings, "KINDE_AUDIENCE", "test_audience"):
        yield
    clear_jwks_cache()


def mock_async_client(constructor, get_result=None, get_error=None):
    """Wires a patched httpx.AsyncClient constructor to a client whose get() is awaited."""
    client = MagicMock()
    client.get = AsyncMock(return_value=get_result, side_effect=get_error)
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=client)
    context.__aexit__ = AsyncMock(return_value=False)
    constructor.return_value = context
    return client


def jwks_response(body=MOCK_JWKS):
    response = MagicMock()
    response.json.return_value = body
    response.raise_for_status.return_value = None
    return response


# --- JWKS Tests ---
async def test_get_jwks_success_and_cached():
    with patch('app.core.security.httpx.AsyncClient') as constructor:
        client = mock_async_client(constructor, get_result=jwks_response())

        assert await get_jwks() == MOCK_JWKS
        assert await get_jwks() == MOCK_JWKS

        client.get.assert_awaited_once_with("https://school.kinde.com/.well-known/jwks.json")
        assert get_jwks_cache_info()["cached"] is True


async def test_get_jwks_network_failure():
    with patch('app.core.security.httpx.AsyncClient') as constructor:
        mock_async_client(constructor, get_error=httpx.ConnectError("Network error"))

        with pytest.raises(JWKSFetchError):
            await get_jwks()


async def test_get_jwks_rejects_malformed_key_set():
    with patch('app.core.security.httpx.AsyncClient') as constructor:
        mock_async_client(constructor, get_result=jwks_response({"not_keys": []}))

        with pytest.raises(JWKSFetchError, match="'keys' array not found"):
            await get_jwks()


async def test_get_jwks_without_domain():
    with patch.object(settings, "KINDE_DOMAIN", None):
        with pytest.raises(JWKSFetchError, match="KINDE_DOMAIN is not configured"):
            await get_jwks()


async def test_clear_jwks_cache_forces_refetch():
    with patch('app.core.security.httpx.AsyncClient') as constructor:
        client = mock_async_client(constructor, get_result=jwks_response())

        await get_jwks()
        clear_jwks_cache()
        assert get_jwks_cache_info()["cached"] is False
        await get_jwks()

        assert client.get.await_count == 2


# --- Token Validation Tests ---
async def test_validate_token_success():
    with patch('app.core.security.get_jwks', new_callable=AsyncMock, return_value=MOCK_JWKS) as mock_get_jwks, \
         patch('jose.jwt.decode', return_value=MOCK_PAYLOAD) as mock_decode:
        result = await validate_token(MOCK_TOKEN)

    assert result == MOCK_PAYLOAD
    mock_get_jwks.assert_awaited_once()
    mock_decode.assert_called_once_with(
        MOCK_TOKEN,
        MOCK_JWKS['keys'][0],
        algorithms=["RS256"],
        audience="test_audience",
        issuer="https://school.kinde.com",
    )


async def test_validate_token_expired():
    with patch('app.core.security.get_jwks', new_callable=AsyncMock, return_value=MOCK_JWKS), \
         patch('jose.jwt.decode', side_effect=jwt.ExpiredSignatureError("Token has expired")):
        with pytest.raises(TokenValidationError, match="Expired signature"):
            await validate_token(MOCK_TOKEN)


async def test_validate_token_unknown_kid_clears_cache():
    with patch('app.core.security.get_jwks', new_callable=AsyncMock, return_value={"keys": []}), \
         patch('app.core.security.clear_jwks_cache') as mock_clear:
        with pytest.raises(TokenValidationError, match="Public key with kid 'test_key_1' not found"):
            await validate_token(MOCK_TOKEN)

    mock_clear.assert_called_once()


async def test_validate_token_garbage():
    with patch('app.core.security.get_jwks', new_callable=AsyncMock, return_value=MOCK_JWKS):
        with pytest.raises(TokenValidationError):
            await validate_token("not-a-jwt")


async def test_validate_token_requires_configuration():
    with patch.object(settings, "KINDE_AUDIENCE", None):
        with pytest.raises(TokenValidationError, match="not configured"):
            await validate_token(MOCK_TOKEN)


# --- Request identity ---
def make_request(headers=None, query_string=b""):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/users",
        "headers": [(key.lower().encode(), value.encode()) for key, value in (headers or {}).items()],
        "query_string": query_string,
    }
    return Request(scope)


def test_requester_email_prefers_header():
    request = make_request({"x-user-email": " admin@example.com "}, b"requesterEmail=amina@example.com")
    assert get_requester_email(request) == "admin@example.com"


def test_requester_email_falls_back_to_query_parameters():
    assert get_requester_email(make_request(query_string=b"requesterEmail=amina@example.com")) == "amina@example.com"
    assert get_requester_email(make_request(query_string=b"email=rahim@example.com")) == "rahim@example.com"


def test_requester_email_absent():
    assert get_requester_email(make_request()) is None
    assert get_requester_email(make_request({"x-user-email": "   "})) is None
