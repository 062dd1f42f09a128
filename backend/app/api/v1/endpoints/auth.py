# app/api/v1/endpoints/auth.py
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.api.deps import get_user_directory
from app.models.user import User
from app.services.users import UserDirectory

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])

# auto_error=False: the token may also arrive in the JSON body
bearer_scheme = HTTPBearer(auto_error=False)


@router.post(
    "/login",
    response_model=User,
    status_code=status.HTTP_200_OK,
    summary="Log in with an identity-provider token",
    description=(
        "Verifies a Kinde token, passed either as {\"token\": ...} in the body or as a "
        "Bearer Authorization header, and returns the stored user record."
    ),
    responses={401: {"description": "Invalid token"}, 404: {"description": "No user record for the token's email"}},
)
async def login(
    payload: Optional[Dict[str, Any]] = Body(None),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    directory: UserDirectory = Depends(get_user_directory),
):
    token = None
    if isinstance(payload, dict):
        token = payload.get("token")
    if not token and credentials is not None:
        token = credentials.credentials
    return await directory.login(token)
