# app/api/v1/endpoints/users.py
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from app.api.deps import Requester, get_role_workflow, get_user_directory
from app.core.exceptions import ValidationError
from app.models.user import User
from app.services.role_assignment import RoleAssignmentWorkflow
from app.services.users import UserDirectory

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/users",
    tags=["Users"]
)

# Body keys that belong to a teacher assignment rather than to the profile
ROLE_PAYLOAD_KEYS = ("shift", "subjects", "assignedClasses", "classTime")


@router.post(
    "",
    response_model=User,
    status_code=status.HTTP_201_CREATED,
    summary="Register a user",
    description="Creates a user with role 'user'. Returns 409 if the email is already registered.",
)
async def register_user(
    payload: Any = Body(...),
    directory: UserDirectory = Depends(get_user_directory),
):
    return await directory.register(payload)


@router.get(
    "",
    response_model=List[User],
    summary="List users (admin)",
)
async def list_users(
    requester: Requester,
    role: Optional[str] = Query(None, description="Only return users with this role"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    directory: UserDirectory = Depends(get_user_directory),
):
    return await directory.list_users(requester, role=role, skip=skip, limit=limit)


@router.get(
    "/{email}",
    response_model=User,
    summary="Get a user by email (self or admin)",
)
async def read_user(
    email: str,
    requester: Requester,
    directory: UserDirectory = Depends(get_user_directory),
):
    return await directory.get_user(email, requester)


# Declared before PATCH /{email} so "remove-class" is not read as an email
@router.patch(
    "/remove-class/{email}",
    response_model=User,
    summary="Remove a user's class assignment (admin)",
    description="Resets the role to 'user' and clears enrolledClassName and all teacher fields.",
)
async def remove_class_assignment(
    email: str,
    requester: Requester,
    workflow: RoleAssignmentWorkflow = Depends(get_role_workflow),
):
    return await workflow.remove_class_assignment(email, requester)


@router.patch(
    "/{email}",
    response_model=User,
    summary="Update a user's role or profile",
    description=(
        "A body with 'role' changes the role (admin only); teacher assignments also carry "
        "shift, subjects, assignedClasses and classTime. Any remaining keys update the "
        "profile (name, phone, photoURL) and require self or admin."
    ),
)
async def update_user(
    email: str,
    requester: Requester,
    payload: Any = Body(...),
    workflow: RoleAssignmentWorkflow = Depends(get_role_workflow),
):
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object", field="body")
    changes = dict(payload)
    new_role = changes.pop("role", None)
    role_payload = {key: changes.pop(key) for key in ROLE_PAYLOAD_KEYS if key in changes}

    if new_role is None and role_payload:
        raise ValidationError("role: required when assigning teacher fields", field="role")
    if new_role is None and not changes:
        raise ValidationError("No fields supplied", field="body")

    return await workflow.update_user(
        email,
        requester,
        new_role=new_role,
        role_payload=role_payload,
        profile_changes=changes or None,
    )


@router.delete(
    "/{email}",
    summary="Delete a user (admin)",
    description="Deletes the user record and, best-effort, the identity-provider account.",
)
async def delete_user(
    email: str,
    requester: Requester,
    directory: UserDirectory = Depends(get_user_directory),
) -> Dict[str, int]:
    deleted = await directory.delete_user(email, requester)
    return {"deletedCount": deleted}
