# app/services/role_assignment.py
import logging
from typing import Any, Dict, Optional, Tuple

from pymongo.errors import PyMongoError

from app.core.exceptions import NotFound, ValidationError, validate_payload
from app.db.repositories import ClassRepository, StudentRepository, UserRepository
from app.models.enums import Role
from app.models.user import MIRRORED_FIELDS, TEACHER_FIELDS, TeacherAssignment, User, UserProfileUpdate
from .auth_guard import AuthorizationGuard

logger = logging.getLogger(__name__)

# Cleared together when a user's class assignment is removed
CLASS_ASSIGNMENT_FIELDS = ("enrolledClassName",) + TEACHER_FIELDS


def parse_role(value: Any) -> Role:
    try:
        return Role(value)
    except ValueError:
        allowed = ", ".join(role.value for role in Role)
        raise ValidationError(f"role: must be one of {allowed}", field="role")


class RoleAssignmentWorkflow:
    """
    Promotes and demotes users between roles.

    This is the only writer of the teacher-specific User fields. Moving a user
    to any role other than teacher removes those fields.
    """

    def __init__(
        self,
        users: UserRepository,
        classes: ClassRepository,
        students: StudentRepository,
        guard: AuthorizationGuard,
    ):
        self.users = users
        self.classes = classes
        self.students = students
        self.guard = guard

    async def assign_role(
        self,
        target_email: str,
        new_role: Any,
        payload: Optional[Dict[str, Any]],
        acting_user: Optional[str],
    ) -> User:
        return await self.update_user(target_email, acting_user, new_role=new_role, role_payload=payload)

    async def remove_class_assignment(self, target_email: str, acting_admin: Optional[str]) -> User:
        await self.guard.require_admin(acting_admin)
        updated = await self.users.update_by_email(
            target_email,
            {"role": Role.USER.value},
            unset_fields=CLASS_ASSIGNMENT_FIELDS,
        )
        if updated is None:
            raise NotFound(f"No user record for {target_email}")
        logger.info(f"Admin {acting_admin} removed the class assignment of {target_email}.")
        return updated

    async def update_profile(self, target_email: str, changes: Dict[str, Any], acting_user: Optional[str]) -> User:
        return await self.update_user(target_email, acting_user, profile_changes=changes)

    async def update_user(
        self,
        target_email: str,
        acting_user: Optional[str],
        new_role: Any = None,
        role_payload: Optional[Dict[str, Any]] = None,
        profile_changes: Optional[Dict[str, Any]] = None,
    ) -> User:
        """
        Applies a role change, a profile change, or both in one write.

        Every part is validated before the User is touched, so a request that
        fails on any field leaves the stored record as it was.
        """
        if new_role is not None:
            await self.guard.require_admin(acting_user)
        if profile_changes is not None:
            await self.guard.require_self_or_admin(acting_user, target_email)

        role = parse_role(new_role) if new_role is not None else None

        if await self.users.get_by_email(target_email) is None:
            raise NotFound(f"No user record for {target_email}")

        set_fields: Dict[str, Any] = {}
        unset_fields = ()
        if role is not None:
            set_fields, unset_fields = await self._role_fields(role, role_payload)

        profile_fields: Dict[str, Any] = {}
        if profile_changes is not None:
            profile = validate_payload(UserProfileUpdate, profile_changes)
            profile_fields = profile.model_dump(by_alias=True, exclude_unset=True)
            if not profile_fields:
                raise ValidationError("No profile fields supplied", field="body")
            set_fields.update(profile_fields)

        updated = await self.users.update_by_email(target_email, set_fields, unset_fields=unset_fields)
        if updated is None:
            # Removed between the existence check and the update
            raise NotFound(f"No user record for {target_email}")
        if role is not None:
            logger.info(f"Admin {acting_user} set role of {target_email} to {role.value}.")

        await self._mirror_to_student(target_email, profile_fields)
        return updated

    async def _role_fields(self, role: Role, payload: Optional[Dict[str, Any]]) -> Tuple[Dict[str, Any], Tuple[str, ...]]:
        if role != Role.TEACHER:
            return {"role": role.value}, TEACHER_FIELDS

        assignment = validate_payload(TeacherAssignment, payload or {})
        # Every referenced class must exist before anything is written
        for assigned in assignment.assigned_classes:
            if await self.classes.get_by_id(assigned.class_id) is None:
                raise NotFound(f"Class {assigned.class_id} not found")
        set_fields = {
            "role": role.value,
            **assignment.model_dump(by_alias=True, include={"shift", "subjects", "assigned_classes", "class_time"}),
        }
        return set_fields, ()

    async def _mirror_to_student(self, email: str, set_fields: Dict[str, Any]) -> None:
        mirrored = {key: value for key, value in set_fields.items() if key in MIRRORED_FIELDS}
        if not mirrored:
            return
        try:
            student = await self.students.update_by_email(email, mirrored)
        except PyMongoError as e:
            # The User update already succeeded; the Student copy catches up on the next profile edit
            logger.error(f"Could not mirror profile fields {sorted(mirrored)} to student {email}: {e}", exc_info=True)
            return
        if student is not None:
            logger.debug(f"Mirrored profile fields {sorted(mirrored)} to student {email}.")
