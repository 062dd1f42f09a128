# app/services/students.py
import logging
from typing import Any, Dict, List, Optional

from pymongo.errors import PyMongoError

from app.core.exceptions import Forbidden, NotFound, ValidationError, validate_payload
from app.db.repositories import StudentRepository, UserRepository
from app.models.enums import Role
from app.models.student import Student, StudentUpdate
from app.models.user import MIRRORED_FIELDS
from .auth_guard import AuthorizationGuard

logger = logging.getLogger(__name__)

STAFF_ROLES = {Role.TEACHER, Role.ADMIN}


class StudentDirectory:
    """Read and student-facing update paths over enrolled students."""

    def __init__(self, students: StudentRepository, users: UserRepository, guard: AuthorizationGuard):
        self.students = students
        self.users = users
        self.guard = guard

    async def list_students(
        self,
        identity: Optional[str],
        class_name: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Student]:
        await self.guard.require_role(identity, STAFF_ROLES)
        return await self.students.list_students(class_name=class_name, skip=skip, limit=limit)

    async def get_student(self, email: str, identity: Optional[str]) -> Student:
        requester = await self.guard.require_authenticated(identity)
        if requester.email != email and requester.role not in {role.value for role in STAFF_ROLES}:
            raise Forbidden("You may only access your own record")
        student = await self.students.get_by_email(email)
        if student is None:
            raise NotFound(f"No student record for {email}")
        return student

    async def update_student(self, email: str, changes: Dict[str, Any], identity: Optional[str]) -> Student:
        await self.guard.require_self_or_admin(identity, email)
        if isinstance(changes, dict) and "enrolledClassName" in changes:
            # Only the admission workflow sets the enrolled class
            raise ValidationError("enrolledClassName cannot be changed", field="enrolledClassName")
        update = validate_payload(StudentUpdate, changes)
        set_fields = update.model_dump(by_alias=True, exclude_unset=True)
        if not set_fields:
            raise ValidationError("No profile fields supplied", field="body")

        student = await self.students.update_by_email(email, set_fields)
        if student is None:
            raise NotFound(f"No student record for {email}")

        mirrored = {key: value for key, value in set_fields.items() if key in MIRRORED_FIELDS}
        if mirrored:
            try:
                await self.users.update_by_email(email, mirrored)
            except PyMongoError as e:
                logger.error(f"Could not mirror profile fields {sorted(mirrored)} to user {email}: {e}", exc_info=True)
        logger.info(f"Student profile {email} updated by {identity}.")
        return student

    async def delete_student(self, email: str, acting_admin: Optional[str]) -> int:
        await self.guard.require_admin(acting_admin)
        deleted = await self.students.delete_by_email(email)
        if not deleted:
            raise NotFound(f"No student record for {email}")
        logger.info(f"Admin {acting_admin} deleted student record {email}.")
        return deleted
