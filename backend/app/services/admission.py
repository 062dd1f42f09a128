# app/services/admission.py
"""
Admission workflow: a pending application is either approved (becoming a
Student and promoting the matching User) or rejected (deleted).

Approval writes in this order:
    1. insert the Student, keyed by email, only if none exists
    2. set role/enrolledClassName/stream on the User
    3. delete the pending record

MongoDB does not make the three writes atomic here. If the process stops
after step 1 or 2, the pending record is still present while a Student with
the same email already exists; find_stale_applications() lists such records
and calling approve() again finishes the remaining steps without creating a
second Student.
"""
import logging
import random
from typing import Any, Dict, List, Optional

from pymongo.errors import DuplicateKeyError

from app.core.exceptions import Conflict, NotFound, validate_payload
from app.db.repositories import PendingStudentRepository, StudentRepository, UserRepository
from app.models.base import utc_now
from app.models.enums import AdmissionStatus, Role
from app.models.student import PendingStudent, PendingStudentCreate, Student
from app.models.user import TEACHER_FIELDS
from .auth_guard import AuthorizationGuard

logger = logging.getLogger(__name__)

REGISTRATION_NUMBER_MIN = 100000
REGISTRATION_NUMBER_MAX = 999999

# Pending-record fields that are not carried over to the Student
NOT_COPIED_ON_APPROVAL = {"id", "status"}

# Pending records read per page when scanning for interrupted approvals
STALE_SCAN_BATCH_SIZE = 500


class AdmissionWorkflow:
    def __init__(
        self,
        pending: PendingStudentRepository,
        students: StudentRepository,
        users: UserRepository,
        guard: AuthorizationGuard,
        rng: Optional[random.Random] = None,
    ):
        self.pending = pending
        self.students = students
        self.users = users
        self.guard = guard
        self.rng = rng or random.Random()

    def generate_registration_number(self) -> int:
        # Uniqueness is not checked; two applicants may draw the same number
        return self.rng.randint(REGISTRATION_NUMBER_MIN, REGISTRATION_NUMBER_MAX)

    async def submit(self, fields: Dict[str, Any]) -> PendingStudent:
        """Validates a public application and stores it as pending."""
        application = validate_payload(PendingStudentCreate, fields)

        if await self.pending.get_by_email(application.email) is not None:
            raise Conflict(f"An application for {application.email} is already pending")
        if await self.students.get_by_email(application.email) is not None:
            raise Conflict(f"{application.email} is already an enrolled student")

        doc = application.model_dump(by_alias=True)
        doc["registrationNumber"] = self.generate_registration_number()
        doc["status"] = AdmissionStatus.PENDING.value
        try:
            created = await self.pending.create(doc)
        except DuplicateKeyError as e:
            # Lost a race with a concurrent submission for the same email
            raise Conflict(f"An application for {application.email} is already pending") from e

        logger.info(
            f"Admission application {created.id} submitted for {created.email} "
            f"({created.class_name}), registration number {created.registration_number}"
        )
        return created

    async def approve(self, email: str, acting_admin: Optional[str]) -> Student:
        await self.guard.require_admin(acting_admin)

        application = await self.pending.get_by_email(email)
        if application is None:
            raise NotFound(f"No pending application for {email}")

        student_doc = application.model_dump(by_alias=True, exclude=NOT_COPIED_ON_APPROVAL)
        student_doc["role"] = Role.STUDENT.value
        student_doc["enrolledClassName"] = application.class_name
        student_doc["approvedAt"] = utc_now()

        student, created = await self.students.insert_if_absent(student_doc)
        if not created:
            logger.warning(f"Student record for {email} already existed; completing an interrupted approval.")

        user = await self.users.update_by_email(
            email,
            {
                "role": Role.STUDENT.value,
                "enrolledClassName": student.enrolled_class_name,
                "stream": student.stream,
            },
            unset_fields=TEACHER_FIELDS,
        )
        if user is None:
            logger.warning(f"Approved {email} but no user record exists to promote.")

        await self.pending.delete_by_email(email)
        logger.info(f"Admin {acting_admin} approved admission of {email} into {student.enrolled_class_name}.")
        return student

    async def reject(self, email: str, acting_admin: Optional[str]) -> int:
        await self.guard.require_admin(acting_admin)
        deleted = await self.pending.delete_by_email(email)
        if not deleted:
            raise NotFound(f"No pending application for {email}")
        logger.info(f"Admin {acting_admin} rejected admission of {email}.")
        return deleted

    async def list_pending(self, acting_admin: Optional[str], skip: int = 0, limit: int = 100) -> List[PendingStudent]:
        await self.guard.require_admin(acting_admin)
        return await self.pending.list(skip=skip, limit=limit)

    async def get_pending(self, email: str, identity: Optional[str]) -> PendingStudent:
        await self.guard.require_self_or_admin(identity, email)
        application = await self.pending.get_by_email(email)
        if application is None:
            raise NotFound(f"No pending application for {email}")
        return application

    async def find_stale_applications(self, acting_admin: Optional[str]) -> List[PendingStudent]:
        """Pending records whose email already has a Student: left behind by an interrupted approval."""
        await self.guard.require_admin(acting_admin)
        stale: List[PendingStudent] = []
        skip = 0
        while True:
            batch = await self.pending.list(skip=skip, limit=STALE_SCAN_BATCH_SIZE)
            enrolled = await self.students.emails_with_records(application.email for application in batch)
            stale.extend(application for application in batch if application.email in enrolled)
            if len(batch) < STALE_SCAN_BATCH_SIZE:
                return stale
            skip += len(batch)
