# app/api/deps.py
"""
FastAPI dependencies that build repositories and services per request.

Tests replace get_db through app.dependency_overrides; every other
dependency is derived from it.
"""
from typing import Annotated, Optional

from fastapi import Depends, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core import security
from app.core.exceptions import InternalError
from app.db.database import get_database
from app.db.repositories import (
    ClassRepository,
    NoticeRepository,
    PendingStudentRepository,
    RollUpdateRepository,
    StoryRepository,
    StudentRepository,
    SubjectRepository,
    TeacherProfileRepository,
    UserRepository,
)
from app.models.enums import Role
from app.services.admission import AdmissionWorkflow
from app.services.auth_guard import AuthorizationGuard
from app.services.content import ContentService
from app.services.identity_provider import KindeManagementClient
from app.services.role_assignment import RoleAssignmentWorkflow
from app.services.students import StudentDirectory
from app.services.users import UserDirectory


def get_db() -> AsyncIOMotorDatabase:
    db = get_database()
    if db is None:
        raise InternalError("Database connection not available")
    return db

Database = Annotated[AsyncIOMotorDatabase, Depends(get_db)]


def get_requester(request: Request) -> Optional[str]:
    return security.get_requester_email(request)

Requester = Annotated[Optional[str], Depends(get_requester)]


def get_identity_provider() -> KindeManagementClient:
    return KindeManagementClient.from_settings()


# --- Services ---

def get_guard(db: Database) -> AuthorizationGuard:
    return AuthorizationGuard(UserRepository(db))

def get_admission_workflow(db: Database) -> AdmissionWorkflow:
    users = UserRepository(db)
    return AdmissionWorkflow(
        pending=PendingStudentRepository(db),
        students=StudentRepository(db),
        users=users,
        guard=AuthorizationGuard(users),
    )

def get_role_workflow(db: Database) -> RoleAssignmentWorkflow:
    users = UserRepository(db)
    return RoleAssignmentWorkflow(
        users=users,
        classes=ClassRepository(db),
        students=StudentRepository(db),
        guard=AuthorizationGuard(users),
    )

def get_student_directory(db: Database) -> StudentDirectory:
    users = UserRepository(db)
    return StudentDirectory(StudentRepository(db), users, AuthorizationGuard(users))

def get_user_directory(
    db: Database,
    identity_provider: Annotated[KindeManagementClient, Depends(get_identity_provider)],
) -> UserDirectory:
    users = UserRepository(db)
    return UserDirectory(
        users,
        AuthorizationGuard(users),
        identity_provider,
        # Looked up at call time so tests can patch app.core.security.validate_token
        token_validator=lambda token: security.validate_token(token),
    )


# --- Content services ---

def get_class_service(db: Database, guard: Annotated[AuthorizationGuard, Depends(get_guard)]) -> ContentService:
    return ContentService(ClassRepository(db), guard, label="Class")

def get_notice_service(db: Database, guard: Annotated[AuthorizationGuard, Depends(get_guard)]) -> ContentService:
    return ContentService(NoticeRepository(db), guard, label="Notice")

def get_story_service(db: Database, guard: Annotated[AuthorizationGuard, Depends(get_guard)]) -> ContentService:
    return ContentService(StoryRepository(db), guard, label="Story")

def get_subject_service(db: Database, guard: Annotated[AuthorizationGuard, Depends(get_guard)]) -> ContentService:
    return ContentService(SubjectRepository(db), guard, label="Subject", classes=ClassRepository(db))

def get_teacher_profile_service(db: Database, guard: Annotated[AuthorizationGuard, Depends(get_guard)]) -> ContentService:
    return ContentService(TeacherProfileRepository(db), guard, label="Teacher")

def get_roll_update_service(db: Database, guard: Annotated[AuthorizationGuard, Depends(get_guard)]) -> ContentService:
    return ContentService(
        RollUpdateRepository(db),
        guard,
        label="Roll update",
        write_roles=(Role.TEACHER, Role.ADMIN),
        classes=ClassRepository(db),
        record_author=True,
    )
