# app/models/user.py
from typing import Annotated, List, Optional
from datetime import datetime

from pydantic import ConfigDict, EmailStr, Field, StringConstraints

from .base import MongoModel, StoredDocument
from .enums import Role, Shift
from .student import PHONE_REGEX

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

# Stored keys that only a teacher may carry. Cleared on every move away from teacher.
TEACHER_FIELDS = ("assignedClasses", "shift", "subjects", "classTime")

# Profile keys copied between a User and the Student with the same email
MIRRORED_FIELDS = ("name", "phone", "photoURL")


class AssignedClass(MongoModel):
    class_id: NonEmptyStr = Field(..., description="Id of an existing class document")
    class_name: NonEmptyStr


class SubjectAssignment(MongoModel):
    class_id: NonEmptyStr
    class_name: NonEmptyStr
    subjects: List[NonEmptyStr] = Field(..., min_length=1, description="Subject names taught in this class")
    room_number: NonEmptyStr
    class_time: NonEmptyStr


class TeacherAssignment(MongoModel):
    """Payload required to promote a user to teacher."""
    shift: Shift
    subjects: List[SubjectAssignment] = Field(..., min_length=1)
    assigned_classes: List[AssignedClass] = Field(..., min_length=1)
    class_time: Optional[str] = None


# Shared base properties
class UserBase(MongoModel):
    email: str = Field(..., description="Login email, unique per user")
    name: Optional[str] = Field(None, description="Display name")
    phone: Optional[str] = None
    photo_url: Optional[str] = Field(None, alias="photoURL")


class UserCreate(MongoModel):
    """Public registration after signing up with the identity provider."""
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    photo_url: Optional[str] = Field(None, alias="photoURL")


class UserProfileUpdate(MongoModel):
    """Fields a user may change on their own profile."""
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    phone: Optional[str] = Field(None, pattern=PHONE_REGEX)
    photo_url: Optional[str] = Field(None, alias="photoURL")

    model_config = ConfigDict(extra="forbid")


class User(UserBase, StoredDocument):
    role: Role = Role.USER

    # Teacher-only fields
    assigned_classes: Optional[List[AssignedClass]] = None
    shift: Optional[Shift] = None
    subjects: Optional[List[SubjectAssignment]] = None
    class_time: Optional[str] = None

    # Student fields, set on admission
    enrolled_class_name: Optional[str] = None
    stream: Optional[str] = None

    last_login_at: Optional[datetime] = None
