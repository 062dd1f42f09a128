# app/models/student.py
import re
from typing import Optional
from datetime import date, datetime

from pydantic import ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from .base import MongoModel, StoredDocument
from .enums import CLASS_CATALOG, SENIOR_CLASSES, Gender, Stream

# ASCII digits only
PHONE_REGEX = r"^[0-9]{11}$"
PHONE_PATTERN = re.compile(PHONE_REGEX)


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        return datetime.fromisoformat(value).date()


# Properties submitted by an applicant. Field order is validation order.
class PendingStudentCreate(MongoModel):
    name: str
    email: str
    dob: str
    gender: Gender
    class_name: str
    stream: Optional[str] = Field(None, validate_default=True)
    parent_name: str
    phone: str
    address: str

    @field_validator("name", "parent_name")
    @classmethod
    def at_least_two_characters(cls, value: str, info: ValidationInfo) -> str:
        value = value.strip()
        if len(value) < 2:
            raise ValueError(f"{to_camel(info.field_name)} must be at least 2 characters")
        return value

    @field_validator("email")
    @classmethod
    def looks_like_email(cls, value: str) -> str:
        value = value.strip()
        if "@" not in value:
            raise ValueError("email must contain '@'")
        return value

    @field_validator("dob")
    @classmethod
    def parseable_date(cls, value: str) -> str:
        try:
            return _parse_date(value.strip()).isoformat()
        except ValueError:
            raise ValueError("dob must be a valid date (YYYY-MM-DD)")

    @field_validator("class_name")
    @classmethod
    def known_class(cls, value: str) -> str:
        if value not in CLASS_CATALOG:
            raise ValueError(f"className must be one of: {', '.join(CLASS_CATALOG)}")
        return value

    @field_validator("stream")
    @classmethod
    def stream_for_senior_classes(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        class_name = info.data.get("class_name")
        if class_name is None:
            # className already failed; report that instead
            return value
        if class_name not in SENIOR_CLASSES:
            return None
        allowed = [stream.value for stream in Stream]
        if value not in allowed:
            raise ValueError(f"stream is required for {class_name} and must be one of: {', '.join(allowed)}")
        return value

    @field_validator("phone")
    @classmethod
    def eleven_digits(cls, value: str) -> str:
        value = value.strip()
        if not PHONE_PATTERN.match(value):
            raise ValueError("phone must be exactly 11 digits")
        return value

    @field_validator("address")
    @classmethod
    def at_least_five_characters(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 5:
            raise ValueError("address must be at least 5 characters")
        return value


class PendingStudent(StoredDocument):
    name: str
    email: str
    dob: Optional[str] = None
    gender: Optional[str] = None
    class_name: str
    stream: Optional[str] = None
    parent_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    registration_number: int
    status: str = "pending"


class Student(StoredDocument):
    name: str
    email: str
    dob: Optional[str] = None
    gender: Optional[str] = None
    class_name: Optional[str] = None
    stream: Optional[str] = None
    parent_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    photo_url: Optional[str] = Field(None, alias="photoURL")
    registration_number: Optional[int] = None
    role: str = "student"
    enrolled_class_name: Optional[str] = None
    approved_at: Optional[datetime] = None


# Model for the student-facing profile update
class StudentUpdate(MongoModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    phone: Optional[str] = Field(None, pattern=PHONE_REGEX)
    photo_url: Optional[str] = Field(None, alias="photoURL")
    parent_name: Optional[str] = Field(None, min_length=2)
    address: Optional[str] = Field(None, min_length=5)

    # enrolledClassName and anything else unknown is rejected
    model_config = ConfigDict(extra="forbid")
