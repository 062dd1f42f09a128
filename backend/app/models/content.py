# app/models/content.py
"""Simple timestamped documents: notices, stories, subjects, teacher profiles and roll updates."""
from typing import List, Optional

from pydantic import ConfigDict, Field

from .base import MongoModel, StoredDocument


# --- Notices ---
class NoticeCreate(MongoModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    category: Optional[str] = Field(None, description="e.g. 'Exam', 'Holiday', 'Event'")

class NoticeUpdate(MongoModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

class Notice(NoticeCreate, StoredDocument):
    pass


# --- Stories ---
class StoryCreate(MongoModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    author: Optional[str] = None
    image: Optional[str] = Field(None, description="Image URL")

class StoryUpdate(MongoModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1)
    author: Optional[str] = None
    image: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

class Story(StoryCreate, StoredDocument):
    pass


# --- Subjects ---
class SubjectCreate(MongoModel):
    name: str = Field(..., min_length=1, max_length=100)
    class_id: str = Field(..., min_length=1, description="Id of the class this subject belongs to")
    class_name: Optional[str] = None
    code: Optional[str] = Field(None, max_length=20)

class SubjectUpdate(MongoModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    code: Optional[str] = Field(None, max_length=20)

    model_config = ConfigDict(extra="forbid")

class Subject(SubjectCreate, StoredDocument):
    pass


# --- Teacher profiles (public staff listing) ---
class TeacherProfileCreate(MongoModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: Optional[str] = None
    designation: Optional[str] = Field(None, description="e.g. 'Senior Teacher'")
    subjects: List[str] = Field(default_factory=list)
    photo_url: Optional[str] = Field(None, alias="photoURL")

class TeacherProfileUpdate(MongoModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    designation: Optional[str] = None
    subjects: Optional[List[str]] = None
    photo_url: Optional[str] = Field(None, alias="photoURL")

    model_config = ConfigDict(extra="forbid")

class TeacherProfile(TeacherProfileCreate, StoredDocument):
    pass


# --- Roll-change records ---
class RollUpdateCreate(MongoModel):
    student_email: str = Field(..., min_length=3)
    class_id: str = Field(..., min_length=1)
    class_name: Optional[str] = None
    old_roll: Optional[int] = Field(None, ge=1)
    new_roll: int = Field(..., ge=1)
    reason: Optional[str] = None

class RollUpdateUpdate(MongoModel):
    new_roll: Optional[int] = Field(None, ge=1)
    reason: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

class RollUpdate(RollUpdateCreate, StoredDocument):
    updated_by: Optional[str] = Field(None, description="Email of the teacher or admin who recorded it")
