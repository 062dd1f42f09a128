# app/models/base.py
from typing import Annotated, Optional
from datetime import datetime, timezone

from bson import ObjectId
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

# MongoDB ObjectIds are exposed to clients as plain strings
PyObjectId = Annotated[str, BeforeValidator(lambda value: str(value) if isinstance(value, ObjectId) else value)]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MongoModel(BaseModel):
    """
    Base for documents stored in MongoDB.

    Python attributes are snake_case; stored keys and JSON bodies are
    camelCase (e.g. enrolled_class_name <-> enrolledClassName).
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
    )


class StoredDocument(MongoModel):
    """Common fields of every persisted document."""
    id: Optional[PyObjectId] = Field(default=None, alias="_id", description="MongoDB document id")
    created_at: Optional[datetime] = Field(default=None, description="When the document was created")
    updated_at: Optional[datetime] = Field(default=None, description="When the document was last updated")
