# app/models/school_class.py
from typing import Optional

from pydantic import Field

from .base import StoredDocument


class SchoolClass(StoredDocument):
    """One grade level from the fixed class catalog."""
    name: str = Field(..., description="Grade level name, e.g. 'Class 5'")
    level: Optional[int] = Field(None, description="Position in the catalog, 0 = most junior")
    requires_stream: bool = Field(default=False, description="Whether admission requires a stream")
