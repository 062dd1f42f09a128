# app/services/content.py
import logging
from typing import Any, Dict, Iterable, List, Optional, Type

from pydantic import BaseModel

from app.core.exceptions import NotFound, ValidationError
from app.db.repositories import ClassRepository, MongoRepository
from app.models.enums import Role
from .auth_guard import AuthorizationGuard

logger = logging.getLogger(__name__)


class ContentService:
    """
    CRUD over one simple document collection (notices, stories, subjects, ...).

    Reads are public. Writes require one of write_roles. When a class
    repository is given, documents must reference an existing class by classId.
    """

    def __init__(
        self,
        repository: MongoRepository,
        guard: AuthorizationGuard,
        label: str,
        write_roles: Iterable[Role] = (Role.ADMIN,),
        classes: Optional[ClassRepository] = None,
        record_author: bool = False,
    ):
        self.repository = repository
        self.guard = guard
        self.label = label
        self.write_roles = set(write_roles)
        self.classes = classes
        self.record_author = record_author

    async def list(self, filters: Optional[Dict[str, Any]] = None, skip: int = 0, limit: int = 100) -> List[BaseModel]:
        query = {key: value for key, value in (filters or {}).items() if value is not None}
        return await self.repository.list(query, skip=skip, limit=limit)

    async def get(self, doc_id: str) -> BaseModel:
        document = await self.repository.get_by_id(doc_id)
        if document is None:
            raise NotFound(f"{self.label} {doc_id} not found")
        return document

    async def create(self, data: BaseModel, identity: Optional[str]) -> BaseModel:
        author = await self.guard.require_role(identity, self.write_roles)
        doc = data.model_dump(by_alias=True, exclude_none=True)
        await self._check_class_reference(doc)
        if self.record_author:
            doc["updatedBy"] = author.email
        created = await self.repository.create(doc)
        logger.info(f"{author.email} created {self.label} {created.id}.")
        return created

    async def update(self, doc_id: str, data: BaseModel, identity: Optional[str]) -> BaseModel:
        author = await self.guard.require_role(identity, self.write_roles)
        changes = data.model_dump(by_alias=True, exclude_unset=True)
        if not changes:
            raise ValidationError("No fields supplied", field="body")
        if self.record_author:
            changes["updatedBy"] = author.email
        updated = await self.repository.update_by_id(doc_id, changes)
        if updated is None:
            raise NotFound(f"{self.label} {doc_id} not found")
        logger.info(f"{author.email} updated {self.label} {doc_id}.")
        return updated

    async def delete(self, doc_id: str, identity: Optional[str]) -> int:
        author = await self.guard.require_role(identity, self.write_roles)
        deleted = await self.repository.delete_by_id(doc_id)
        if not deleted:
            raise NotFound(f"{self.label} {doc_id} not found")
        logger.info(f"{author.email} deleted {self.label} {doc_id}.")
        return deleted

    async def _check_class_reference(self, doc: Dict[str, Any]) -> None:
        if self.classes is None or "classId" not in doc:
            return
        school_class = await self.classes.get_by_id(doc["classId"])
        if school_class is None:
            raise NotFound(f"Class {doc['classId']} not found")
        doc.setdefault("className", school_class.name)
