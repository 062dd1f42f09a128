# app/db/repositories.py
"""
One repository per MongoDB collection.

Repositories are constructed from a database handle (see app.api.deps) and
passed into the services that need them. They translate between stored
documents and the Pydantic models; driver errors propagate to the caller.
"""
import logging
from typing import Any, Dict, Generic, Iterable, List, Optional, Set, Tuple, Type, TypeVar

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from app.models.base import StoredDocument, utc_now
from app.models.content import Notice, RollUpdate, Story, Subject, TeacherProfile
from app.models.school_class import SchoolClass
from app.models.student import PendingStudent, Student
from app.models.user import User

logger = logging.getLogger(__name__)

# --- MongoDB Collection Names ---
USER_COLLECTION = "users"
PENDING_STUDENT_COLLECTION = "pendingStudents"
STUDENT_COLLECTION = "students"
CLASS_COLLECTION = "classes"
SUBJECT_COLLECTION = "subjects"
TEACHER_COLLECTION = "teachers"
NOTICE_COLLECTION = "notices"
STORY_COLLECTION = "stories"
ROLL_UPDATE_COLLECTION = "rollUpdates"

EXPECTED_COLLECTIONS = (
    USER_COLLECTION,
    PENDING_STUDENT_COLLECTION,
    STUDENT_COLLECTION,
    CLASS_COLLECTION,
    SUBJECT_COLLECTION,
    TEACHER_COLLECTION,
    NOTICE_COLLECTION,
    STORY_COLLECTION,
    ROLL_UPDATE_COLLECTION,
)

ModelT = TypeVar("ModelT", bound=StoredDocument)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Returns an ObjectId for a valid id string, None otherwise."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


class MongoRepository(Generic[ModelT]):
    collection_name: str = ""
    model: Type[ModelT]
    default_sort: Tuple[str, int] = ("createdAt", DESCENDING)

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db[self.collection_name]

    def _to_model(self, doc: Optional[Dict[str, Any]]) -> Optional[ModelT]:
        if doc is None:
            return None
        return self.model.model_validate(doc)

    async def count(self, query: Optional[Dict[str, Any]] = None) -> int:
        return await self.collection.count_documents(query or {})

    async def get_by_id(self, doc_id: str) -> Optional[ModelT]:
        object_id = to_object_id(doc_id)
        if object_id is None:
            logger.debug(f"Ignoring malformed id '{doc_id}' for {self.collection_name}")
            return None
        return self._to_model(await self.collection.find_one({"_id": object_id}))

    async def list(self, query: Optional[Dict[str, Any]] = None, skip: int = 0, limit: int = 100) -> List[ModelT]:
        cursor = self.collection.find(query or {}).sort(*self.default_sort).skip(skip).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [self._to_model(doc) for doc in docs]

    async def create(self, data: Dict[str, Any]) -> ModelT:
        now = utc_now()
        doc = {**data, "createdAt": now, "updatedAt": now}
        doc.pop("_id", None)
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info(f"Inserted {self.collection_name} document {result.inserted_id}")
        return self._to_model(doc)

    async def insert_many(self, docs: Iterable[Dict[str, Any]]) -> int:
        now = utc_now()
        stamped = [{**doc, "createdAt": now, "updatedAt": now} for doc in docs]
        if not stamped:
            return 0
        result = await self.collection.insert_many(stamped)
        return len(result.inserted_ids)

    async def update_by_id(self, doc_id: str, data: Dict[str, Any]) -> Optional[ModelT]:
        object_id = to_object_id(doc_id)
        if object_id is None:
            return None
        updated = await self.collection.find_one_and_update(
            {"_id": object_id},
            {"$set": {**data, "updatedAt": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )
        return self._to_model(updated)

    async def delete_by_id(self, doc_id: str) -> int:
        object_id = to_object_id(doc_id)
        if object_id is None:
            return 0
        result = await self.collection.delete_one({"_id": object_id})
        return result.deleted_count


class EmailKeyedRepository(MongoRepository[ModelT]):
    """Collections whose documents are identified by a unique email."""

    async def get_by_email(self, email: str) -> Optional[ModelT]:
        return self._to_model(await self.collection.find_one({"email": email}))

    async def update_by_email(
        self,
        email: str,
        set_fields: Dict[str, Any],
        unset_fields: Iterable[str] = (),
    ) -> Optional[ModelT]:
        """Applies one update to the document for email. Returns it afterwards, or None if absent."""
        update: Dict[str, Any] = {"$set": {**set_fields, "updatedAt": utc_now()}}
        unset = {field: "" for field in unset_fields if field not in set_fields}
        if unset:
            update["$unset"] = unset
        updated = await self.collection.find_one_and_update(
            {"email": email},
            update,
            return_document=ReturnDocument.AFTER,
        )
        return self._to_model(updated)

    async def delete_by_email(self, email: str) -> int:
        result = await self.collection.delete_one({"email": email})
        return result.deleted_count


class UserRepository(EmailKeyedRepository[User]):
    collection_name = USER_COLLECTION
    model = User

    async def list_users(self, role: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[User]:
        query = {"role": role} if role else {}
        return await self.list(query, skip=skip, limit=limit)


class PendingStudentRepository(EmailKeyedRepository[PendingStudent]):
    collection_name = PENDING_STUDENT_COLLECTION
    model = PendingStudent
    # Oldest applications first
    default_sort = ("createdAt", ASCENDING)


class StudentRepository(EmailKeyedRepository[Student]):
    collection_name = STUDENT_COLLECTION
    model = Student

    async def insert_if_absent(self, data: Dict[str, Any]) -> Tuple[Student, bool]:
        """
        Inserts a student keyed by email unless one already exists.

        Returns the stored student and whether this call created it. Two
        concurrent calls for the same email produce a single document.
        """
        email = data["email"]
        now = utc_now()
        doc = {**data, "updatedAt": now}
        doc.setdefault("createdAt", now)
        doc.pop("_id", None)
        result = await self.collection.update_one(
            {"email": email},
            {"$setOnInsert": doc},
            upsert=True,
        )
        created = result.upserted_id is not None
        student = await self.get_by_email(email)
        return student, created

    async def emails_with_records(self, emails: Iterable[str]) -> Set[str]:
        emails = list(emails)
        if not emails:
            return set()
        cursor = self.collection.find({"email": {"$in": emails}})
        docs = await cursor.to_list(length=len(emails))
        return {doc["email"] for doc in docs}

    async def list_students(self, class_name: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[Student]:
        query = {"enrolledClassName": class_name} if class_name else {}
        return await self.list(query, skip=skip, limit=limit)


class ClassRepository(MongoRepository[SchoolClass]):
    collection_name = CLASS_COLLECTION
    model = SchoolClass
    default_sort = ("level", ASCENDING)


class SubjectRepository(MongoRepository[Subject]):
    collection_name = SUBJECT_COLLECTION
    model = Subject
    default_sort = ("name", ASCENDING)


class TeacherProfileRepository(MongoRepository[TeacherProfile]):
    collection_name = TEACHER_COLLECTION
    model = TeacherProfile
    default_sort = ("name", ASCENDING)


class NoticeRepository(MongoRepository[Notice]):
    collection_name = NOTICE_COLLECTION
    model = Notice


class StoryRepository(MongoRepository[Story]):
    collection_name = STORY_COLLECTION
    model = Story


class RollUpdateRepository(MongoRepository[RollUpdate]):
    collection_name = ROLL_UPDATE_COLLECTION
    model = RollUpdate
