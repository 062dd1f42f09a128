# backend/tests/conftest.py
import copy
import logging
from typing import Any, AsyncGenerator, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from bson import ObjectId
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError
from pymongo.results import DeleteResult, InsertManyResult, InsertOneResult, UpdateResult
from pytest_mock import MockerFixture

from app.api.deps import get_db
from app.db.init_db import ensure_indexes, seed_reference_data
from app.db.repositories import ClassRepository, UserRepository

logger = logging.getLogger(__name__)

ADMIN_EMAIL = "admin@example.com"
TEACHER_EMAIL = "farhana@example.com"
USER_EMAIL = "amina@example.com"
OTHER_USER_EMAIL = "rahim@example.com"

AMINA_APPLICATION = {
    "name": "Amina K",
    "email": USER_EMAIL,
    "dob": "2015-03-02",
    "gender": "Female",
    "className": "Class 5",
    "parentName": "Karim K",
    "phone": "01712345678",
    "address": "12 Lake Road, Dhaka",
}


# --- In-memory stand-in for a Motor database ---
# Supports the subset of the Motor API the repositories use.

def _matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for key, expected in query.items():
        actual = doc.get(key)
        if isinstance(expected, dict) and "$in" in expected:
            if actual not in expected["$in"]:
                return False
        elif actual != expected:
            return False
    return True


class FakeCursor:
    def __init__(self, docs: List[Dict[str, Any]]):
        self._docs = docs
        self._skip = 0
        self._limit = 0

    def sort(self, key: str, direction: int = ASCENDING) -> "FakeCursor":
        present = [doc for doc in self._docs if doc.get(key) is not None]
        missing = [doc for doc in self._docs if doc.get(key) is None]
        present.sort(key=lambda doc: doc[key], reverse=direction != ASCENDING)
        self._docs = present + missing
        return self

    def skip(self, count: int) -> "FakeCursor":
        self._skip = count
        return self

    def limit(self, count: int) -> "FakeCursor":
        self._limit = count
        return self

    def _window(self) -> List[Dict[str, Any]]:
        docs = self._docs[self._skip:]
        return docs[:self._limit] if self._limit else docs

    async def to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        docs = self._window()
        return docs[:length] if length else docs

    def __aiter__(self):
        self._iter = iter(self._window())
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    def __init__(self, name: str):
        self.name = name
        self.docs: List[Dict[str, Any]] = []
        self.unique_fields: List[str] = []

    def _check_unique(self, candidate: Dict[str, Any], ignore: Optional[Dict[str, Any]] = None) -> None:
        for field in self.unique_fields:
            if field not in candidate:
                continue
            for doc in self.docs:
                if doc is not ignore and doc.get(field) == candidate[field]:
                    raise DuplicateKeyError(
                        f"E11000 duplicate key error collection: {self.name} index: {field}_1",
                        code=11000,
                        details={"keyValue": {field: candidate[field]}},
                    )

    def _find(self, query: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [doc for doc in self.docs if _matches(doc, query or {})]

    async def create_index(self, keys, name: Optional[str] = None, unique: bool = False, **kwargs) -> str:
        field = keys if isinstance(keys, str) else keys[0][0]
        if unique and field not in self.unique_fields:
            self.unique_fields.append(field)
        return name or f"{field}_1"

    async def insert_one(self, doc: Dict[str, Any]) -> InsertOneResult:
        stored = copy.deepcopy(doc)
        stored.setdefault("_id", ObjectId())
        self._check_unique(stored)
        self.docs.append(stored)
        return InsertOneResult(stored["_id"], True)

    async def insert_many(self, docs: List[Dict[str, Any]]) -> InsertManyResult:
        ids = [(await self.insert_one(doc)).inserted_id for doc in docs]
        return InsertManyResult(ids, True)

    async def find_one(self, query: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        found = self._find(query)
        return copy.deepcopy(found[0]) if found else None

    def find(self, query: Optional[Dict[str, Any]] = None) -> FakeCursor:
        return FakeCursor([copy.deepcopy(doc) for doc in self._find(query)])

    async def count_documents(self, query: Dict[str, Any]) -> int:
        return len(self._find(query))

    @staticmethod
    def _apply(doc: Dict[str, Any], update: Dict[str, Any]) -> None:
        doc.update(copy.deepcopy(update.get("$set", {})))
        for field in update.get("$unset", {}):
            doc.pop(field, None)

    async def update_one(self, query: Dict[str, Any], update: Dict[str, Any], upsert: bool = False) -> UpdateResult:
        found = self._find(query)
        if found:
            self._apply(found[0], update)
            return UpdateResult({"n": 1, "nModified": 1}, True)
        if not upsert:
            return UpdateResult({"n": 0, "nModified": 0}, True)
        doc = {key: value for key, value in query.items() if not isinstance(value, dict)}
        doc.update(copy.deepcopy(update.get("$setOnInsert", {})))
        self._apply(doc, update)
        result = await self.insert_one(doc)
        return UpdateResult({"n": 1, "nModified": 0, "upserted": result.inserted_id}, True)

    async def find_one_and_update(
        self,
        query: Dict[str, Any],
        update: Dict[str, Any],
        return_document: bool = ReturnDocument.BEFORE,
    ) -> Optional[Dict[str, Any]]:
        found = self._find(query)
        if not found:
            return None
        before = copy.deepcopy(found[0])
        self._apply(found[0], update)
        return copy.deepcopy(found[0]) if return_document == ReturnDocument.AFTER else before

    async def delete_one(self, query: Dict[str, Any]) -> DeleteResult:
        found = self._find(query)
        if found:
            self.docs.remove(found[0])
        return DeleteResult({"n": len(found[:1])}, True)


class FakeDatabase:
    def __init__(self, name: str = "school_portal_test"):
        self.name = name
        self.client = None
        self._collections: Dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self._collections:
            self._collections[name] = FakeCollection(name)
        return self._collections[name]

    def get_collection(self, name: str) -> FakeCollection:
        return self[name]

    async def list_collection_names(self) -> List[str]:
        return [name for name, collection in self._collections.items() if collection.docs]


# --- Fixtures ---

@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest_asyncio.fixture
async def seeded_db(fake_db: FakeDatabase) -> FakeDatabase:
    """Indexes, reference data, and one user per role."""
    await ensure_indexes(fake_db)
    await seed_reference_data(fake_db)
    users = UserRepository(fake_db)
    await users.create({"email": ADMIN_EMAIL, "name": "Head Office", "role": "admin"})
    await users.create({"email": TEACHER_EMAIL, "name": "Farhana Teacher", "role": "teacher", "shift": "Morning"})
    await users.create({"email": USER_EMAIL, "name": "Amina K", "role": "user"})
    await users.create({"email": OTHER_USER_EMAIL, "name": "Rahim", "role": "user"})
    return fake_db


@pytest_asyncio.fixture
async def class_ids(seeded_db: FakeDatabase) -> Dict[str, str]:
    """Maps class name to its stored id."""
    classes = await ClassRepository(seeded_db).list(limit=100)
    return {school_class.name: school_class.id for school_class in classes}


@pytest_asyncio.fixture
async def app(mocker: MockerFixture, seeded_db: FakeDatabase) -> AsyncGenerator[FastAPI, None]:
    """The FastAPI app running its startup against the in-memory database."""
    mocker.patch("app.main.connect_to_mongo", new_callable=AsyncMock, return_value=True)
    mocker.patch("app.main.close_mongo_connection", new_callable=AsyncMock, return_value=None)
    mocker.patch("app.main.get_database", return_value=seeded_db)
    # Used by the health endpoints
    mocker.patch("app.db.database.get_database", return_value=seeded_db)

    from app.main import app as fastapi_app

    fastapi_app.dependency_overrides[get_db] = lambda: seeded_db
    async with LifespanManager(fastapi_app, startup_timeout=15, shutdown_timeout=15):
        yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as async_client:
        yield async_client


def as_user(email: str) -> Dict[str, str]:
    """Request headers claiming the given identity."""
    return {"x-user-email": email}
