# app/db/init_db.py
import logging
from typing import Any, Dict, List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import OperationFailure

from app.models.enums import CLASS_CATALOG, SENIOR_CLASSES
from .repositories import (
    ClassRepository,
    NoticeRepository,
    StoryRepository,
    PENDING_STUDENT_COLLECTION,
    STUDENT_COLLECTION,
    USER_COLLECTION,
)

logger = logging.getLogger(__name__)

# Collections whose documents are unique per email
EMAIL_UNIQUE_COLLECTIONS = (USER_COLLECTION, STUDENT_COLLECTION, PENDING_STUDENT_COLLECTION)

DEFAULT_STORIES: List[Dict[str, Any]] = [
    {
        "title": "Science Fair Champions",
        "content": "Our Class 9 science team took first place at the district science fair with a low-cost water filter.",
        "author": "School Office",
    },
    {
        "title": "Annual Sports Day",
        "content": "Over four hundred students competed across twenty events at this year's sports day.",
        "author": "Physical Education Department",
    },
    {
        "title": "Library Reading Challenge",
        "content": "Students from Class 3 to Class 8 read more than two thousand books during the winter reading challenge.",
        "author": "Library",
    },
]

DEFAULT_NOTICES: List[Dict[str, Any]] = [
    {
        "title": "Admissions Open",
        "description": "Applications for the new academic session are open for all classes. Apply online through the admission form.",
        "category": "Admission",
    },
    {
        "title": "Half-Yearly Examination Schedule",
        "description": "The half-yearly examination routine will be published on the notice board two weeks before exams begin.",
        "category": "Exam",
    },
]


def class_catalog_documents() -> List[Dict[str, Any]]:
    return [
        {"name": name, "level": level, "requiresStream": name in SENIOR_CLASSES}
        for level, name in enumerate(CLASS_CATALOG)
    ]


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Creates the unique email indexes. Failures are logged, not raised."""
    for collection_name in EMAIL_UNIQUE_COLLECTIONS:
        index_name = f"idx_{collection_name}_email"
        try:
            await db[collection_name].create_index([("email", ASCENDING)], name=index_name, unique=True)
            logger.info(f"Index '{index_name}' on {collection_name}.email ensured (unique).")
        except OperationFailure as e:
            if e.code == 67:  # CannotCreateIndex (Cosmos DB: unique index on a non-empty collection)
                logger.warning(
                    f"Could not create unique index '{index_name}' because {collection_name} is not empty. "
                    f"Create it manually if it does not exist. Error: {e.details}"
                )
            elif e.code == 13:  # Unauthorized (Cosmos DB index modification restriction)
                logger.warning(
                    f"Could not modify existing unique index '{index_name}' on {collection_name}. "
                    f"Continuing startup. Error details: {e.details}"
                )
            else:
                logger.error(f"Database OperationFailure while creating index '{index_name}': {e}", exc_info=True)


async def seed_reference_data(db: AsyncIOMotorDatabase) -> Dict[str, int]:
    """
    Seeds classes, stories and notices when their collections are empty.

    Uses count-then-insert, so two processes starting at the same moment
    against an empty database can both insert. Returns inserted counts.
    """
    inserted = {}
    seeds = (
        ("classes", ClassRepository(db), class_catalog_documents()),
        ("stories", StoryRepository(db), DEFAULT_STORIES),
        ("notices", NoticeRepository(db), DEFAULT_NOTICES),
    )
    for label, repository, documents in seeds:
        existing = await repository.count()
        if existing:
            logger.debug(f"Skipping {label} seed: {existing} documents present.")
            inserted[label] = 0
            continue
        inserted[label] = await repository.insert_many(documents)
        logger.info(f"Seeded {inserted[label]} {label}.")
    return inserted
