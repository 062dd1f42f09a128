# app/api/v1/endpoints/content.py
"""
Routers for the simple content collections.

Each collection gets the same five routes: list, get, create, update and
delete. Reads are public; the service decides who may write.
"""
import logging
from typing import Any, Callable, Dict, List, Sequence, Type

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel

from app.api.deps import (
    Requester,
    get_notice_service,
    get_roll_update_service,
    get_story_service,
    get_subject_service,
    get_teacher_profile_service,
)
from app.models.content import (
    Notice, NoticeCreate, NoticeUpdate,
    RollUpdate, RollUpdateCreate, RollUpdateUpdate,
    Story, StoryCreate, StoryUpdate,
    Subject, SubjectCreate, SubjectUpdate,
    TeacherProfile, TeacherProfileCreate, TeacherProfileUpdate,
)
from app.services.content import ContentService

logger = logging.getLogger(__name__)


def build_content_router(
    prefix: str,
    tag: str,
    model: Type[BaseModel],
    create_model: Type[BaseModel],
    update_model: Type[BaseModel],
    get_service: Callable[..., ContentService],
    filter_fields: Sequence[str] = (),
) -> APIRouter:
    """filter_fields are stored keys that may be passed as equality filters in the query string."""
    router = APIRouter(prefix=prefix, tags=[tag])

    @router.get("", response_model=List[model], summary=f"List {tag.lower()}")
    async def list_documents(
        request: Request,
        skip: int = Query(0, ge=0),
        limit: int = Query(100, ge=1, le=1000),
        service: ContentService = Depends(get_service),
    ):
        filters = {field: request.query_params.get(field) for field in filter_fields}
        return await service.list(filters, skip=skip, limit=limit)

    @router.get("/{doc_id}", response_model=model, summary=f"Get one of {tag.lower()} by id")
    async def read_document(doc_id: str, service: ContentService = Depends(get_service)):
        return await service.get(doc_id)

    @router.post("", response_model=model, status_code=status.HTTP_201_CREATED, summary=f"Create in {tag.lower()}")
    async def create_document(
        data: create_model,
        requester: Requester,
        service: ContentService = Depends(get_service),
    ):
        return await service.create(data, requester)

    @router.patch("/{doc_id}", response_model=model, summary=f"Update one of {tag.lower()}")
    async def update_document(
        doc_id: str,
        data: update_model,
        requester: Requester,
        service: ContentService = Depends(get_service),
    ):
        return await service.update(doc_id, data, requester)

    @router.delete("/{doc_id}", summary=f"Delete one of {tag.lower()}")
    async def delete_document(
        doc_id: str,
        requester: Requester,
        service: ContentService = Depends(get_service),
    ) -> Dict[str, Any]:
        deleted = await service.delete(doc_id, requester)
        return {"deletedCount": deleted}

    return router


notices_router = build_content_router(
    "/notices", "Notices", Notice, NoticeCreate, NoticeUpdate, get_notice_service,
    filter_fields=("category",),
)
stories_router = build_content_router(
    "/stories", "Stories", Story, StoryCreate, StoryUpdate, get_story_service,
)
subjects_router = build_content_router(
    "/subjects", "Subjects", Subject, SubjectCreate, SubjectUpdate, get_subject_service,
    filter_fields=("classId", "className"),
)
teachers_router = build_content_router(
    "/teachers", "Teachers", TeacherProfile, TeacherProfileCreate, TeacherProfileUpdate, get_teacher_profile_service,
)
roll_updates_router = build_content_router(
    "/rollUpdates", "Roll Updates", RollUpdate, RollUpdateCreate, RollUpdateUpdate, get_roll_update_service,
    filter_fields=("classId", "studentEmail"),
)

routers = [notices_router, stories_router, subjects_router, teachers_router, roll_updates_router]
