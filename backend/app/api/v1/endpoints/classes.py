# app/api/v1/endpoints/classes.py
from typing import List

from fastapi import APIRouter, Depends

from app.api.deps import get_class_service
from app.models.school_class import SchoolClass
from app.services.content import ContentService

router = APIRouter(
    prefix="/classes",
    tags=["Classes"]
)


@router.get("", response_model=List[SchoolClass], summary="List the class catalog")
async def list_classes(service: ContentService = Depends(get_class_service)):
    return await service.list(limit=1000)


@router.get("/{class_id}", response_model=SchoolClass, summary="Get a class by id")
async def read_class(class_id: str, service: ContentService = Depends(get_class_service)):
    return await service.get(class_id)
