# app/api/v1/endpoints/students.py
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query

from app.api.deps import Requester, get_student_directory
from app.models.student import Student
from app.services.students import StudentDirectory

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/students",
    tags=["Students"]
)


@router.get(
    "",
    response_model=List[Student],
    summary="List enrolled students (teacher or admin)",
)
async def list_students(
    requester: Requester,
    class_name: Optional[str] = Query(None, alias="className", description="Filter by enrolled class"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    directory: StudentDirectory = Depends(get_student_directory),
):
    return await directory.list_students(requester, class_name=class_name, skip=skip, limit=limit)


@router.get(
    "/{email}",
    response_model=Student,
    summary="Get a student by email (the student, a teacher or admin)",
)
async def read_student(
    email: str,
    requester: Requester,
    directory: StudentDirectory = Depends(get_student_directory),
):
    return await directory.get_student(email, requester)


@router.patch(
    "/{email}",
    response_model=Student,
    summary="Update a student's profile (self or admin)",
    description="enrolledClassName is set only by admission approval and is rejected here.",
)
async def update_student(
    email: str,
    requester: Requester,
    payload: Any = Body(...),
    directory: StudentDirectory = Depends(get_student_directory),
):
    return await directory.update_student(email, payload, requester)


@router.delete(
    "/{email}",
    summary="Delete a student record (admin)",
)
async def delete_student(
    email: str,
    requester: Requester,
    directory: StudentDirectory = Depends(get_student_directory),
) -> Dict[str, int]:
    deleted = await directory.delete_student(email, requester)
    return {"deletedCount": deleted}
