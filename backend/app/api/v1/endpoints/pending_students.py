# app/api/v1/endpoints/pending_students.py
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, Query, status

from app.api.deps import Requester, get_admission_workflow
from app.models.student import PendingStudent
from app.services.admission import AdmissionWorkflow

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/pendingStudents",
    tags=["Admissions"]
)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Submit an admission application",
    description=(
        "Public. Validates the application, assigns a random 6-digit registration number "
        "and stores it as pending. Returns 409 if the email already has a pending "
        "application or a student record."
    ),
)
async def submit_application(
    payload: Any = Body(...),
    workflow: AdmissionWorkflow = Depends(get_admission_workflow),
) -> Dict[str, Any]:
    application = await workflow.submit(payload)
    return {"insertedId": application.id, "registrationNumber": application.registration_number}


@router.get(
    "",
    response_model=List[PendingStudent],
    summary="List pending applications (admin)",
)
async def list_applications(
    requester: Requester,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    workflow: AdmissionWorkflow = Depends(get_admission_workflow),
):
    return await workflow.list_pending(requester, skip=skip, limit=limit)


@router.get(
    "/stale",
    response_model=List[PendingStudent],
    summary="List applications left behind by an interrupted approval (admin)",
    description="Pending applications whose email already has a student record. Approving them again completes them.",
)
async def list_stale_applications(
    requester: Requester,
    workflow: AdmissionWorkflow = Depends(get_admission_workflow),
):
    return await workflow.find_stale_applications(requester)


@router.get(
    "/{email}",
    response_model=PendingStudent,
    summary="Get a pending application (applicant or admin)",
)
async def read_application(
    email: str,
    requester: Requester,
    workflow: AdmissionWorkflow = Depends(get_admission_workflow),
):
    return await workflow.get_pending(email, requester)


@router.post(
    "/approve/{email}",
    summary="Approve a pending application (admin)",
    responses={404: {"description": "No pending application for the email"}},
)
async def approve_application(
    email: str,
    requester: Requester,
    workflow: AdmissionWorkflow = Depends(get_admission_workflow),
) -> Dict[str, Any]:
    student = await workflow.approve(email, requester)
    return {"insertedId": student.id}


@router.post(
    "/reject/{email}",
    summary="Reject a pending application (admin)",
    responses={404: {"description": "No pending application for the email"}},
)
async def reject_application(
    email: str,
    requester: Requester,
    workflow: AdmissionWorkflow = Depends(get_admission_workflow),
) -> Dict[str, int]:
    deleted = await workflow.reject(email, requester)
    return {"deletedCount": deleted}
