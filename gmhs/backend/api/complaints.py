from fastapi import APIRouter, Depends, Query, status
from typing import Optional

from .schemas.complaint import (
    ComplaintCreateRequest, ComplaintUpdateRequest, ComplaintListResponse, ComplaintMutationResponse
)
from ..models.db_models import ComplaintStatus
from ..services.base import ServiceError
from ..services.complaint_service import ComplaintService
from .dependencies import get_complaint_service
from .utilities.errors import to_http_exception

router = APIRouter(prefix="/complaints", tags=["Complaints"])


@router.get("", response_model=ComplaintListResponse, summary="List complaints")
async def list_complaints(
    parent_id: Optional[str] = Query(None, alias="parentId"),
    teacher_id: Optional[str] = Query(None, alias="teacherId"),
    student_id: Optional[str] = Query(None, alias="studentId"),
    complaint_status: Optional[ComplaintStatus] = Query(None, alias="status"),
    service: ComplaintService = Depends(get_complaint_service)
):
    """All complaints matching the given filters, newest first."""
    try:
        complaints = await service.get_complaints(
            parent_id=parent_id, teacher_id=teacher_id, student_id=student_id, status=complaint_status
        )
    except ServiceError as e:
        raise to_http_exception(e)
    return ComplaintListResponse(complaints=complaints)


@router.post("", response_model=ComplaintMutationResponse, status_code=status.HTTP_201_CREATED, summary="Submit a complaint")
async def submit_complaint(
    complaint_request: ComplaintCreateRequest,
    service: ComplaintService = Depends(get_complaint_service)
):
    """A parent files a complaint about one of their own children."""
    try:
        complaint = await service.submit_complaint(complaint_request)
    except ServiceError as e:
        raise to_http_exception(e)
    return ComplaintMutationResponse(complaint=complaint, message="Complaint submitted successfully")


@router.put("", response_model=ComplaintMutationResponse, summary="Respond to a complaint")
async def update_complaint(
    complaint_request: ComplaintUpdateRequest,
    service: ComplaintService = Depends(get_complaint_service)
):
    try:
        complaint = await service.update_complaint(complaint_request)
    except ServiceError as e:
        raise to_http_exception(e)
    return ComplaintMutationResponse(complaint=complaint, message="Complaint updated successfully")
