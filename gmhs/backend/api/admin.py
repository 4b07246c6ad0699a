from fastapi import APIRouter, Depends

from .schemas.admin import (
    DashboardResponse, TeachersResponse, TeacherManagementRequest, TeacherManagementResponse,
    TeacherDeletedResponse, AdminComplaintsResponse
)
from ..services.base import ServiceError
from ..services.admin_service import AdminService
from .dependencies import get_admin_service
from .utilities.errors import to_http_exception

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/dashboard", response_model=DashboardResponse, summary="System-wide statistics")
async def get_dashboard(service: AdminService = Depends(get_admin_service)):
    try:
        return await service.get_dashboard()
    except ServiceError as e:
        raise to_http_exception(e)


@router.get("/teachers", response_model=TeachersResponse, summary="Every teacher with statistics")
async def list_teachers(service: AdminService = Depends(get_admin_service)):
    try:
        return await service.get_teachers()
    except ServiceError as e:
        raise to_http_exception(e)


@router.put("/teachers/{teacher_id}", response_model=TeacherManagementResponse, response_model_exclude_none=True, summary="Manage a teacher")
async def manage_teacher(
    teacher_id: str,
    management_request: TeacherManagementRequest,
    service: AdminService = Depends(get_admin_service)
):
    """
    Runs one management action on the teacher. See ``TeacherManagementRequest``
    for the accepted actions and their data.
    """
    try:
        return await service.manage_teacher(teacher_id, management_request)
    except ServiceError as e:
        raise to_http_exception(e)


@router.delete("/teachers/{teacher_id}", response_model=TeacherDeletedResponse, summary="Delete a teacher")
async def delete_teacher(
    teacher_id: str,
    service: AdminService = Depends(get_admin_service)
):
    """Removes the actions on the teacher's students, unassigns them and deletes the teacher."""
    try:
        return await service.delete_teacher(teacher_id)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get("/complaints", response_model=AdminComplaintsResponse, summary="Complaint statistics and teacher performance")
async def get_complaints_overview(service: AdminService = Depends(get_admin_service)):
    try:
        return await service.get_complaints_overview()
    except ServiceError as e:
        raise to_http_exception(e)
