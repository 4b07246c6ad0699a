from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import List, Optional

from .schemas.user import ParentResponse
from .schemas.student import StudentListResponse
from ..services.base import ServiceError
from ..services.user_service import UserService
from ..services.student_service import StudentService
from .dependencies import get_user_service, get_student_service
from .utilities.errors import to_http_exception

router = APIRouter(tags=["Parents"])


@router.get("/parents", response_model=List[ParentResponse], summary="List every parent")
async def list_parents(service: UserService = Depends(get_user_service)):
    """Every PARENT account ordered by name, used to pick a parent for a new student."""
    try:
        return await service.list_parents()
    except ServiceError as e:
        raise to_http_exception(e)


@router.get("/child", response_model=StudentListResponse, summary="List a parent's children")
async def list_children(
    parent_id: Optional[str] = Query(None, alias="parentId"),
    service: StudentService = Depends(get_student_service)
):
    if not parent_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Parent ID is required")
    try:
        students = await service.get_children_of_parent(parent_id)
    except ServiceError as e:
        raise to_http_exception(e)
    return StudentListResponse(students=students)
