from fastapi import APIRouter, Depends, Query, status
from typing import Optional

from .schemas.action import ActionCreateRequest, ActionListResponse, ActionCreatedResponse
from ..services.base import ServiceError
from ..services.student_service import StudentService
from .dependencies import get_student_service
from .utilities.errors import to_http_exception

router = APIRouter(prefix="/actions", tags=["Actions"])


@router.get("", response_model=ActionListResponse, summary="List logged actions")
async def list_actions(
    teacher_id: Optional[str] = Query(None, alias="teacherId"),
    student_id: Optional[str] = Query(None, alias="studentId"),
    service: StudentService = Depends(get_student_service)
):
    try:
        actions = await service.get_actions(teacher_id=teacher_id, student_id=student_id)
    except ServiceError as e:
        raise to_http_exception(e)
    return ActionListResponse(actions=actions)


@router.post("", response_model=ActionCreatedResponse, status_code=status.HTTP_201_CREATED, summary="Log an action on a student")
async def create_action(
    action_request: ActionCreateRequest,
    service: StudentService = Depends(get_student_service)
):
    try:
        action = await service.add_action(action_request)
    except ServiceError as e:
        raise to_http_exception(e)
    return ActionCreatedResponse(action=action, message="Action added successfully")
