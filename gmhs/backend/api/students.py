from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Optional

from .schemas.student import (
    StudentCreateRequest, StudentUpdateRequest, StudentListResponse, StudentMutationResponse
)
from .schemas.common import MessageResponse
from ..services.base import ServiceError
from ..services.student_service import StudentService
from .dependencies import get_student_service
from .utilities.errors import to_http_exception

router = APIRouter(prefix="/students", tags=["Students"])


@router.get("", response_model=StudentListResponse, summary="List a teacher's students")
async def list_students(
    teacher_id: Optional[str] = Query(None, alias="teacherId"),
    service: StudentService = Depends(get_student_service)
):
    """
    Returns the teacher's students, newest first, each with its parent,
    teacher and latest actions.
    """
    if not teacher_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Teacher ID is required")
    try:
        students = await service.get_students_of_teacher(teacher_id)
    except ServiceError as e:
        raise to_http_exception(e)
    return StudentListResponse(students=students)


@router.post("", response_model=StudentMutationResponse, status_code=status.HTTP_201_CREATED, summary="Create a student")
async def create_student(
    student_request: StudentCreateRequest,
    service: StudentService = Depends(get_student_service)
):
    try:
        student = await service.create_student(student_request)
    except ServiceError as e:
        raise to_http_exception(e)
    return StudentMutationResponse(message="Student created successfully", student=student)


@router.put("/{student_id}", response_model=StudentMutationResponse, summary="Update a student")
async def update_student(
    student_id: str,
    student_request: StudentUpdateRequest,
    service: StudentService = Depends(get_student_service)
):
    try:
        student = await service.update_student(student_id, student_request)
    except ServiceError as e:
        raise to_http_exception(e)
    return StudentMutationResponse(message="Student updated successfully", student=student)


@router.delete("/{student_id}", response_model=MessageResponse, summary="Delete a student and its actions")
async def delete_student(
    student_id: str,
    service: StudentService = Depends(get_student_service)
):
    try:
        await service.delete_student(student_id)
    except ServiceError as e:
        raise to_http_exception(e)
    return MessageResponse(message="Student deleted successfully")
