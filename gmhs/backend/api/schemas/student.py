# gmhs/backend/api/schemas/student.py
from pydantic import Field, field_validator
from datetime import datetime
from typing import List, Optional

from .common import ApiModel, UserSummary, ActionSummary, require_text


class StudentCreateRequest(ApiModel):
    """Request model for enrolling a new student."""
    name: str
    class_name: str
    parent_id: str = Field(..., min_length=1, description="ID of a PARENT user.")
    teacher_id: str = Field(..., min_length=1, description="ID of a TEACHER user.")

    @field_validator("name", "class_name")
    def not_blank(cls, v):
        return require_text(v)


class StudentUpdateRequest(ApiModel):
    """Request model for editing a student. The teacher is changed through admin assignment instead."""
    name: str
    class_name: str
    parent_id: str = Field(..., min_length=1)

    @field_validator("name", "class_name")
    def not_blank(cls, v):
        return require_text(v)


class StudentResponse(ApiModel):
    """A student enriched with its parent, teacher and latest actions."""
    id: str
    name: str
    class_name: str
    parent_id: str
    teacher_id: Optional[str] = None
    created_at: datetime
    parent: Optional[UserSummary] = None
    teacher: Optional[UserSummary] = None
    actions: List[ActionSummary] = Field(default_factory=list)


class StudentListResponse(ApiModel):
    students: List[StudentResponse]


class StudentMutationResponse(ApiModel):
    message: str
    student: StudentResponse
