# gmhs/backend/api/schemas/action.py
from pydantic import Field, field_validator
from datetime import datetime
from typing import List, Optional

from .common import ApiModel, UserSummary, StudentSummary, require_text


class ActionCreateRequest(ApiModel):
    """Request model for logging a teacher's action on a student."""
    description: str = Field(..., description="What happened. Leading/trailing whitespace is trimmed.")
    teacher_id: str = Field(..., min_length=1)
    student_id: str = Field(..., min_length=1)

    @field_validator("description")
    def description_not_blank(cls, v):
        return require_text(v)


class ActionResponse(ApiModel):
    id: str
    description: str
    student_id: str
    teacher_id: str
    created_at: datetime
    student: Optional[StudentSummary] = None
    teacher: Optional[UserSummary] = None


class ActionListResponse(ApiModel):
    actions: List[ActionResponse]


class ActionCreatedResponse(ApiModel):
    action: ActionResponse
    message: str
