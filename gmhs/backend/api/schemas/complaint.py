# gmhs/backend/api/schemas/complaint.py
from pydantic import Field, field_validator, model_validator
from datetime import datetime
from typing import List, Optional

from .common import ApiModel, UserSummary, StudentSummary, require_text
from ...models.db_models import ComplaintStatus, ComplaintType


class ComplaintCreateRequest(ApiModel):
    """Request model for a parent submitting a complaint about their child."""
    title: str
    description: str
    type: ComplaintType
    student_id: str = Field(..., min_length=1)
    parent_id: str = Field(..., min_length=1)

    @field_validator("title", "description")
    def not_blank(cls, v):
        return require_text(v)


class ComplaintUpdateRequest(ApiModel):
    """
    Request model for moving a complaint through its workflow.

    Any status is accepted, but RESOLVED needs a non-blank resolution text.
    """
    complaint_id: str = Field(..., min_length=1)
    status: ComplaintStatus
    resolution: Optional[str] = None
    teacher_id: Optional[str] = None

    @model_validator(mode="after")
    def resolution_required_when_resolved(self):
        if self.resolution is not None:
            self.resolution = self.resolution.strip() or None
        if self.status == ComplaintStatus.RESOLVED and not self.resolution:
            raise ValueError("Resolution is required when marking complaint as resolved")
        return self


class ComplaintResponse(ApiModel):
    id: str
    title: str
    description: str
    type: ComplaintType
    status: ComplaintStatus
    resolution: Optional[str] = None
    student_id: str
    parent_id: str
    teacher_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None
    student: Optional[StudentSummary] = None
    parent: Optional[UserSummary] = None
    teacher: Optional[UserSummary] = None


class ComplaintListResponse(ApiModel):
    complaints: List[ComplaintResponse]


class ComplaintMutationResponse(ApiModel):
    complaint: ComplaintResponse
    message: str
