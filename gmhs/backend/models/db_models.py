# gmhs/backend/models/db_models.py

from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum
from typing import Optional


class Role(str, Enum):
    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    PARENT = "PARENT"


class ComplaintStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"


class ComplaintType(str, Enum):
    ACADEMIC_PERFORMANCE = "ACADEMIC_PERFORMANCE"
    BEHAVIORAL_ISSUES = "BEHAVIORAL_ISSUES"
    ATTENDANCE = "ATTENDANCE"
    HOMEWORK_ISSUES = "HOMEWORK_ISSUES"
    COMMUNICATION = "COMMUNICATION"
    OTHER = "OTHER"


class User(BaseModel):
    """
    Represents an account, mapping to the 'Users' table.
    """
    id: str = Field(..., description="Primary key")
    name: str
    email: str = Field(..., description="Unique login e-mail")
    password: str = Field(..., description="bcrypt hash, never the plain password")
    role: Role
    created_at: datetime


class Student(BaseModel):
    """
    Represents a student, mapping to the 'Students' table.
    """
    id: str
    name: str
    class_name: str
    parent_id: str = Field(..., description="FK to the PARENT user")
    teacher_id: Optional[str] = Field(None, description="FK to the TEACHER user, if assigned")
    created_at: datetime


class Action(BaseModel):
    """
    An append-only log entry of a teacher's interaction with a student,
    mapping to the 'Actions' table.
    """
    id: str
    description: str
    student_id: str
    teacher_id: str
    created_at: datetime


class Complaint(BaseModel):
    """
    A parent's complaint about a student, mapping to the 'Complaints' table.
    """
    id: str
    title: str
    description: str
    type: ComplaintType
    status: ComplaintStatus = ComplaintStatus.PENDING
    resolution: Optional[str] = None
    student_id: str
    parent_id: str
    teacher_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None
