# gmhs/backend/api/schemas/admin.py
from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from .common import ApiModel, UserSummary
from .student import StudentResponse
from .complaint import ComplaintResponse


# --- Dashboard ---

class RoleCounts(BaseModel):
    # Role names are already upper case on the wire.
    model_config = ConfigDict(from_attributes=True)

    ADMIN: int = 0
    TEACHER: int = 0
    PARENT: int = 0


class UserStats(ApiModel):
    total: int
    by_role: RoleCounts
    recent_registrations: int


class ClassCount(ApiModel):
    class_name: str
    count: int


class StudentStats(ApiModel):
    total: int
    recent_enrollments: int
    class_distribution: List[ClassCount]


class DailyCount(ApiModel):
    date: date
    count: int


class ActivityStats(ApiModel):
    total: int
    recent_actions: int
    daily_activity: List[DailyCount]
    avg_daily_activity: float


class ComplaintStats(ApiModel):
    total: int
    pending: int
    resolved: int
    recent: int
    resolution_rate: float


class TopPerformer(ApiModel):
    id: str
    name: str
    student_count: int
    recent_action_count: int


class TeacherStats(ApiModel):
    top_performers: List[TopPerformer]


class SystemHealth(ApiModel):
    active_teachers: int
    students_per_teacher: float
    actions_per_student: float


class DashboardResponse(ApiModel):
    user_stats: UserStats
    student_stats: StudentStats
    activity_stats: ActivityStats
    complaint_stats: ComplaintStats
    teacher_stats: TeacherStats
    system_health: SystemHealth


# --- Teachers overview ---

class TeacherStatistics(ApiModel):
    student_count: int
    total_actions: int
    recent_activity_count: int
    class_count: int
    avg_actions_per_student: float
    total_complaints: int
    pending_complaints: int
    resolved_complaints: int
    in_progress_complaints: int
    complaint_resolution_rate: float
    avg_resolution_days: float
    recent_complaints: int


class RecentActivity(ApiModel):
    id: str
    description: str
    created_at: datetime
    student_name: str


class TeacherOverview(ApiModel):
    id: str
    name: str
    email: str
    created_at: datetime
    statistics: TeacherStatistics
    students: List[StudentResponse]
    complaints: List[ComplaintResponse]
    recent_activity: List[RecentActivity]


class TeachersSummary(ApiModel):
    total_teachers: int
    total_students: int
    total_actions: int
    total_complaints: int
    avg_resolution_rate: float


class TeachersResponse(ApiModel):
    teachers: List[TeacherOverview]
    summary: TeachersSummary


class TeacherManagementRequest(ApiModel):
    """
    Body of ``PUT /admin/teachers/{id}``. ``data`` depends on the action:
    ``updateProfile`` takes name/email, ``assignStudents`` takes studentIds,
    ``unassignStudents`` takes unassignStudentIds.
    """
    action: str = Field(..., min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)


class TeacherProfileData(ApiModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)


class AssignStudentsData(ApiModel):
    student_ids: List[str]


class UnassignStudentsData(ApiModel):
    unassign_student_ids: List[str]


class TeacherManagementResponse(ApiModel):
    message: str
    teacher: Optional[UserSummary] = None


class TeacherDeletedResponse(ApiModel):
    message: str
    students_affected: int


# --- Complaints overview ---

class DailyTrend(ApiModel):
    date: date
    count: int
    resolved: int


class ComplaintOverviewStatistics(ApiModel):
    total: int
    pending: int
    in_progress: int
    resolved: int
    resolution_rate: float
    avg_response_time_hours: float
    type_distribution: Dict[str, int]
    daily_trends: List[DailyTrend]


class TeacherComplaintPerformance(ApiModel):
    id: str
    name: str
    email: str
    total_complaints: int
    resolved: int
    pending: int
    in_progress: int
    resolution_rate: float
    avg_resolution_time_days: float
    recent_complaints: List[ComplaintResponse]


class AdminComplaintsResponse(ApiModel):
    complaints: List[ComplaintResponse]
    statistics: ComplaintOverviewStatistics
    teacher_performance: List[TeacherComplaintPerformance]
