import logging
from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, List

import asyncpg
from pydantic import ValidationError

from .base import SchoolService, ServiceError, ValidationFailed, NotFoundError, ConflictError, user_summary
from ..models.db_models import Action, Complaint, ComplaintStatus, Role, Student, User
from ..api.schemas.admin import (
    ActivityStats, AdminComplaintsResponse, AssignStudentsData, ClassCount, ComplaintOverviewStatistics,
    ComplaintStats, DailyCount, DailyTrend, DashboardResponse, RecentActivity, RoleCounts, StudentStats,
    SystemHealth, TeacherComplaintPerformance, TeacherDeletedResponse, TeacherManagementRequest,
    TeacherManagementResponse, TeacherOverview, TeacherProfileData, TeachersResponse, TeachersSummary,
    TeacherStatistics, TeacherStats, TopPerformer, UnassignStudentsData, UserStats,
)

logger = logging.getLogger(__name__)

DEACTIVATED_PREFIX = "deactivated_"
TREND_DAYS = 7
TOP_PERFORMERS = 5
TEACHER_STUDENT_ACTION_LIMIT = 5
TEACHER_COMPLAINT_LIMIT = 5
TEACHER_RECENT_ACTIVITY_LIMIT = 5
PERFORMANCE_COMPLAINT_LIMIT = 3


# ===== Statistics helpers =====

def percentage(part: int, whole: int, empty: float = 0.0) -> float:
    if whole == 0:
        return empty
    return round(part / whole * 100, 2)


def ratio(numerator: int, denominator: int) -> float:
    if denominator == 0:
        return 0.0
    return round(numerator / denominator, 1)


def mean_duration(durations: Iterable[timedelta], unit: timedelta) -> float:
    """Average of ``durations`` expressed in ``unit``, 0 when there is nothing to average."""
    values = [d / unit for d in durations]
    if not values:
        return 0.0
    return round(sum(values) / len(values), 2)


def trailing_days(today: date, days: int = TREND_DAYS) -> List[date]:
    """The last ``days`` calendar days ending with ``today``, oldest first."""
    return [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]


def day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def utc_date(moment: datetime) -> date:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).date()


def resolution_days(complaints: Iterable[Complaint]) -> float:
    return mean_duration(
        (c.resolved_at - c.created_at for c in complaints
         if c.status == ComplaintStatus.RESOLVED and c.resolved_at),
        timedelta(days=1),
    )


def count_status(complaints: Iterable[Complaint], status: ComplaintStatus) -> int:
    return sum(1 for c in complaints if c.status == status)


class AdminService(SchoolService):
    """
    Read models and management operations behind the admin dashboard.
    """

    # ===== Dashboard =====

    async def get_dashboard(self) -> DashboardResponse:
        now = datetime.now(timezone.utc)
        month_ago = now - timedelta(days=30)
        week_ago = now - timedelta(days=7)
        days = trailing_days(now.date())

        try:
            role_counts = await self.db_client.count_users_by_role()
            recent_users = await self.db_client.count_users(since=month_ago)

            total_students = await self.db_client.count_students()
            recent_students = await self.db_client.count_students(since=month_ago)
            class_distribution = await self.db_client.get_class_distribution()

            total_actions = await self.db_client.count_actions()
            recent_actions = await self.db_client.count_actions(since=week_ago)
            timestamps = await self.db_client.get_action_timestamps(since=day_start(days[0]))

            total_complaints = await self.db_client.count_complaints()
            pending_complaints = await self.db_client.count_complaints(status=ComplaintStatus.PENDING.value)
            resolved_complaints = await self.db_client.count_complaints(status=ComplaintStatus.RESOLVED.value)
            recent_complaints = await self.db_client.count_complaints(since=week_ago)

            top_performers = await self._top_performers(since=month_ago)
        except Exception as e:
            logger.error("Error collecting dashboard statistics.", exc_info=True)
            raise ServiceError("Failed to fetch dashboard statistics") from e

        by_role = RoleCounts(**{role.value: role_counts.get(role.value, 0) for role in Role})
        per_day = Counter(utc_date(ts) for ts in timestamps)

        return DashboardResponse(
            user_stats=UserStats(
                total=by_role.ADMIN + by_role.TEACHER + by_role.PARENT,
                by_role=by_role,
                recent_registrations=recent_users,
            ),
            student_stats=StudentStats(
                total=total_students,
                recent_enrollments=recent_students,
                class_distribution=[ClassCount(**row) for row in class_distribution],
            ),
            activity_stats=ActivityStats(
                total=total_actions,
                recent_actions=recent_actions,
                daily_activity=[DailyCount(date=day, count=per_day.get(day, 0)) for day in days],
                avg_daily_activity=ratio(recent_actions, TREND_DAYS),
            ),
            complaint_stats=ComplaintStats(
                total=total_complaints,
                pending=pending_complaints,
                resolved=resolved_complaints,
                recent=recent_complaints,
                resolution_rate=percentage(resolved_complaints, total_complaints),
            ),
            teacher_stats=TeacherStats(top_performers=top_performers),
            system_health=SystemHealth(
                active_teachers=by_role.TEACHER,
                students_per_teacher=ratio(total_students, by_role.TEACHER),
                actions_per_student=ratio(total_actions, total_students),
            ),
        )

    async def _top_performers(self, since: datetime) -> List[TopPerformer]:
        teachers = await self.db_client.get_users_by_role(Role.TEACHER)
        students = await self.db_client.get_students_by_teachers([t.id for t in teachers])
        teacher_of = {s.id: s.teacher_id for s in students}
        recent = await self.db_client.get_actions_for_students(list(teacher_of), since=since)

        student_counts = Counter(s.teacher_id for s in students)
        action_counts = Counter(teacher_of[a.student_id] for a in recent)
        performers = [
            TopPerformer(
                id=t.id,
                name=t.name,
                student_count=student_counts.get(t.id, 0),
                recent_action_count=action_counts.get(t.id, 0),
            )
            for t in teachers
        ]
        performers.sort(key=lambda p: p.recent_action_count, reverse=True)
        return performers[:TOP_PERFORMERS]

    # ===== Teachers =====

    async def get_teachers(self) -> TeachersResponse:
        week_ago = datetime.now(timezone.utc) - timedelta(days=7)
        try:
            teachers = await self.db_client.get_users_by_role(Role.TEACHER)
            students = await self.db_client.get_students_by_teachers([t.id for t in teachers])
            actions = await self.db_client.get_actions_for_students([s.id for s in students])
            complaints = await self.db_client.get_complaints()
        except Exception as e:
            logger.error("Error fetching teachers.", exc_info=True)
            raise ServiceError("Failed to fetch teachers") from e

        students_by_teacher: Dict[str, List[Student]] = {}
        for student in students:
            students_by_teacher.setdefault(student.teacher_id, []).append(student)
        actions_by_student: Dict[str, List[Action]] = {}
        for action in actions:
            actions_by_student.setdefault(action.student_id, []).append(action)
        complaints_by_teacher: Dict[str, List[Complaint]] = {}
        for complaint in complaints:
            if complaint.teacher_id:
                complaints_by_teacher.setdefault(complaint.teacher_id, []).append(complaint)

        enriched_students = {
            s.id: s for s in await self._enrich_students(students, action_limit=TEACHER_STUDENT_ACTION_LIMIT)
        }
        latest_complaints = [
            c for t in teachers for c in complaints_by_teacher.get(t.id, [])[:TEACHER_COMPLAINT_LIMIT]
        ]
        enriched_complaints = {c.id: c for c in await self._enrich_complaints(latest_complaints)}

        overviews = []
        for teacher in teachers:
            own_students = students_by_teacher.get(teacher.id, [])
            own_complaints = complaints_by_teacher.get(teacher.id, [])
            own_actions = sorted(
                (a for s in own_students for a in actions_by_student.get(s.id, [])),
                key=lambda a: a.created_at,
                reverse=True,
            )
            recent_actions = [a for a in own_actions if a.created_at > week_ago]
            names = {s.id: s.name for s in own_students}
            resolved = count_status(own_complaints, ComplaintStatus.RESOLVED)

            statistics = TeacherStatistics(
                student_count=len(own_students),
                total_actions=len(own_actions),
                recent_activity_count=len(recent_actions),
                class_count=len({s.class_name for s in own_students}),
                avg_actions_per_student=ratio(len(own_actions), len(own_students)),
                total_complaints=len(own_complaints),
                pending_complaints=count_status(own_complaints, ComplaintStatus.PENDING),
                resolved_complaints=resolved,
                in_progress_complaints=count_status(own_complaints, ComplaintStatus.IN_PROGRESS),
                # A teacher without complaints has nothing outstanding.
                complaint_resolution_rate=percentage(resolved, len(own_complaints), empty=100.0),
                avg_resolution_days=resolution_days(own_complaints),
                recent_complaints=sum(1 for c in own_complaints if c.created_at > week_ago),
            )
            overviews.append(TeacherOverview(
                id=teacher.id,
                name=teacher.name,
                email=teacher.email,
                created_at=teacher.created_at,
                statistics=statistics,
                students=[enriched_students[s.id] for s in own_students],
                complaints=[enriched_complaints[c.id] for c in own_complaints[:TEACHER_COMPLAINT_LIMIT]],
                recent_activity=[
                    RecentActivity(
                        id=a.id,
                        description=a.description,
                        created_at=a.created_at,
                        student_name=names.get(a.student_id, "Unknown"),
                    )
                    for a in recent_actions[:TEACHER_RECENT_ACTIVITY_LIMIT]
                ],
            ))

        rates = [o.statistics.complaint_resolution_rate for o in overviews]
        summary = TeachersSummary(
            total_teachers=len(overviews),
            total_students=sum(o.statistics.student_count for o in overviews),
            total_actions=sum(o.statistics.total_actions for o in overviews),
            total_complaints=sum(o.statistics.total_complaints for o in overviews),
            avg_resolution_rate=round(sum(rates) / len(rates), 2) if rates else 0.0,
        )
        return TeachersResponse(teachers=overviews, summary=summary)

    async def _get_teacher(self, teacher_id: str) -> User:
        teacher = await self._find_user(teacher_id, Role.TEACHER)
        if teacher is None:
            raise NotFoundError("Teacher not found")
        return teacher

    async def manage_teacher(self, teacher_id: str, request: TeacherManagementRequest) -> TeacherManagementResponse:
        """
        Applies one management ``action`` to a teacher:
        updateProfile, assignStudents, unassignStudents, resetPassword,
        deactivate or reactivate.
        """
        teacher = await self._get_teacher(teacher_id)
        action = request.action
        logger.info(f"Admin action '{action}' on teacher {teacher_id}.")

        try:
            if action == "updateProfile":
                profile = TeacherProfileData.model_validate(request.data)
                owner = await self.db_client.get_user_by_email(profile.email)
                if owner is not None and owner.id != teacher_id:
                    raise ConflictError("User with this email already exists")
                updated = await self.db_client.update_user_profile(teacher_id, profile.name, profile.email)
                return TeacherManagementResponse(
                    message="Teacher profile updated successfully", teacher=user_summary(updated)
                )

            if action == "assignStudents":
                data = AssignStudentsData.model_validate(request.data)
                await self.db_client.assign_students(data.student_ids, teacher_id)
                return TeacherManagementResponse(message=f"{len(data.student_ids)} students assigned successfully")

            if action == "unassignStudents":
                data = UnassignStudentsData.model_validate(request.data)
                await self.db_client.unassign_students(data.unassign_student_ids, teacher_id)
                return TeacherManagementResponse(
                    message=f"{len(data.unassign_student_ids)} students unassigned successfully"
                )

            if action == "resetPassword":
                # TODO: issue a reset token once outgoing e-mail is configured.
                return TeacherManagementResponse(message="Password reset email sent to teacher")

            if action == "deactivate":
                if not teacher.email.startswith(DEACTIVATED_PREFIX):
                    await self.db_client.update_user_email(teacher_id, DEACTIVATED_PREFIX + teacher.email)
                return TeacherManagementResponse(message="Teacher deactivated successfully")

            if action == "reactivate":
                await self.db_client.update_user_email(teacher_id, teacher.email.removeprefix(DEACTIVATED_PREFIX))
                return TeacherManagementResponse(message="Teacher reactivated successfully")
        except asyncpg.UniqueViolationError as e:
            logger.info(f"Action '{action}' on teacher {teacher_id} hit an e-mail already in use.")
            raise ConflictError("User with this email already exists") from e
        except ValidationError as e:
            raise ValidationFailed(f"Invalid data for action '{action}'") from e
        except ServiceError:
            raise
        except Exception as e:
            logger.error(f"Teacher management action '{action}' failed for {teacher_id}.", exc_info=True)
            raise ServiceError("Failed to perform action") from e

        raise ValidationFailed("Invalid action")

    async def delete_teacher(self, teacher_id: str) -> TeacherDeletedResponse:
        await self._get_teacher(teacher_id)
        try:
            affected = await self.db_client.delete_teacher(teacher_id)
        except Exception as e:
            logger.error(f"Error deleting teacher {teacher_id}.", exc_info=True)
            raise ServiceError("Failed to delete teacher") from e

        logger.info(f"Teacher {teacher_id} deleted, {affected} students unassigned.")
        return TeacherDeletedResponse(message="Teacher deleted successfully", students_affected=affected)

    # ===== Complaints =====

    async def get_complaints_overview(self) -> AdminComplaintsResponse:
        now = datetime.now(timezone.utc)
        try:
            complaints = await self.db_client.get_complaints()
            teachers = await self.db_client.get_users_by_role(Role.TEACHER)
        except Exception as e:
            logger.error("Error fetching admin complaints data.", exc_info=True)
            raise ServiceError("Failed to fetch complaints data") from e

        enriched = await self._enrich_complaints(complaints)
        by_id = {c.id: c for c in enriched}

        total = len(complaints)
        resolved = count_status(complaints, ComplaintStatus.RESOLVED)
        # Anything no longer PENDING has been responded to; updated_at marks the response.
        response_hours = mean_duration(
            (c.updated_at - c.created_at for c in complaints if c.status != ComplaintStatus.PENDING),
            timedelta(hours=1),
        )

        trends = []
        for day in trailing_days(now.date()):
            on_day = [c for c in complaints if utc_date(c.created_at) == day]
            trends.append(DailyTrend(
                date=day, count=len(on_day), resolved=count_status(on_day, ComplaintStatus.RESOLVED)
            ))

        statistics = ComplaintOverviewStatistics(
            total=total,
            pending=count_status(complaints, ComplaintStatus.PENDING),
            in_progress=count_status(complaints, ComplaintStatus.IN_PROGRESS),
            resolved=resolved,
            resolution_rate=percentage(resolved, total),
            avg_response_time_hours=response_hours,
            type_distribution=dict(Counter(c.type.value for c in complaints)),
            daily_trends=trends,
        )

        performance = []
        for teacher in teachers:
            assigned = [c for c in complaints if c.teacher_id == teacher.id]
            done = count_status(assigned, ComplaintStatus.RESOLVED)
            performance.append(TeacherComplaintPerformance(
                id=teacher.id,
                name=teacher.name,
                email=teacher.email,
                total_complaints=len(assigned),
                resolved=done,
                pending=count_status(assigned, ComplaintStatus.PENDING),
                in_progress=count_status(assigned, ComplaintStatus.IN_PROGRESS),
                resolution_rate=percentage(done, len(assigned)),
                avg_resolution_time_days=resolution_days(assigned),
                recent_complaints=[by_id[c.id] for c in assigned[:PERFORMANCE_COMPLAINT_LIMIT]],
            ))

        return AdminComplaintsResponse(complaints=enriched, statistics=statistics, teacher_performance=performance)
