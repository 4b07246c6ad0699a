import logging
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import Action, Complaint, Role, Student, User
from ..api.schemas.common import ActionSummary, StudentSummary, UserSummary
from ..api.schemas.action import ActionResponse
from ..api.schemas.complaint import ComplaintResponse
from ..api.schemas.student import StudentResponse

logger = logging.getLogger(__name__)


# --- Custom Service Layer Exception Classes ---
class ServiceError(Exception):
    """General exception class for the service layer."""
    pass

class ValidationFailed(ServiceError):
    """The request is well-formed but its values are not acceptable."""
    pass

class AuthenticationError(ServiceError):
    """Credentials or token could not be verified."""
    pass

class AuthorizationError(ServiceError):
    """Exception class for authorization-related errors."""
    pass

class NotFoundError(ServiceError):
    """A referenced entity does not exist."""
    pass

class ConflictError(ServiceError):
    """The operation would violate a uniqueness constraint."""
    pass


def new_id() -> str:
    return uuid4().hex


def user_summary(user: Optional[User], with_email: bool = True) -> Optional[UserSummary]:
    if user is None:
        return None
    return UserSummary(id=user.id, name=user.name, email=user.email if with_email else None)


def student_summary(student: Optional[Student]) -> Optional[StudentSummary]:
    if student is None:
        return None
    return StudentSummary(id=student.id, name=student.name, class_name=student.class_name)


class SchoolService:
    """
    Shared plumbing for the domain services: owns the database client and
    knows how to enrich bare rows with the related users, students and actions.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def _user_map(self, user_ids: Iterable[Optional[str]]) -> Dict[str, User]:
        ids = {user_id for user_id in user_ids if user_id}
        if not ids:
            return {}
        try:
            users = await self.db_client.get_users_by_ids(list(ids))
        except Exception as e:
            logger.error("Database error while fetching related users.", exc_info=True)
            raise ServiceError("A database error occurred while fetching user information.") from e
        return {user.id: user for user in users}

    async def _student_map(self, student_ids: Iterable[str]) -> Dict[str, Student]:
        try:
            students = await self.db_client.get_students_by_ids(list(set(student_ids)))
        except Exception as e:
            logger.error("Database error while fetching related students.", exc_info=True)
            raise ServiceError("A database error occurred while fetching student information.") from e
        return {student.id: student for student in students}

    async def _find_user(self, user_id: str, role: Role) -> Optional[User]:
        try:
            return await self.db_client.get_user_by_id(user_id, role=role)
        except Exception as e:
            logger.error(f"Database error while looking up user {user_id}.", exc_info=True)
            raise ServiceError("A database error occurred while fetching user information.") from e

    async def _find_student(self, student_id: str) -> Optional[Student]:
        try:
            return await self.db_client.get_student_by_id(student_id)
        except Exception as e:
            logger.error(f"Database error while looking up student {student_id}.", exc_info=True)
            raise ServiceError("A database error occurred while fetching student information.") from e

    async def _enrich_students(
        self,
        students: List[Student],
        action_limit: int,
        include_parent: bool = True,
        teacher_email: bool = False,
    ) -> List[StudentResponse]:
        """Attaches parent, teacher and the latest ``action_limit`` actions to each student."""
        if not students:
            return []

        related_ids = [s.teacher_id for s in students]
        if include_parent:
            related_ids += [s.parent_id for s in students]
        user_map = await self._user_map(related_ids)

        actions_by_student: Dict[str, List[Action]] = {}
        try:
            latest_actions = await self.db_client.get_actions_for_students([s.id for s in students])
        except Exception as e:
            logger.error("Database error while fetching student actions.", exc_info=True)
            raise ServiceError("A database error occurred while fetching actions.") from e
        for action in latest_actions:
            actions_by_student.setdefault(action.student_id, []).append(action)

        enriched = []
        for student in students:
            latest = actions_by_student.get(student.id, [])[:action_limit]
            enriched.append(StudentResponse(
                **student.model_dump(),
                parent=user_summary(user_map.get(student.parent_id)) if include_parent else None,
                teacher=user_summary(user_map.get(student.teacher_id), with_email=teacher_email),
                actions=[ActionSummary(id=a.id, description=a.description, created_at=a.created_at) for a in latest],
            ))
        return enriched

    async def _enrich_actions(self, actions: List[Action]) -> List[ActionResponse]:
        if not actions:
            return []
        user_map = await self._user_map(a.teacher_id for a in actions)
        student_map = await self._student_map(a.student_id for a in actions)

        return [
            ActionResponse(
                **action.model_dump(),
                student=student_summary(student_map.get(action.student_id)),
                teacher=user_summary(user_map.get(action.teacher_id), with_email=False),
            )
            for action in actions
        ]

    async def _enrich_complaints(self, complaints: List[Complaint]) -> List[ComplaintResponse]:
        if not complaints:
            return []
        user_map = await self._user_map([c.parent_id for c in complaints] + [c.teacher_id for c in complaints])
        student_map = await self._student_map(c.student_id for c in complaints)

        return [
            ComplaintResponse(
                **complaint.model_dump(),
                student=student_summary(student_map.get(complaint.student_id)),
                parent=user_summary(user_map.get(complaint.parent_id)),
                teacher=user_summary(user_map.get(complaint.teacher_id)),
            )
            for complaint in complaints
        ]
