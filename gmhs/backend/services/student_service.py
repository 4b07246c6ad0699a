import logging
from datetime import datetime, timezone
from typing import List, Optional

from .base import SchoolService, ServiceError, ValidationFailed, NotFoundError, new_id
from ..models.db_models import Action, Role, Student
from ..api.schemas.student import StudentCreateRequest, StudentUpdateRequest, StudentResponse
from ..api.schemas.action import ActionCreateRequest, ActionResponse

logger = logging.getLogger(__name__)

# How many of the latest actions are attached to each student.
TEACHER_VIEW_ACTION_LIMIT = 5
PARENT_VIEW_ACTION_LIMIT = 10


class StudentService(SchoolService):
    """
    Business logic for students and the actions teachers log on them.
    """

    # ===== Students =====

    async def _fetch_students(self, **filters) -> List[Student]:
        try:
            return await self.db_client.get_students(**filters)
        except Exception as e:
            logger.error(f"Error fetching students ({filters}).", exc_info=True)
            raise ServiceError("Error fetching students") from e

    async def get_students_of_teacher(self, teacher_id: str) -> List[StudentResponse]:
        students = await self._fetch_students(teacher_id=teacher_id)
        return await self._enrich_students(students, action_limit=TEACHER_VIEW_ACTION_LIMIT)

    async def get_children_of_parent(self, parent_id: str) -> List[StudentResponse]:
        """What the parent dashboard shows: each child with its teacher and last actions."""
        students = await self._fetch_students(parent_id=parent_id)
        return await self._enrich_students(
            students, action_limit=PARENT_VIEW_ACTION_LIMIT, include_parent=False, teacher_email=True
        )

    async def create_student(self, request: StudentCreateRequest) -> StudentResponse:
        if not await self._find_user(request.parent_id, Role.PARENT):
            raise ValidationFailed("Invalid parent ID")
        if not await self._find_user(request.teacher_id, Role.TEACHER):
            raise ValidationFailed("Invalid teacher ID")

        student = Student(
            id=new_id(),
            name=request.name,
            class_name=request.class_name,
            parent_id=request.parent_id,
            teacher_id=request.teacher_id,
            created_at=datetime.now(timezone.utc),
        )
        try:
            await self.db_client.add_student(student)
        except Exception as e:
            logger.error(f"Error creating student '{request.name}'.", exc_info=True)
            raise ServiceError("Failed to create student") from e

        logger.info(f"Student {student.id} created in class '{student.class_name}'.")
        enriched = await self._enrich_students([student], action_limit=0)
        return enriched[0]

    async def update_student(self, student_id: str, request: StudentUpdateRequest) -> StudentResponse:
        if not await self._find_student(student_id):
            raise NotFoundError("Student not found")
        if not await self._find_user(request.parent_id, Role.PARENT):
            raise ValidationFailed("Invalid parent ID")

        try:
            student = await self.db_client.update_student(
                student_id, request.name, request.class_name, request.parent_id
            )
        except Exception as e:
            logger.error(f"Error updating student {student_id}.", exc_info=True)
            raise ServiceError("Failed to update student") from e

        if student is None:
            # Deleted between the existence check and the update.
            raise NotFoundError("Student not found")
        enriched = await self._enrich_students([student], action_limit=0)
        return enriched[0]

    async def delete_student(self, student_id: str) -> None:
        if not await self._find_student(student_id):
            raise NotFoundError("Student not found")
        try:
            await self.db_client.delete_student(student_id)
            logger.info(f"Student {student_id} and its actions deleted.")
        except Exception as e:
            logger.error(f"Error deleting student {student_id}.", exc_info=True)
            raise ServiceError("Failed to delete student") from e

    # ===== Actions =====

    async def get_actions(self, teacher_id: Optional[str] = None, student_id: Optional[str] = None) -> List[ActionResponse]:
        try:
            actions = await self.db_client.get_actions(teacher_id=teacher_id, student_id=student_id)
        except Exception as e:
            logger.error("Error fetching actions.", exc_info=True)
            raise ServiceError("Error fetching actions") from e
        return await self._enrich_actions(actions)

    async def add_action(self, request: ActionCreateRequest) -> ActionResponse:
        if not await self._find_user(request.teacher_id, Role.TEACHER):
            raise NotFoundError("Teacher not found")
        if not await self._find_student(request.student_id):
            raise NotFoundError("Student not found")

        action = Action(
            id=new_id(),
            description=request.description,
            teacher_id=request.teacher_id,
            student_id=request.student_id,
            created_at=datetime.now(timezone.utc),
        )
        try:
            await self.db_client.add_action(action)
        except Exception as e:
            logger.error(f"Error logging action for student {request.student_id}.", exc_info=True)
            raise ServiceError("Something went wrong") from e

        enriched = await self._enrich_actions([action])
        return enriched[0]
