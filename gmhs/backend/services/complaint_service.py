import logging
from datetime import datetime, timezone
from typing import List, Optional

from .base import SchoolService, ServiceError, AuthorizationError, NotFoundError, new_id
from ..models.db_models import Complaint, ComplaintStatus, Role
from ..api.schemas.complaint import ComplaintCreateRequest, ComplaintUpdateRequest, ComplaintResponse

logger = logging.getLogger(__name__)


class ComplaintService(SchoolService):
    """
    Parents submit complaints about their own children; teachers and admins
    move them through PENDING -> IN_PROGRESS -> RESOLVED.
    """

    async def get_complaints(
        self,
        parent_id: Optional[str] = None,
        teacher_id: Optional[str] = None,
        student_id: Optional[str] = None,
        status: Optional[ComplaintStatus] = None,
    ) -> List[ComplaintResponse]:
        try:
            complaints = await self.db_client.get_complaints(
                parent_id=parent_id,
                teacher_id=teacher_id,
                student_id=student_id,
                status=status.value if status else None,
            )
        except Exception as e:
            logger.error("Error fetching complaints.", exc_info=True)
            raise ServiceError("Error fetching complaints") from e
        return await self._enrich_complaints(complaints)

    async def submit_complaint(self, request: ComplaintCreateRequest) -> ComplaintResponse:
        student = await self._find_student(request.student_id)
        if student is None:
            raise NotFoundError("Student not found")
        if student.parent_id != request.parent_id:
            logger.warning(f"Parent {request.parent_id} tried to file a complaint for student {student.id}.")
            raise AuthorizationError("You can only submit complaints for your own child")

        now = datetime.now(timezone.utc)
        complaint = Complaint(
            id=new_id(),
            title=request.title,
            description=request.description,
            type=request.type,
            status=ComplaintStatus.PENDING,
            student_id=student.id,
            parent_id=request.parent_id,
            # Routed to the student's current teacher, if any.
            teacher_id=student.teacher_id,
            created_at=now,
            updated_at=now,
        )
        try:
            await self.db_client.add_complaint(complaint)
        except Exception as e:
            logger.error(f"Error creating complaint for student {student.id}.", exc_info=True)
            raise ServiceError("Something went wrong") from e

        logger.info(f"Complaint {complaint.id} ({complaint.type.value}) submitted.")
        enriched = await self._enrich_complaints([complaint])
        return enriched[0]

    async def update_complaint(self, request: ComplaintUpdateRequest) -> ComplaintResponse:
        try:
            complaint = await self.db_client.get_complaint_by_id(request.complaint_id)
        except Exception as e:
            logger.error(f"Error looking up complaint {request.complaint_id}.", exc_info=True)
            raise ServiceError("Something went wrong") from e
        if complaint is None:
            raise NotFoundError("Complaint not found")

        if request.teacher_id:
            if not await self._find_user(request.teacher_id, Role.TEACHER):
                raise NotFoundError("Teacher not found")
            complaint.teacher_id = request.teacher_id

        now = datetime.now(timezone.utc)
        complaint.status = request.status
        complaint.updated_at = now
        if request.resolution:
            complaint.resolution = request.resolution
        if request.status == ComplaintStatus.RESOLVED:
            complaint.resolved_at = now

        try:
            await self.db_client.update_complaint(complaint)
        except Exception as e:
            logger.error(f"Error updating complaint {complaint.id}.", exc_info=True)
            raise ServiceError("Something went wrong") from e

        logger.info(f"Complaint {complaint.id} moved to {complaint.status.value}.")
        enriched = await self._enrich_complaints([complaint])
        return enriched[0]
