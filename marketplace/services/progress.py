import logging
from datetime import datetime
from typing import List
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.crud.course import lecture as crud_lecture
from marketplace.crud.progress import progress as crud_progress
from marketplace.core.constants import EnrollmentStatusEnum, ProgressStatusEnum
from marketplace.core.exceptions import NotFoundError, PreconditionFailedError, PartialUpdateError
from marketplace.models.enrollment import Enrollment
from marketplace.models.progress import Progress
from marketplace.services.enrollment import enrollment_service

logger = logging.getLogger(__name__)

INACTIVE_STATUSES = (EnrollmentStatusEnum.DROPPED, EnrollmentStatusEnum.EXPIRED)


class ProgressService:

    def record_watch(self, db: Session, *, user_id: int, course_id: int, lecture_id: int, watch_seconds: int) -> Progress:
        """Store a learner's watch position for one lecture and refresh the enrollment summary.

        The stored position never exceeds the lecture duration and never moves
        backwards. The enrollment aggregate is recomputed before returning; if
        that step fails the saved progress is kept and ``PartialUpdateError``
        is raised.
        """
        enrollment = enrollment_service.get_enrollment(db, user_id, course_id, for_update=True)
        if enrollment.status in INACTIVE_STATUSES:
            raise PreconditionFailedError(
                f"Enrollment is {enrollment.status.value}; progress can no longer be recorded.",
                code="ENROLLMENT_INACTIVE",
            )

        lecture = crud_lecture.get_in_course(db, course_id=course_id, lecture_id=lecture_id)
        if not lecture:
            raise NotFoundError("Lecture not found in this course.", code="LECTURE_NOT_FOUND")

        progress = crud_progress.get_by_user_course_and_key(
            db, user_id=user_id, course_id=course_id, lecture_key=str(lecture.id)
        )
        if not progress:
            progress = Progress(
                user_id=user_id,
                course_id=course_id,
                lecture_id=lecture.id,
                lecture_key=str(lecture.id),
                lecture_title=lecture.title,
                status=ProgressStatusEnum.NOT_STARTED,
                watch_seconds=0,
            )

        total_duration = lecture.duration_seconds
        clamped = max(0, min(watch_seconds, total_duration))
        now = datetime.utcnow()

        progress.total_duration = total_duration
        progress.watch_seconds = min(max(progress.watch_seconds or 0, clamped), total_duration)
        progress.completion_percentage = (
            (progress.watch_seconds / total_duration) * 100 if total_duration > 0 else 0.0
        )

        if progress.completion_percentage >= 100:
            progress.status = ProgressStatusEnum.COMPLETED
            progress.is_completed = True
            progress.completed_at = progress.completed_at or now
        elif progress.watch_seconds > 0:
            progress.status = ProgressStatusEnum.IN_PROGRESS
        else:
            progress.status = ProgressStatusEnum.NOT_STARTED

        progress.last_accessed_at = now
        db.add(progress)
        db.commit()
        db.refresh(progress)
        progress_id = progress.id

        try:
            enrollment_service.recompute_aggregate(db, user_id, course_id)
        except SQLAlchemyError:
            db.rollback()
            logger.error(
                f"Progress {progress_id} saved but enrollment summary for user {user_id} "
                f"in course {course_id} was not recomputed",
                exc_info=True,
            )
            raise PartialUpdateError(
                "Progress was saved but the course summary could not be updated.",
                details={"progress_id": progress_id},
            )

        db.refresh(progress)
        return progress

    def recompute(self, db: Session, user_id: int, course_id: int) -> Enrollment:
        return enrollment_service.recompute_aggregate(db, user_id, course_id)

    def get_course_progress(self, db: Session, user_id: int, course_id: int) -> List[Progress]:
        return crud_progress.get_by_user_and_course(db, user_id=user_id, course_id=course_id)


progress_service = ProgressService()
