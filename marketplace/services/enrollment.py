import logging
from datetime import datetime
from decimal import Decimal
from typing import List
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.crud.course import course as crud_course
from marketplace.crud.enrollment import enrollment as crud_enrollment
from marketplace.crud.progress import progress as crud_progress
from marketplace.core.constants import (
    EnrollmentStatusEnum, ProgressStatusEnum, PLACEHOLDER_LECTURE_KEY, PLACEHOLDER_LECTURE_TITLE
)
from marketplace.core.exceptions import NotFoundError, ConflictError, PreconditionFailedError
from marketplace.models.course import Course
from marketplace.models.enrollment import Enrollment

logger = logging.getLogger(__name__)


class EnrollmentService:
    """Owns the one-enrollment-per-learner-and-course ledger and its progress summary."""

    def _get_or_raise_enrollment(self, db: Session, user_id: int, course_id: int, for_update: bool = False) -> Enrollment:
        enrollment = crud_enrollment.get_by_user_and_course(
            db, user_id=user_id, course_id=course_id, for_update=for_update
        )
        if not enrollment:
            raise NotFoundError("User is not enrolled in this course.", code="NOT_ENROLLED")
        return enrollment

    def _seed_progress(self, db: Session, user_id: int, course: Course):
        lectures = list(course.lectures)
        if not lectures:
            crud_progress.create(db, obj_in={
                "user_id": user_id,
                "course_id": course.id,
                "lecture_key": PLACEHOLDER_LECTURE_KEY,
                "lecture_title": PLACEHOLDER_LECTURE_TITLE,
                "status": ProgressStatusEnum.NOT_STARTED,
                "watch_seconds": 0,
                "total_duration": 0,
            }, commit=False)
            return

        for lecture in lectures:
            crud_progress.create(db, obj_in={
                "user_id": user_id,
                "course_id": course.id,
                "lecture_id": lecture.id,
                "lecture_key": str(lecture.id),
                "lecture_title": lecture.title,
                "status": ProgressStatusEnum.NOT_STARTED,
                "watch_seconds": 0,
                "total_duration": lecture.duration_seconds,
            }, commit=False)

    def enroll(
        self,
        db: Session,
        *,
        user_id: int,
        course_id: int,
        amount_paid: Decimal = Decimal("0.00"),
        is_free: bool = False,
    ) -> Enrollment:
        course = crud_course.get_with_lectures(db, id=course_id)
        if not course:
            raise NotFoundError("Course not found.", code="COURSE_NOT_FOUND")

        if not course.is_published:
            raise PreconditionFailedError("Course is not available for enrollment.", code="COURSE_UNAVAILABLE")

        if crud_enrollment.get_by_user_and_course(db, user_id=user_id, course_id=course_id):
            raise ConflictError("User is already enrolled in this course.", code="ALREADY_ENROLLED")

        amount_paid = Decimal(str(amount_paid))
        if not is_free and amount_paid < course.effective_price:
            raise PreconditionFailedError(
                "Insufficient payment amount.",
                code="INSUFFICIENT_PAYMENT",
                details={"required": str(course.effective_price), "received": str(amount_paid)},
            )

        try:
            enrollment = crud_enrollment.create(db, obj_in={
                "user_id": user_id,
                "course_id": course_id,
                "status": EnrollmentStatusEnum.ACTIVE,
                "amount_paid": Decimal("0.00") if course.is_free else amount_paid,
            }, commit=False)
            crud_course.increment_student_count(db, course_id)
            self._seed_progress(db, user_id, course)
            db.commit()
        except IntegrityError:
            # Lost a race with a concurrent enrollment for the same pair.
            db.rollback()
            raise ConflictError("User is already enrolled in this course.", code="ALREADY_ENROLLED")
        except SQLAlchemyError:
            db.rollback()
            logger.error(f"Enrollment of user {user_id} in course {course_id} rolled back", exc_info=True)
            raise

        db.refresh(enrollment)
        logger.info(f"User {user_id} enrolled in course {course_id} (amount_paid={enrollment.amount_paid})")
        return enrollment

    def recompute_aggregate(self, db: Session, user_id: int, course_id: int) -> Enrollment:
        enrollment = self._get_or_raise_enrollment(db, user_id, course_id, for_update=True)
        rows = crud_progress.get_by_user_and_course(db, user_id=user_id, course_id=course_id)

        total_watch = sum(p.watch_seconds for p in rows)
        total_duration = sum(p.total_duration for p in rows)
        now = datetime.utcnow()

        enrollment.completed_lectures = sum(1 for p in rows if p.is_completed)
        enrollment.total_watch_seconds = total_watch
        enrollment.progress_percentage = (total_watch / total_duration) * 100 if total_duration > 0 else 0.0
        enrollment.last_accessed_at = now

        if enrollment.progress_percentage >= 100 and enrollment.status == EnrollmentStatusEnum.ACTIVE:
            enrollment.status = EnrollmentStatusEnum.COMPLETED
            enrollment.completed_at = now
            logger.info(f"User {user_id} completed course {course_id}")

        db.add(enrollment)
        db.commit()
        db.refresh(enrollment)
        return enrollment

    def _require_active(self, enrollment: Enrollment) -> None:
        # completed, dropped and expired are terminal
        if enrollment.status != EnrollmentStatusEnum.ACTIVE:
            raise PreconditionFailedError(
                "Enrollment is no longer active.",
                code="INVALID_ENROLLMENT_STATE",
                details={"status": enrollment.status.value},
            )

    def complete_course(self, db: Session, user_id: int, course_id: int) -> Enrollment:
        # Marks completion as requested; lecture progress is not checked.
        enrollment = self._get_or_raise_enrollment(db, user_id, course_id, for_update=True)
        self._require_active(enrollment)
        return crud_enrollment.update(db, db_obj=enrollment, obj_in={
            "status": EnrollmentStatusEnum.COMPLETED,
            "progress_percentage": 100.0,
            "completed_at": datetime.utcnow(),
        })

    def drop_course(self, db: Session, user_id: int, course_id: int) -> Enrollment:
        enrollment = self._get_or_raise_enrollment(db, user_id, course_id, for_update=True)
        self._require_active(enrollment)
        enrollment = crud_enrollment.update(db, db_obj=enrollment, obj_in={"status": EnrollmentStatusEnum.DROPPED})
        logger.info(f"User {user_id} dropped course {course_id}")
        return enrollment

    def expire_enrollments(self, db: Session, older_than: datetime) -> int:
        expired = crud_enrollment.expire_active_before(db, cutoff=older_than)
        db.commit()
        if expired:
            logger.info(f"Expired {expired} enrollments created before {older_than.isoformat()}")
        return expired

    def get_enrollment(self, db: Session, user_id: int, course_id: int, for_update: bool = False) -> Enrollment:
        return self._get_or_raise_enrollment(db, user_id, course_id, for_update=for_update)

    def list_user_enrollments(self, db: Session, user_id: int) -> List[Enrollment]:
        return crud_enrollment.get_by_user(db, user_id=user_id)


enrollment_service = EnrollmentService()
