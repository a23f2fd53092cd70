import logging
from typing import List
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.crud.course import course as crud_course
from marketplace.crud.enrollment import enrollment as crud_enrollment
from marketplace.crud.review import review as crud_review
from marketplace.core.exceptions import NotFoundError, ConflictError
from marketplace.models.review import Review
from marketplace.schemas.review import ReviewCreate, ReviewUpdate, ReviewStats
from marketplace.schemas.user import UserContext
from marketplace.services.rating import rating_service
from marketplace.utils.permission import PermissionHelper as permission_helper

logger = logging.getLogger(__name__)


class ReviewService:

    def _get_course_or_raise(self, db: Session, course_id: int):
        course = crud_course.get(db, id=course_id)
        if not course:
            raise NotFoundError("Course not found.", code="COURSE_NOT_FOUND")
        return course

    def _get_or_raise_review(self, db: Session, review_id: int) -> Review:
        review = crud_review.get(db, id=review_id)
        if not review:
            raise NotFoundError("Review not found.", code="REVIEW_NOT_FOUND")
        return review

    def create_review(self, db: Session, review_in: ReviewCreate, current_user_context: UserContext) -> Review:
        user_id = current_user_context.user.id
        self._get_course_or_raise(db, review_in.course_id)

        if crud_review.get_by_user_and_course(db, user_id=user_id, course_id=review_in.course_id):
            raise ConflictError("You have already reviewed this course.", code="ALREADY_REVIEWED")

        enrollment = crud_enrollment.get_by_user_and_course(db, user_id=user_id, course_id=review_in.course_id)

        review_data = review_in.model_dump()
        review_data["user_id"] = user_id
        review_data["is_verified"] = enrollment is not None

        try:
            review = crud_review.create(db, obj_in=review_data, commit=False)
            rating_service.apply_rating(db, review_in.course_id, review_in.rating, commit=False)
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("You have already reviewed this course.", code="ALREADY_REVIEWED")
        except Exception:
            db.rollback()
            raise

        db.refresh(review)
        logger.info(f"User {user_id} reviewed course {review.course_id} with rating {review.rating}")
        return review

    def update_review(self, db: Session, review_id: int, review_in: ReviewUpdate, current_user_context: UserContext) -> Review:
        review = self._get_or_raise_review(db, review_id)
        permission_helper.require_owner_or_admin(
            current_user_context, review.user_id, "You can only update your own reviews."
        )

        review = crud_review.update(db, db_obj=review, obj_in=review_in, commit=False)
        rating_service.recalculate(db, review.course_id, commit=False)
        db.commit()
        db.refresh(review)
        return review

    def delete_review(self, db: Session, review_id: int, current_user_context: UserContext) -> None:
        review = self._get_or_raise_review(db, review_id)
        permission_helper.require_owner_or_admin(
            current_user_context, review.user_id, "You can only delete your own reviews."
        )

        course_id = review.course_id
        crud_review.delete(db, id=review_id, commit=False)
        rating_service.recalculate(db, course_id, commit=False)
        db.commit()
        logger.info(f"Review {review_id} removed from course {course_id}")

    def list_course_reviews(self, db: Session, course_id: int, skip: int = 0, limit: int = 100) -> List[Review]:
        self._get_course_or_raise(db, course_id)
        return crud_review.get_visible_by_course(db, course_id=course_id, skip=skip, limit=limit)

    def course_review_stats(self, db: Session, course_id: int) -> ReviewStats:
        course = self._get_course_or_raise(db, course_id)
        return ReviewStats(
            course_id=course_id,
            total_reviews=course.total_reviews,
            average_rating=round(course.rating or 0.0, 1),
            rating_distribution=crud_review.get_rating_distribution(db, course_id=course_id),
        )


review_service = ReviewService()
