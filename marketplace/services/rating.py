import logging
from sqlalchemy.orm import Session

from marketplace.crud.course import course as crud_course
from marketplace.core.exceptions import NotFoundError, PreconditionFailedError

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


class RatingService:
    """Maintains a course's rating mean and review count."""

    def apply_rating(self, db: Session, course_id: int, rating: int, commit: bool = True) -> None:
        """Fold one accepted rating into the course aggregate.

        The new mean and count are computed inside a single UPDATE so two
        concurrent reviews cannot overwrite each other's contribution.
        """
        if not isinstance(rating, int) or isinstance(rating, bool) or not MIN_RATING <= rating <= MAX_RATING:
            raise PreconditionFailedError(
                f"Rating must be an integer between {MIN_RATING} and {MAX_RATING}.",
                code="INVALID_RATING",
                details={"rating": rating},
            )

        updated = crud_course.apply_rating(db, course_id, rating)
        if not updated:
            raise NotFoundError("Course not found.", code="COURSE_NOT_FOUND")

        if commit:
            db.commit()
        logger.debug(f"Applied rating {rating} to course {course_id}")

    def recalculate(self, db: Session, course_id: int, commit: bool = True) -> None:
        updated = crud_course.recalculate_rating(db, course_id)
        if not updated:
            raise NotFoundError("Course not found.", code="COURSE_NOT_FOUND")
        if commit:
            db.commit()


rating_service = RatingService()
