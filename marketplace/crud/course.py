from sqlalchemy.orm import Session, selectinload
from sqlalchemy import func
from typing import List, Optional

from marketplace.crud.base import CRUDBase
from marketplace.models.course import Course
from marketplace.models.lecture import Lecture
from marketplace.models.review import Review
from marketplace.schemas.course import CourseCreate, CourseUpdate, LectureCreate


class CRUDCourse(CRUDBase[Course, CourseCreate, CourseUpdate]):

    def get_with_lectures(self, db: Session, id: int) -> Optional[Course]:
        return (
            db.query(Course)
            .options(selectinload(Course.lectures))
            .filter(Course.id == id)
            .first()
        )

    # Counter writes below are single UPDATE statements so concurrent
    # requests cannot lose increments.

    def increment_student_count(self, db: Session, course_id: int) -> None:
        db.query(Course).filter(Course.id == course_id).update(
            {Course.total_students: Course.total_students + 1},
            synchronize_session=False,
        )

    def add_lecture_totals(self, db: Session, course_id: int, duration_seconds: int) -> None:
        db.query(Course).filter(Course.id == course_id).update(
            {
                Course.total_lectures: Course.total_lectures + 1,
                Course.total_duration_seconds: Course.total_duration_seconds + duration_seconds,
            },
            synchronize_session=False,
        )

    def apply_rating(self, db: Session, course_id: int, rating: int) -> int:
        """Fold one rating into the running mean; returns the number of rows updated."""
        return db.query(Course).filter(Course.id == course_id).update(
            {
                Course.rating: (Course.rating * Course.total_reviews + rating) / (Course.total_reviews + 1),
                Course.total_reviews: Course.total_reviews + 1,
            },
            synchronize_session=False,
        )

    def recalculate_rating(self, db: Session, course_id: int) -> int:
        visible = (Review.course_id == course_id) & (Review.is_visible.is_(True))
        average = (
            db.query(func.coalesce(func.avg(Review.rating * 1.0), 0.0))
            .filter(visible)
            .scalar_subquery()
        )
        count = db.query(func.count(Review.id)).filter(visible).scalar_subquery()
        return db.query(Course).filter(Course.id == course_id).update(
            {Course.rating: average, Course.total_reviews: count},
            synchronize_session=False,
        )


class CRUDLecture(CRUDBase[Lecture, LectureCreate, LectureCreate]):

    def get_by_course(self, db: Session, course_id: int) -> List[Lecture]:
        return (
            db.query(Lecture)
            .filter(Lecture.course_id == course_id)
            .order_by(Lecture.position, Lecture.id)
            .all()
        )

    def get_in_course(self, db: Session, course_id: int, lecture_id: int) -> Optional[Lecture]:
        return (
            db.query(Lecture)
            .filter(Lecture.course_id == course_id)
            .filter(Lecture.id == lecture_id)
            .first()
        )

    def next_position(self, db: Session, course_id: int) -> int:
        current = db.query(func.max(Lecture.position)).filter(Lecture.course_id == course_id).scalar()
        return 0 if current is None else current + 1


course = CRUDCourse(Course)
lecture = CRUDLecture(Lecture)
