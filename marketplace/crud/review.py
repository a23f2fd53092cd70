from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List, Optional, Dict

from marketplace.crud.base import CRUDBase
from marketplace.models.review import Review
from marketplace.schemas.review import ReviewCreate, ReviewUpdate


class CRUDReview(CRUDBase[Review, ReviewCreate, ReviewUpdate]):

    def _query_visible(self, db: Session, course_id: int):
        return (
            db.query(Review)
            .filter(Review.course_id == course_id)
            .filter(Review.is_visible.is_(True))
        )

    def get_by_user_and_course(self, db: Session, user_id: int, course_id: int) -> Optional[Review]:
        return (
            db.query(Review)
            .filter(Review.user_id == user_id)
            .filter(Review.course_id == course_id)
            .first()
        )

    def get_visible_by_course(self, db: Session, course_id: int, skip: int = 0, limit: int = 100) -> List[Review]:
        return (
            self._query_visible(db, course_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_rating_distribution(self, db: Session, course_id: int) -> Dict[int, int]:
        results = (
            self._query_visible(db, course_id)
            .with_entities(Review.rating, func.count(Review.id))
            .group_by(Review.rating)
            .all()
        )

        distribution = {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}
        for rating, count in results:
            distribution[int(rating)] = count

        return distribution


review = CRUDReview(Review)
