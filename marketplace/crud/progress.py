from sqlalchemy.orm import Session
from typing import List, Optional

from marketplace.crud.base import CRUDBase
from marketplace.models.progress import Progress
from marketplace.schemas.progress import Progress as ProgressSchema


class CRUDProgress(CRUDBase[Progress, ProgressSchema, ProgressSchema]):

    def get_by_user_course_and_key(
        self, db: Session, user_id: int, course_id: int, lecture_key: str
    ) -> Optional[Progress]:
        return (
            db.query(Progress)
            .filter(Progress.user_id == user_id)
            .filter(Progress.course_id == course_id)
            .filter(Progress.lecture_key == lecture_key)
            .first()
        )

    def get_by_user_and_course(self, db: Session, user_id: int, course_id: int) -> List[Progress]:
        return (
            db.query(Progress)
            .filter(Progress.user_id == user_id)
            .filter(Progress.course_id == course_id)
            .order_by(Progress.created_at, Progress.id)
            .all()
        )


progress = CRUDProgress(Progress)
