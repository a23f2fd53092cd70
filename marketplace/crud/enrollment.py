from sqlalchemy.orm import Session, selectinload
from typing import List, Optional
from datetime import datetime

from marketplace.crud.base import CRUDBase
from marketplace.models.enrollment import Enrollment
from marketplace.core.constants import EnrollmentStatusEnum
from marketplace.schemas.enrollment import EnrollmentCreate


class CRUDEnrollment(CRUDBase[Enrollment, EnrollmentCreate, EnrollmentCreate]):

    def get_by_user_and_course(
        self, db: Session, user_id: int, course_id: int, *, for_update: bool = False
    ) -> Optional[Enrollment]:
        query = (
            db.query(Enrollment)
            .filter(Enrollment.user_id == user_id)
            .filter(Enrollment.course_id == course_id)
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_by_user(self, db: Session, user_id: int, skip: int = 0, limit: int = 100) -> List[Enrollment]:
        return (
            db.query(Enrollment)
            .options(selectinload(Enrollment.course))
            .filter(Enrollment.user_id == user_id)
            .order_by(Enrollment.created_at.desc(), Enrollment.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_by_course(self, db: Session, course_id: int, skip: int = 0, limit: int = 100) -> List[Enrollment]:
        return (
            db.query(Enrollment)
            .filter(Enrollment.course_id == course_id)
            .offset(skip)
            .limit(limit)
            .all()
        )

    def expire_active_before(self, db: Session, cutoff: datetime) -> int:
        return (
            db.query(Enrollment)
            .filter(Enrollment.status == EnrollmentStatusEnum.ACTIVE)
            .filter(Enrollment.created_at < cutoff)
            .update({Enrollment.status: EnrollmentStatusEnum.EXPIRED}, synchronize_session=False)
        )


enrollment = CRUDEnrollment(Enrollment)
