from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List
from datetime import datetime
from decimal import Decimal

from marketplace.crud.base import CRUDBase
from marketplace.models.payment import Payment
from marketplace.core.constants import PaymentStatusEnum
from marketplace.schemas.payment import PaymentCreate


class CRUDPayment(CRUDBase[Payment, PaymentCreate, PaymentCreate]):

    def get_by_user(self, db: Session, user_id: int, skip: int = 0, limit: int = 100) -> List[Payment]:
        return (
            db.query(Payment)
            .filter(Payment.user_id == user_id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_by_course(self, db: Session, course_id: int, skip: int = 0, limit: int = 100) -> List[Payment]:
        return (
            db.query(Payment)
            .filter(Payment.course_id == course_id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def count_completed(self, db: Session) -> int:
        return (
            db.query(func.count(Payment.id))
            .filter(Payment.status == PaymentStatusEnum.COMPLETED)
            .scalar()
        )

    def sum_completed(self, db: Session, since: datetime = None) -> Decimal:
        query = db.query(func.sum(Payment.amount)).filter(Payment.status == PaymentStatusEnum.COMPLETED)
        if since is not None:
            query = query.filter(Payment.created_at >= since)
        total = query.scalar()
        return Decimal(str(total)).quantize(Decimal("0.01")) if total is not None else Decimal("0.00")

    # Claims are conditional UPDATEs so only one caller wins a payment even
    # on backends without row locks.

    def claim(self, db: Session, payment_id: int, status: PaymentStatusEnum) -> bool:
        claimed = db.query(Payment).filter(
            Payment.id == payment_id,
            Payment.status == status,
            Payment.is_refunded.is_(False),
            Payment.is_processing.is_(False),
        ).update({Payment.is_processing: True}, synchronize_session=False)
        return claimed == 1

    def release(self, db: Session, payment_id: int) -> None:
        db.query(Payment).filter(Payment.id == payment_id).update(
            {Payment.is_processing: False}, synchronize_session=False
        )


payment = CRUDPayment(Payment)
