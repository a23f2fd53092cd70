import asyncio
import logging
import time
import uuid
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session

from marketplace.core.config import settings
from marketplace.core.constants import (
    PaymentStatusEnum, PaymentMethodEnum, CurrencyEnum, DEFAULT_REFUND_REASON
)
from marketplace.core.exceptions import (
    NotFoundError, ConflictError, PreconditionFailedError, ExternalServiceError, ProcessorTimeoutError
)
from marketplace.crud.course import course as crud_course
from marketplace.crud.payment import payment as crud_payment
from marketplace.models.payment import Payment
from marketplace.schemas.payment import PaymentStats
from marketplace.services.payment_processor import PaymentProcessor, get_payment_processor

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def calculate_charges(amount: Decimal, fee_rate: float, tax_rate: float) -> Tuple[Decimal, Decimal, Decimal]:
    """Return (fee, tax, net_amount) rounded to cents."""
    amount = Decimal(str(amount))
    fee = (amount * Decimal(str(fee_rate))).quantize(CENT, rounding=ROUND_HALF_UP)
    tax = (amount * Decimal(str(tax_rate))).quantize(CENT, rounding=ROUND_HALF_UP)
    return fee, tax, amount - fee - tax


def _external_reference(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class PaymentService:
    """Payment lifecycle: pending -> completed | failed, completed -> refunded.

    Processor calls are bounded by ``timeout`` and never retried here; a
    timed-out call leaves the payment untouched for manual reconciliation.
    """

    def __init__(self, processor: Optional[PaymentProcessor] = None, timeout: Optional[float] = None):
        self._processor = processor
        self.timeout = settings.PAYMENT_PROCESSOR_TIMEOUT_SECONDS if timeout is None else timeout

    @property
    def processor(self) -> PaymentProcessor:
        if self._processor is None:
            self._processor = get_payment_processor()
        return self._processor

    def _get_or_raise_payment(self, db: Session, payment_id: int) -> Payment:
        payment = crud_payment.get(db, id=payment_id)
        if not payment:
            raise NotFoundError("Payment not found.", code="PAYMENT_NOT_FOUND")
        return payment

    def _claim(self, db: Session, payment: Payment, status: PaymentStatusEnum) -> None:
        claimed = crud_payment.claim(db, payment.id, status)
        db.commit()
        if not claimed:
            logger.warning(f"Payment {payment.id} is already claimed by another request")
            raise ConflictError("Payment is already being processed.", code="PAYMENT_IN_PROGRESS")
        db.refresh(payment)

    def _release(self, db: Session, payment_id: int) -> None:
        db.rollback()
        crud_payment.release(db, payment_id)
        db.commit()

    async def _settle(self, db: Session, operation, payment: Payment, action: str) -> bool:
        try:
            return await self._call_processor(operation, payment, action)
        except ProcessorTimeoutError:
            # outcome unknown; the claim stays until reconciled
            raise
        except Exception:
            self._release(db, payment.id)
            raise

    async def _call_processor(self, operation, payment: Payment, action: str) -> bool:
        try:
            return await asyncio.wait_for(operation(payment), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Payment processor timed out during {action} of payment {payment.id}")
            raise ProcessorTimeoutError(
                f"Payment processor did not respond during {action}; the payment requires manual reconciliation.",
                details={"payment_id": payment.id, "status": payment.status.value},
            )

    def create_payment(
        self,
        db: Session,
        *,
        user_id: int,
        amount: Decimal,
        course_id: Optional[int] = None,
        currency: CurrencyEnum = CurrencyEnum.USD,
        payment_method: PaymentMethodEnum = PaymentMethodEnum.STRIPE,
        description: Optional[str] = None,
        payment_metadata: Optional[Dict[str, Any]] = None,
    ) -> Payment:
        amount = Decimal(str(amount))
        if amount <= 0:
            raise PreconditionFailedError("Payment amount must be positive.", code="INVALID_AMOUNT")

        course = None
        if course_id is not None:
            course = crud_course.get(db, id=course_id)
            if not course:
                raise NotFoundError("Course not found.", code="COURSE_NOT_FOUND")
            if not course.is_published:
                raise PreconditionFailedError("Course is not available for purchase.", code="COURSE_UNAVAILABLE")
            if amount < course.effective_price:
                raise PreconditionFailedError(
                    "Payment amount is less than course price.",
                    code="UNDERPAID_AMOUNT",
                    details={"required": str(course.effective_price), "received": str(amount)},
                )

        fee, tax, net_amount = calculate_charges(amount, settings.PLATFORM_FEE_RATE, settings.TAX_RATE)

        payment = crud_payment.create(db, obj_in={
            "user_id": user_id,
            "course_id": course_id,
            "amount": amount,
            "currency": currency,
            "payment_method": payment_method,
            "fee": fee,
            "tax": tax,
            "net_amount": net_amount,
            "description": description or (f"Payment for {course.title}" if course else None),
            "payment_metadata": payment_metadata,
            "status": PaymentStatusEnum.PENDING,
        })
        logger.info(f"Payment {payment.id} created for user {user_id} (amount={amount} {currency.value})")
        return payment

    async def process_payment(self, db: Session, payment_id: int) -> Payment:
        payment = self._get_or_raise_payment(db, payment_id)
        if payment.status != PaymentStatusEnum.PENDING:
            raise PreconditionFailedError(
                "Payment is not in pending status.",
                code="INVALID_PAYMENT_STATE",
                details={"status": payment.status.value},
            )

        self._claim(db, payment, PaymentStatusEnum.PENDING)
        success = await self._settle(db, self.processor.attempt_charge, payment, "charge")
        payment.is_processing = False

        if success:
            payment.status = PaymentStatusEnum.COMPLETED
            payment.transaction_id = _external_reference("txn")
            payment.payment_intent_id = payment.payment_intent_id or _external_reference("pi")
            payment.invoice_url = f"{settings.INVOICE_BASE_URL}/{payment.id}"
            payment.receipt_url = f"{settings.RECEIPT_BASE_URL}/{payment.id}"
            payment.error_details = None
            logger.info(f"Payment {payment.id} completed ({payment.transaction_id})")
        else:
            payment.status = PaymentStatusEnum.FAILED
            payment.error_details = {
                "code": "PAYMENT_FAILED",
                "message": "Payment processing failed.",
            }
            logger.warning(f"Payment {payment.id} failed at the processor")

        db.add(payment)
        db.commit()
        db.refresh(payment)
        return payment

    async def refund_payment(self, db: Session, payment_id: int, reason: Optional[str] = None) -> Payment:
        payment = self._get_or_raise_payment(db, payment_id)
        if payment.is_refunded:
            raise ConflictError("Payment is already refunded.", code="ALREADY_REFUNDED")
        if payment.status != PaymentStatusEnum.COMPLETED:
            raise PreconditionFailedError(
                "Only completed payments can be refunded.",
                code="NOT_REFUNDABLE",
                details={"status": payment.status.value},
            )

        self._claim(db, payment, PaymentStatusEnum.COMPLETED)
        refunded = await self._settle(db, self.processor.attempt_refund, payment, "refund")
        if not refunded:
            self._release(db, payment.id)
            logger.warning(f"Refund of payment {payment_id} was declined by the processor")
            raise ExternalServiceError("Refund processing failed.", code="REFUND_FAILED")

        payment.status = PaymentStatusEnum.REFUNDED
        payment.is_refunded = True
        payment.refunded_amount = payment.amount
        payment.refunded_at = datetime.utcnow()
        payment.refund_reason = reason or DEFAULT_REFUND_REASON
        payment.is_processing = False

        db.add(payment)
        db.commit()
        db.refresh(payment)
        logger.info(f"Payment {payment.id} refunded ({payment.refunded_amount})")
        return payment

    def get_payment(self, db: Session, payment_id: int) -> Payment:
        return self._get_or_raise_payment(db, payment_id)

    def list_user_payments(self, db: Session, user_id: int) -> List[Payment]:
        return crud_payment.get_by_user(db, user_id=user_id)

    def list_course_payments(self, db: Session, course_id: int) -> List[Payment]:
        return crud_payment.get_by_course(db, course_id=course_id)

    def payment_stats(self, db: Session) -> PaymentStats:
        return PaymentStats(
            total_payments=crud_payment.count_completed(db),
            total_revenue=crud_payment.sum_completed(db),
            monthly_revenue=crud_payment.sum_completed(db, since=datetime.utcnow() - timedelta(days=30)),
        )


payment_service = PaymentService()


def get_payment_service() -> PaymentService:
    return payment_service
