from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from marketplace.schemas.payment import Payment, PaymentCreate, PaymentRefund, PaymentStats
from marketplace.schemas.response import APIResponse
from marketplace.schemas.user import UserContext
from marketplace.services.payment import PaymentService, get_payment_service
from marketplace.utils import deps
from marketplace.utils.permission import PermissionHelper as permission_helper

router = APIRouter()


@router.post("/", response_model=APIResponse[Payment], status_code=status.HTTP_201_CREATED)
def create_payment(
    *,
    db: Session = Depends(deps.get_transactional_db),
    payment_in: PaymentCreate,
    context: UserContext = Depends(deps.get_current_user_with_context),
    service: PaymentService = Depends(get_payment_service)
):
    payment = service.create_payment(
        db,
        user_id=context.user.id,
        amount=payment_in.amount,
        course_id=payment_in.course_id,
        currency=payment_in.currency,
        payment_method=payment_in.payment_method,
        description=payment_in.description,
        payment_metadata=payment_in.payment_metadata,
    )
    return APIResponse(message="Payment created", data=Payment.model_validate(payment))


@router.get("/me", response_model=APIResponse[List[Payment]])
def get_my_payments(
    db: Session = Depends(deps.get_db),
    context: UserContext = Depends(deps.get_current_user_with_context),
    service: PaymentService = Depends(get_payment_service)
):
    payments = service.list_user_payments(db, user_id=context.user.id)
    return APIResponse(message="Your payments retrieved successfully", data=[Payment.model_validate(p) for p in payments])


@router.get("/stats", response_model=APIResponse[PaymentStats])
def get_payment_stats(
    db: Session = Depends(deps.get_db),
    context: UserContext = Depends(deps.get_current_user_with_context),
    service: PaymentService = Depends(get_payment_service)
):
    permission_helper.require_admin(context)
    return APIResponse(message="Payment statistics retrieved", data=service.payment_stats(db))


@router.get("/{payment_id}", response_model=APIResponse[Payment])
def get_payment(
    payment_id: int,
    db: Session = Depends(deps.get_db),
    context: UserContext = Depends(deps.get_current_user_with_context),
    service: PaymentService = Depends(get_payment_service)
):
    payment = service.get_payment(db, payment_id)
    permission_helper.require_owner_or_admin(context, payment.user_id, "You can only view your own payments.")
    return APIResponse(message="Payment retrieved successfully", data=Payment.model_validate(payment))


@router.post("/{payment_id}/process", response_model=APIResponse[Payment])
async def process_payment(
    payment_id: int,
    db: Session = Depends(deps.get_transactional_db),
    context: UserContext = Depends(deps.get_current_user_with_context),
    service: PaymentService = Depends(get_payment_service)
):
    payment = service.get_payment(db, payment_id)
    permission_helper.require_owner_or_admin(context, payment.user_id, "You can only process your own payments.")

    payment = await service.process_payment(db, payment_id)
    message = "Payment completed" if payment.is_successful else "Payment failed"
    return APIResponse(message=message, data=Payment.model_validate(payment))


@router.post("/{payment_id}/refund", response_model=APIResponse[Payment])
async def refund_payment(
    payment_id: int,
    refund_in: PaymentRefund,
    db: Session = Depends(deps.get_transactional_db),
    context: UserContext = Depends(deps.get_current_user_with_context),
    service: PaymentService = Depends(get_payment_service)
):
    payment = service.get_payment(db, payment_id)
    permission_helper.require_owner_or_admin(context, payment.user_id, "You can only refund your own payments.")

    payment = await service.refund_payment(db, payment_id, reason=refund_in.reason)
    return APIResponse(message="Payment refunded", data=Payment.model_validate(payment))
