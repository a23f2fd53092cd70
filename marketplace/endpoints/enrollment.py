from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from marketplace.core.exceptions import PermissionDeniedError
from marketplace.schemas.response import APIResponse
from marketplace.schemas.enrollment import Enrollment, EnrollmentCreate
from marketplace.schemas.user import UserContext
from marketplace.services.enrollment import enrollment_service
from marketplace.utils import deps
from marketplace.utils.permission import PermissionHelper as permission_helper

router = APIRouter()


@router.post("/", response_model=APIResponse[Enrollment], status_code=status.HTTP_201_CREATED)
def enroll(
    *,
    db: Session = Depends(deps.get_transactional_db),
    enrollment_in: EnrollmentCreate,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    if enrollment_in.is_free and not permission_helper.is_admin(context):
        raise PermissionDeniedError("Only administrators can grant free enrollment.")

    enrollment = enrollment_service.enroll(
        db,
        user_id=context.user.id,
        course_id=enrollment_in.course_id,
        amount_paid=enrollment_in.amount_paid,
        is_free=enrollment_in.is_free,
    )
    return APIResponse(message="Enrolled successfully", data=Enrollment.model_validate(enrollment))


@router.get("/me", response_model=APIResponse[List[Enrollment]])
def get_my_enrollments(
    db: Session = Depends(deps.get_db),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    enrollments = enrollment_service.list_user_enrollments(db, user_id=context.user.id)
    return APIResponse(
        message="Your enrollments retrieved successfully",
        data=[Enrollment.model_validate(e) for e in enrollments]
    )


@router.get("/courses/{course_id}", response_model=APIResponse[Enrollment])
def get_my_enrollment(
    course_id: int,
    db: Session = Depends(deps.get_db),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    enrollment = enrollment_service.get_enrollment(db, user_id=context.user.id, course_id=course_id)
    return APIResponse(message="Enrollment retrieved successfully", data=Enrollment.model_validate(enrollment))


@router.post("/courses/{course_id}/complete", response_model=APIResponse[Enrollment])
def complete_course(
    course_id: int,
    db: Session = Depends(deps.get_transactional_db),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    enrollment = enrollment_service.complete_course(db, user_id=context.user.id, course_id=course_id)
    return APIResponse(message="Course marked as completed", data=Enrollment.model_validate(enrollment))


@router.post("/courses/{course_id}/drop", response_model=APIResponse[Enrollment])
def drop_course(
    course_id: int,
    db: Session = Depends(deps.get_transactional_db),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    enrollment = enrollment_service.drop_course(db, user_id=context.user.id, course_id=course_id)
    return APIResponse(message="Course dropped", data=Enrollment.model_validate(enrollment))
