from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from marketplace.schemas.response import APIResponse
from marketplace.schemas.review import Review, ReviewCreate, ReviewUpdate, ReviewStats
from marketplace.schemas.user import UserContext
from marketplace.services.review import review_service
from marketplace.utils import deps

router = APIRouter()


@router.post("/reviews", response_model=APIResponse[Review], status_code=status.HTTP_201_CREATED)
def create_review(
    *,
    db: Session = Depends(deps.get_transactional_db),
    review_in: ReviewCreate,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    review = review_service.create_review(db, review_in=review_in, current_user_context=context)
    return APIResponse(message="Review submitted successfully", data=Review.model_validate(review))


@router.put("/reviews/{review_id}", response_model=APIResponse[Review])
def update_review(
    *,
    db: Session = Depends(deps.get_transactional_db),
    review_id: int,
    review_in: ReviewUpdate,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    review = review_service.update_review(db, review_id=review_id, review_in=review_in, current_user_context=context)
    return APIResponse(message="Review updated successfully", data=Review.model_validate(review))


@router.delete("/reviews/{review_id}", response_model=APIResponse[None])
def delete_review(
    *,
    db: Session = Depends(deps.get_transactional_db),
    review_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    review_service.delete_review(db, review_id=review_id, current_user_context=context)
    return APIResponse(message="Review deleted successfully")


@router.get("/courses/{course_id}/reviews", response_model=APIResponse[List[Review]])
def get_course_reviews(
    course_id: int,
    db: Session = Depends(deps.get_db),
    context: UserContext = Depends(deps.get_current_user_with_context),
    skip: int = 0,
    limit: int = 100
):
    reviews = review_service.list_course_reviews(db, course_id=course_id, skip=skip, limit=limit)
    return APIResponse(message="Course reviews retrieved", data=[Review.model_validate(r) for r in reviews])


@router.get("/courses/{course_id}/reviews/stats", response_model=APIResponse[ReviewStats])
def get_course_review_stats(
    course_id: int,
    db: Session = Depends(deps.get_db),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    stats = review_service.course_review_stats(db, course_id=course_id)
    return APIResponse(message="Course review statistics retrieved", data=stats)
