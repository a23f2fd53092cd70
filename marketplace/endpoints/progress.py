from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marketplace.schemas.enrollment import Enrollment
from marketplace.schemas.progress import Progress, WatchProgressUpdate
from marketplace.schemas.response import APIResponse
from marketplace.schemas.user import UserContext
from marketplace.services.progress import progress_service
from marketplace.utils import deps

router = APIRouter()


@router.post("/courses/{course_id}/lectures/{lecture_id}", response_model=APIResponse[Progress])
def record_watch_progress(
    course_id: int,
    lecture_id: int,
    progress_in: WatchProgressUpdate,
    db: Session = Depends(deps.get_transactional_db),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    progress = progress_service.record_watch(
        db,
        user_id=context.user.id,
        course_id=course_id,
        lecture_id=lecture_id,
        watch_seconds=progress_in.watch_seconds,
    )
    return APIResponse(message="Progress recorded", data=Progress.model_validate(progress))


@router.get("/courses/{course_id}", response_model=APIResponse[List[Progress]])
def get_course_progress(
    course_id: int,
    db: Session = Depends(deps.get_db),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    rows = progress_service.get_course_progress(db, user_id=context.user.id, course_id=course_id)
    return APIResponse(message="Course progress retrieved", data=[Progress.model_validate(p) for p in rows])


@router.post("/courses/{course_id}/recompute", response_model=APIResponse[Enrollment])
def recompute_course_progress(
    course_id: int,
    db: Session = Depends(deps.get_transactional_db),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    enrollment = progress_service.recompute(db, user_id=context.user.id, course_id=course_id)
    return APIResponse(message="Course progress recomputed", data=Enrollment.model_validate(enrollment))
