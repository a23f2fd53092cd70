from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from marketplace.schemas.response import APIResponse
from marketplace.utils import deps
from marketplace.schemas.course import Course, CourseCreate, CourseUpdate, Lecture, LectureCreate
from marketplace.services.course import course_service
from marketplace.schemas.user import UserContext

router = APIRouter()


@router.post("/", response_model=APIResponse[Course], status_code=status.HTTP_201_CREATED)
def create_course(
    *,
    db: Session = Depends(deps.get_transactional_db),
    course_in: CourseCreate,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    new_course = course_service.create_course(db, course_in=course_in, current_user_context=context)
    return APIResponse(message="Course created successfully", data=Course.model_validate(new_course))


@router.get("/{course_id}", response_model=APIResponse[Course])
def read_course(
    *,
    db: Session = Depends(deps.get_db),
    course_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    course = course_service.get_course(db, course_id=course_id)
    return APIResponse(message="Course retrieved successfully", data=Course.model_validate(course))


@router.put("/{course_id}", response_model=APIResponse[Course])
def update_course(
    *,
    db: Session = Depends(deps.get_transactional_db),
    course_id: int,
    course_in: CourseUpdate,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    course = course_service.update_course(db, course_id=course_id, course_in=course_in, current_user_context=context)
    return APIResponse(message="Course updated successfully", data=Course.model_validate(course))


@router.post("/{course_id}/lectures", response_model=APIResponse[Lecture], status_code=status.HTTP_201_CREATED)
def add_lecture(
    *,
    db: Session = Depends(deps.get_transactional_db),
    course_id: int,
    lecture_in: LectureCreate,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    lecture = course_service.add_lecture(db, course_id=course_id, lecture_in=lecture_in, current_user_context=context)
    return APIResponse(message="Lecture added successfully", data=Lecture.model_validate(lecture))


@router.get("/{course_id}/lectures", response_model=APIResponse[List[Lecture]])
def list_lectures(
    *,
    db: Session = Depends(deps.get_db),
    course_id: int,
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    lectures = course_service.list_lectures(db, course_id=course_id)
    return APIResponse(message="Lectures retrieved successfully", data=[Lecture.model_validate(l) for l in lectures])
