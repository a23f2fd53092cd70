import logging
from datetime import datetime
from typing import List
from sqlalchemy.orm import Session

from marketplace.crud.course import course as crud_course, lecture as crud_lecture
from marketplace.core.exceptions import NotFoundError
from marketplace.models.course import Course
from marketplace.models.lecture import Lecture
from marketplace.schemas.course import CourseCreate, CourseUpdate, LectureCreate
from marketplace.schemas.user import UserContext
from marketplace.utils.permission import PermissionHelper as permission_helper

logger = logging.getLogger(__name__)


class CourseService:

    def get_course(self, db: Session, course_id: int) -> Course:
        course = crud_course.get(db, id=course_id)
        if not course:
            raise NotFoundError("Course not found.", code="COURSE_NOT_FOUND")
        return course

    def create_course(self, db: Session, course_in: CourseCreate, current_user_context: UserContext) -> Course:
        permission_helper.require_instructor_or_admin(current_user_context)

        course_data = course_in.model_dump()
        course_data["instructor_id"] = current_user_context.user.id
        if course_in.is_published:
            course_data["published_at"] = datetime.utcnow()

        course = crud_course.create(db, obj_in=course_data)
        logger.info(f"Course {course.id} created by user {current_user_context.user.id}")
        return course

    def update_course(self, db: Session, course_id: int, course_in: CourseUpdate, current_user_context: UserContext) -> Course:
        course = self.get_course(db, course_id)
        permission_helper.require_course_management_permission(current_user_context, course)

        update_data = course_in.model_dump(exclude_unset=True)
        if update_data.get("is_published") and not course.is_published:
            update_data["published_at"] = datetime.utcnow()

        return crud_course.update(db, db_obj=course, obj_in=update_data)

    def add_lecture(self, db: Session, course_id: int, lecture_in: LectureCreate, current_user_context: UserContext) -> Lecture:
        course = self.get_course(db, course_id)
        permission_helper.require_course_management_permission(current_user_context, course)

        lecture_data = lecture_in.model_dump()
        lecture_data["course_id"] = course_id
        if lecture_data.get("position") is None:
            lecture_data["position"] = crud_lecture.next_position(db, course_id)

        lecture = crud_lecture.create(db, obj_in=lecture_data, commit=False)
        crud_course.add_lecture_totals(db, course_id, lecture.duration_seconds)
        db.commit()
        db.refresh(lecture)
        return lecture

    def list_lectures(self, db: Session, course_id: int) -> List[Lecture]:
        self.get_course(db, course_id)
        return crud_lecture.get_by_course(db, course_id=course_id)


course_service = CourseService()
