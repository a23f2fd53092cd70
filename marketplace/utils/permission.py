from marketplace.core.constants import RoleEnum
from marketplace.core.exceptions import PermissionDeniedError
from marketplace.models.course import Course
from marketplace.schemas.user import UserContext


class PermissionHelper:
    @staticmethod
    def is_admin(context: UserContext) -> bool:
        return context.role == RoleEnum.ADMIN

    @staticmethod
    def is_instructor(context: UserContext) -> bool:
        return context.role == RoleEnum.INSTRUCTOR

    @staticmethod
    def is_student(context: UserContext) -> bool:
        return context.role == RoleEnum.STUDENT

    @staticmethod
    def is_instructor_of_course(context: UserContext, course: Course) -> bool:
        return PermissionHelper.is_instructor(context) and course.instructor_id == context.user.id

    @staticmethod
    def can_manage_course(context: UserContext, course: Course) -> bool:
        return PermissionHelper.is_admin(context) or PermissionHelper.is_instructor_of_course(context, course)

    @staticmethod
    def require_instructor_or_admin(context: UserContext):
        if not (PermissionHelper.is_instructor(context) or PermissionHelper.is_admin(context)):
            raise PermissionDeniedError("Only instructors can manage courses.")

    @staticmethod
    def require_course_management_permission(context: UserContext, course: Course):
        if not PermissionHelper.can_manage_course(context, course):
            raise PermissionDeniedError("You do not have permission to manage this course.")

    @staticmethod
    def require_admin(context: UserContext):
        if not PermissionHelper.is_admin(context):
            raise PermissionDeniedError("Only administrators can perform this action.")

    @staticmethod
    def require_owner_or_admin(context: UserContext, owner_id: int, message: str = "You can only access your own records."):
        if owner_id != context.user.id and not PermissionHelper.is_admin(context):
            raise PermissionDeniedError(message)
