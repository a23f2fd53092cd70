from decimal import Decimal
import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from marketplace.core.constants import EnrollmentStatusEnum, ProgressStatusEnum
from marketplace.core.exceptions import NotFoundError, PreconditionFailedError, PartialUpdateError
from marketplace.crud.course import lecture as crud_lecture
from marketplace.crud.progress import progress as crud_progress
from marketplace.models.course import Course
from marketplace.models.progress import Progress
from marketplace.services.enrollment import enrollment_service
from marketplace.services.progress import progress_service


@pytest.fixture
def enrolled_course(db_session: Session, course_factory, student):
    def _setup(*durations):
        course = course_factory(price="0.00", is_free=True, lecture_durations=durations)
        enrollment_service.enroll(db_session, user_id=student.id, course_id=course.id)
        lectures = crud_lecture.get_by_course(db_session, course_id=course.id)
        return course, lectures
    return _setup


def _watch(db_session, student, course, lecture, seconds):
    return progress_service.record_watch(
        db_session, user_id=student.id, course_id=course.id, lecture_id=lecture.id, watch_seconds=seconds
    )


def test_enroll_then_watch_half_of_single_lecture(db_session: Session, course_factory, student):
    course = course_factory(price="49.99", lecture_durations=(600,))
    enrollment = enrollment_service.enroll(
        db_session, user_id=student.id, course_id=course.id, amount_paid=Decimal("49.99")
    )
    assert db_session.get(Course, course.id).total_students == 1
    lecture = crud_lecture.get_by_course(db_session, course_id=course.id)[0]

    progress = _watch(db_session, student, course, lecture, 300)

    assert progress.completion_percentage == 50.0
    assert progress.status == ProgressStatusEnum.IN_PROGRESS
    enrollment = enrollment_service.get_enrollment(db_session, student.id, course.id)
    assert enrollment.progress_percentage == 50.0
    assert enrollment.total_watch_seconds == 300
    assert enrollment.last_accessed_at is not None


def test_aggregate_is_weighted_by_duration(db_session: Session, enrolled_course, student):
    course, (short, long) = enrolled_course(100, 300)

    _watch(db_session, student, course, short, 50)
    enrollment = enrollment_service.get_enrollment(db_session, student.id, course.id)
    assert enrollment.progress_percentage == pytest.approx(12.5)
    assert enrollment.completed_lectures == 0

    _watch(db_session, student, course, long, 300)
    enrollment = enrollment_service.get_enrollment(db_session, student.id, course.id)
    assert enrollment.progress_percentage == pytest.approx(87.5)
    assert enrollment.completed_lectures == 1
    assert enrollment.total_watch_seconds == 350
    assert enrollment.status == EnrollmentStatusEnum.ACTIVE


def test_watch_seconds_are_clamped_to_duration(db_session: Session, enrolled_course, student):
    course, (lecture,) = enrolled_course(600)

    progress = _watch(db_session, student, course, lecture, 900)

    assert progress.watch_seconds == 600
    assert progress.completion_percentage == 100.0
    assert progress.is_completed is True
    assert progress.status == ProgressStatusEnum.COMPLETED
    assert progress.completed_at is not None


def test_negative_watch_seconds_are_clamped_to_zero(db_session: Session, enrolled_course, student):
    course, (lecture,) = enrolled_course(600)

    progress = _watch(db_session, student, course, lecture, -30)

    assert progress.watch_seconds == 0
    assert progress.status == ProgressStatusEnum.NOT_STARTED


def test_progress_never_moves_backwards(db_session: Session, enrolled_course, student):
    course, (lecture,) = enrolled_course(600)

    _watch(db_session, student, course, lecture, 450)
    progress = _watch(db_session, student, course, lecture, 120)

    assert progress.watch_seconds == 450
    assert progress.completion_percentage == 75.0
    assert enrollment_service.get_enrollment(db_session, student.id, course.id).progress_percentage == 75.0


def test_finishing_every_lecture_completes_enrollment(db_session: Session, enrolled_course, student):
    course, (first, second) = enrolled_course(60, 120)

    _watch(db_session, student, course, first, 60)
    _watch(db_session, student, course, second, 120)

    enrollment = enrollment_service.get_enrollment(db_session, student.id, course.id)
    assert enrollment.progress_percentage == 100.0
    assert enrollment.completed_lectures == 2
    assert enrollment.status == EnrollmentStatusEnum.COMPLETED
    assert enrollment.completed_at is not None


def test_completed_enrollment_still_accepts_progress(db_session: Session, enrolled_course, student):
    course, (lecture,) = enrolled_course(600)
    enrollment_service.complete_course(db_session, student.id, course.id)

    progress = _watch(db_session, student, course, lecture, 200)

    assert progress.watch_seconds == 200
    enrollment = enrollment_service.get_enrollment(db_session, student.id, course.id)
    assert enrollment.status == EnrollmentStatusEnum.COMPLETED


def test_dropped_enrollment_rejects_progress(db_session: Session, enrolled_course, student):
    course, (lecture,) = enrolled_course(600)
    enrollment_service.drop_course(db_session, student.id, course.id)

    with pytest.raises(PreconditionFailedError) as exc_info:
        _watch(db_session, student, course, lecture, 100)

    assert exc_info.value.code == "ENROLLMENT_INACTIVE"


def test_progress_requires_enrollment(db_session: Session, course_factory, student):
    course = course_factory(lecture_durations=(600,))
    lecture = crud_lecture.get_by_course(db_session, course_id=course.id)[0]

    with pytest.raises(NotFoundError) as exc_info:
        _watch(db_session, student, course, lecture, 100)

    assert exc_info.value.code == "NOT_ENROLLED"


def test_lecture_from_another_course_is_rejected(db_session: Session, enrolled_course, course_factory, student):
    course, _ = enrolled_course(600)
    other = course_factory(lecture_durations=(300,))
    foreign_lecture = crud_lecture.get_by_course(db_session, course_id=other.id)[0]

    with pytest.raises(NotFoundError) as exc_info:
        _watch(db_session, student, course, foreign_lecture, 100)

    assert exc_info.value.code == "LECTURE_NOT_FOUND"


def test_lecture_added_after_enrollment_gets_its_own_row(db_session: Session, enrolled_course, student):
    course, (first,) = enrolled_course(100)
    late = crud_lecture.create(db_session, obj_in={
        "course_id": course.id, "title": "Bonus", "duration_seconds": 100, "position": 1,
    })

    _watch(db_session, student, course, late, 100)

    rows = progress_service.get_course_progress(db_session, student.id, course.id)
    assert [r.lecture_id for r in rows] == [first.id, late.id]
    assert enrollment_service.get_enrollment(db_session, student.id, course.id).progress_percentage == 50.0


def test_failed_recompute_keeps_progress_and_reports_partial_update(db_session: Session, enrolled_course, student, monkeypatch):
    course, (lecture,) = enrolled_course(600)

    def _broken_recompute(*args, **kwargs):
        raise OperationalError("UPDATE enrollments", {}, Exception("database is locked"))

    monkeypatch.setattr(enrollment_service, "recompute_aggregate", _broken_recompute)

    with pytest.raises(PartialUpdateError) as exc_info:
        _watch(db_session, student, course, lecture, 300)

    saved = crud_progress.get_by_user_course_and_key(
        db_session, user_id=student.id, course_id=course.id, lecture_key=str(lecture.id)
    )
    assert exc_info.value.code == "PARTIAL_UPDATE"
    assert exc_info.value.details == {"progress_id": saved.id}
    assert saved.watch_seconds == 300

    monkeypatch.undo()
    enrollment = progress_service.recompute(db_session, student.id, course.id)
    assert enrollment.progress_percentage == 50.0


def test_progress_rows_are_unique_per_lecture(db_session: Session, enrolled_course, student):
    course, (lecture,) = enrolled_course(600)

    for seconds in (100, 200, 300):
        _watch(db_session, student, course, lecture, seconds)

    assert db_session.query(Progress).filter(
        Progress.user_id == student.id, Progress.course_id == course.id
    ).count() == 1
