from fastapi.testclient import TestClient

from marketplace.crud.course import lecture as crud_lecture
from tests.helpers.asserts import api_call, assert_error


def _enroll(client, course, headers):
    api_call(client, "POST", "/enrollments/", headers=headers, json={"course_id": course.id})


def test_progress_listing_and_recompute(client: TestClient, db_session, course_factory, student, auth_headers):
    course = course_factory(price="0.00", is_free=True, lecture_durations=(100, 100))
    headers = auth_headers(student)
    _enroll(client, course, headers)
    first, second = crud_lecture.get_by_course(db_session, course_id=course.id)

    api_call(client, "POST", f"/progress/courses/{course.id}/lectures/{first.id}", headers=headers,
             json={"watch_seconds": 100})
    rows = api_call(client, "GET", f"/progress/courses/{course.id}", headers=headers).json()["data"]
    assert [(r["lecture_id"], r["is_completed"]) for r in rows] == [(first.id, True), (second.id, False)]

    summary = api_call(client, "POST", f"/progress/courses/{course.id}/recompute", headers=headers).json()["data"]
    assert summary["progress_percentage"] == 50.0
    assert summary["completed_lectures"] == 1
    assert summary["total_watch_seconds"] == 100


def test_watch_beyond_duration_is_clamped(client: TestClient, db_session, course_factory, student, auth_headers):
    course = course_factory(price="0.00", is_free=True, lecture_durations=(120,))
    headers = auth_headers(student)
    _enroll(client, course, headers)
    lecture = crud_lecture.get_by_course(db_session, course_id=course.id)[0]

    progress = api_call(client, "POST", f"/progress/courses/{course.id}/lectures/{lecture.id}", headers=headers,
                        json={"watch_seconds": 5000}).json()["data"]

    assert progress["watch_seconds"] == 120
    assert progress["status"] == "completed"
    enrollment = api_call(client, "GET", f"/enrollments/courses/{course.id}", headers=headers).json()["data"]
    assert enrollment["status"] == "completed"


def test_negative_watch_seconds_fail_validation(client: TestClient, db_session, course_factory, student, auth_headers):
    course = course_factory(price="0.00", is_free=True, lecture_durations=(120,))
    headers = auth_headers(student)
    _enroll(client, course, headers)
    lecture = crud_lecture.get_by_course(db_session, course_id=course.id)[0]

    response = client.post(f"/progress/courses/{course.id}/lectures/{lecture.id}", headers=headers,
                           json={"watch_seconds": -1})

    assert_error(response, 422, "VALIDATION_ERROR")


def test_dropped_enrollment_rejects_progress(client: TestClient, db_session, course_factory, student, auth_headers):
    course = course_factory(price="0.00", is_free=True, lecture_durations=(120,))
    headers = auth_headers(student)
    _enroll(client, course, headers)
    api_call(client, "POST", f"/enrollments/courses/{course.id}/drop", headers=headers)
    lecture = crud_lecture.get_by_course(db_session, course_id=course.id)[0]

    response = client.post(f"/progress/courses/{course.id}/lectures/{lecture.id}", headers=headers,
                           json={"watch_seconds": 10})

    assert_error(response, 400, "ENROLLMENT_INACTIVE")


def test_progress_without_enrollment(client: TestClient, db_session, course_factory, student, auth_headers):
    course = course_factory(lecture_durations=(120,))
    lecture = crud_lecture.get_by_course(db_session, course_id=course.id)[0]

    response = client.post(f"/progress/courses/{course.id}/lectures/{lecture.id}", headers=auth_headers(student),
                           json={"watch_seconds": 10})

    assert_error(response, 404, "NOT_ENROLLED")
