from fastapi.testclient import TestClient

from marketplace.core.constants import RoleEnum
from tests.helpers.asserts import api_call, assert_error


def test_instructor_creates_course_and_lectures(client: TestClient, instructor, auth_headers):
    headers = auth_headers(instructor)

    created = api_call(client, "POST", "/courses/", headers=headers, json={
        "title": "Intro to Options", "price": "49.99", "is_published": True,
    })
    course = created.json()["data"]
    assert created.status_code == 201
    assert course["instructor_id"] == instructor.id
    assert course["published_at"] is not None
    assert course["total_students"] == 0

    api_call(client, "POST", f"/courses/{course['id']}/lectures", headers=headers, json={
        "title": "Greeks", "duration_seconds": 600,
    })
    api_call(client, "POST", f"/courses/{course['id']}/lectures", headers=headers, json={
        "title": "Spreads", "duration_seconds": 300,
    })

    lectures = api_call(client, "GET", f"/courses/{course['id']}/lectures", headers=headers).json()["data"]
    assert [(l["title"], l["position"]) for l in lectures] == [("Greeks", 0), ("Spreads", 1)]

    refreshed = api_call(client, "GET", f"/courses/{course['id']}", headers=headers).json()["data"]
    assert refreshed["total_lectures"] == 2
    assert refreshed["total_duration_seconds"] == 900


def test_student_cannot_create_course(client: TestClient, student, auth_headers):
    response = client.post("/courses/", headers=auth_headers(student), json={"title": "Nope"})

    assert_error(response, 403, "FORBIDDEN")


def test_other_instructor_cannot_edit_course(client: TestClient, course_factory, user_factory, auth_headers):
    course = course_factory()
    rival = user_factory(RoleEnum.INSTRUCTOR)

    response = client.put(f"/courses/{course.id}", headers=auth_headers(rival), json={"title": "Mine now"})

    assert_error(response, 403, "FORBIDDEN")


def test_counters_are_not_writable_through_update(client: TestClient, course_factory, instructor, auth_headers):
    course = course_factory()

    response = client.put(
        f"/courses/{course.id}", headers=auth_headers(instructor), json={"total_students": 1000, "rating": 5}
    )

    assert_error(response, 422, "VALIDATION_ERROR")


def test_publishing_stamps_published_at(client: TestClient, course_factory, instructor, auth_headers):
    course = course_factory(is_published=False)

    updated = api_call(
        client, "PUT", f"/courses/{course.id}", headers=auth_headers(instructor), json={"is_published": True}
    ).json()["data"]

    assert updated["is_published"] is True
    assert updated["published_at"] is not None


def test_unknown_course(client: TestClient, student, auth_headers):
    response = client.get("/courses/123456", headers=auth_headers(student))

    assert_error(response, 404, "COURSE_NOT_FOUND")
