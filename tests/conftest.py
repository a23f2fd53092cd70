import sys
import os
import tempfile
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "marketplace-test-logs"))

import uuid
from decimal import Decimal
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

import main
from marketplace.core.config import settings
from marketplace.core.constants import RoleEnum
from marketplace.core.database import Base, get_db
from marketplace.core.security import create_access_token
from marketplace.crud.course import course as crud_course, lecture as crud_lecture
from marketplace.crud.user import user as crud_user
from marketplace.schemas.user import UserContext, User as UserSchema
from marketplace.utils import deps as deps_utils

test_db_url = settings.TEST_DATABASE_URL or "sqlite:///./test.db"

@pytest.fixture(scope="session")
def database_engine():
    if test_db_url.startswith("sqlite"):
        engine = create_engine(test_db_url, connect_args={"check_same_thread": False})
    else:
        engine = create_engine(test_db_url)
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()
    if test_db_url == "sqlite:///./test.db" and os.path.exists("./test.db"):
        os.remove("./test.db")

@pytest.fixture(scope="function")
def db_session(database_engine):
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=database_engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()
        db.close()

@pytest.fixture(scope="function")
def client(db_session):
    main.app.dependency_overrides[get_db] = lambda: db_session
    main.app.dependency_overrides[deps_utils.get_db] = lambda: db_session
    main.app.dependency_overrides[deps_utils.get_transactional_db] = lambda: db_session
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()

@pytest.fixture
def user_factory(db_session):
    def _create(role: RoleEnum = RoleEnum.STUDENT, email: str = None, is_active: bool = True):
        return crud_user.create(db_session, obj_in={
            "full_name": f"Test {role.value.title()}",
            "email": email or f"{role.value}-{uuid.uuid4().hex[:8]}@test.com",
            "role": role,
            "is_active": is_active,
        })
    return _create

@pytest.fixture
def student(user_factory):
    return user_factory(RoleEnum.STUDENT)

@pytest.fixture
def instructor(user_factory):
    return user_factory(RoleEnum.INSTRUCTOR)

@pytest.fixture
def admin(user_factory):
    return user_factory(RoleEnum.ADMIN)

@pytest.fixture
def context_for():
    def _context(user):
        return UserContext(user=UserSchema.model_validate(user), role=user.role)
    return _context

@pytest.fixture
def auth_headers():
    def _headers(user):
        token = create_access_token(user.id, user.role.value)
        return {"Authorization": f"Bearer {token}"}
    return _headers

@pytest.fixture
def course_factory(db_session, instructor):
    """Creates a course and its lectures directly, keeping the lecture totals in step."""
    def _create(price: str = "49.99", is_free: bool = False, is_published: bool = True,
                lecture_durations=(), owner=None, title: str = None):
        course = crud_course.create(db_session, obj_in={
            "instructor_id": (owner or instructor).id,
            "title": title or f"Course {uuid.uuid4().hex[:6]}",
            "price": Decimal(price),
            "is_free": is_free,
            "is_published": is_published,
        })
        for position, duration in enumerate(lecture_durations):
            crud_lecture.create(db_session, obj_in={
                "course_id": course.id,
                "title": f"Lecture {position + 1}",
                "duration_seconds": duration,
                "position": position,
            }, commit=False)
            crud_course.add_lecture_totals(db_session, course.id, duration)
        db_session.commit()
        db_session.refresh(course)
        return course
    return _create
