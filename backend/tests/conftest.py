"""Test configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from courseware.database import Base, get_db
from courseware import models  # noqa: F401  registers every table on Base.metadata
from courseware.auth.service import AuthService
from courseware.chat.llm import ChatModel, ModelReply, ToolCall, get_chat_model
from courseware.content import new_mcq_block, serialize_content


# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

TEST_PASSWORD = "TestPass123!"


@pytest.fixture
def engine():
    """Create a fresh test database engine per test."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    """Create test database session."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


class FakeChatModel(ChatModel):
    """Replays scripted replies and records what it was asked."""

    def __init__(self):
        self.replies = []
        self.calls = []

    def script(self, *replies):
        self.replies.extend(replies)

    async def respond(self, system, messages, tools, on_text):
        self.calls.append({
            "system": system,
            "messages": [dict(m) for m in messages],
            "tools": [t["name"] for t in tools],
        })
        if not self.replies:
            return ModelReply(text="Done.")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if reply.text:
            await on_text(reply.text)
        return reply


def text_reply(text):
    return ModelReply(text=text)


def tool_reply(name, tool_input=None, call_id="call_1", text=""):
    return ModelReply(text=text, tool_calls=[ToolCall(id=call_id, name=name, input=tool_input or {})])


@pytest.fixture
def fake_model():
    return FakeChatModel()


@pytest.fixture
def client(session_factory, fake_model):
    from courseware.main import app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_chat_model] = lambda: fake_model

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def make_user(db_session, email, full_name=None, is_admin=False):
    from courseware.models import User
    user = User(email=email, full_name=full_name, is_admin=is_admin)
    user.set_password(TEST_PASSWORD)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def enroll(db_session, user, course, role):
    from courseware.models import Enrollment
    enrollment = Enrollment(user_id=user.id, course_id=course.id, role=role)
    db_session.add(enrollment)
    db_session.commit()
    return enrollment


@pytest.fixture
def instructor(db_session):
    return make_user(db_session, "instructor@example.com", "Ada Instructor")


@pytest.fixture
def student(db_session):
    return make_user(db_session, "student@example.com", "Sam Student")


@pytest.fixture
def outsider(db_session):
    return make_user(db_session, "outsider@example.com", "Otto Outsider")


@pytest.fixture
def course(db_session, instructor, student):
    from courseware.models import Course, CourseRole
    course = Course(name="Intro to Python", slug="intro-python", settings={})
    db_session.add(course)
    db_session.commit()
    db_session.refresh(course)
    enroll(db_session, instructor, course, CourseRole.instructor)
    enroll(db_session, student, course, CourseRole.student)
    return course


def mcq_node(block_id, question, correct, wrong, points=1, **extra):
    return new_mcq_block(
        id=block_id,
        question=f"<p>{question}</p>",
        options=[
            {"id": f"{block_id}-a", "text": f"<p>{correct}</p>", "isCorrect": True},
            {"id": f"{block_id}-b", "text": f"<p>{wrong}</p>", "isCorrect": False},
        ],
        points=points,
        **extra,
    )


def quiz_document():
    return {
        "type": "doc",
        "content": [
            {"type": "heading", "attrs": {"level": 1}, "content": [{"type": "text", "text": "Quiz 1"}]},
            mcq_node("q1", "2 + 2?", "4", "5", points=2, explanation="Basic arithmetic"),
            mcq_node("q2", "Capital of France?", "Paris", "Rome", points=3, allowCheckAnswer=True),
        ],
    }


@pytest.fixture
def assignment(db_session, course, instructor):
    from courseware.models import Assignment
    assignment = Assignment(
        course_id=course.id,
        name="Quiz 1",
        content=serialize_content(quiz_document()),
        module_path=["Unit 1"],
        order=10.0,
        published=True,
        settings={"allowResubmissions": False},
        created_by=instructor.id,
    )
    db_session.add(assignment)
    db_session.commit()
    db_session.refresh(assignment)
    return assignment


@pytest.fixture
def auth_headers(db_session):
    """Build bearer headers for a user."""
    def _headers(user):
        token = AuthService(db_session).create_token_for_user(user)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def instructor_headers(auth_headers, instructor):
    return auth_headers(instructor)


@pytest.fixture
def student_headers(auth_headers, student):
    return auth_headers(student)
