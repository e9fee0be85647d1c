import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from types import SimpleNamespace
from typing import AsyncGenerator, Callable, Dict, List

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from gradebook.auth.security import create_access_token
from gradebook.core.events import EventPublisher, GradeEvent, get_event_publisher
from gradebook.core.models import AcademicTerm, School, Student, Subject
from gradebook.db.session import Base, get_db
from gradebook.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture()
async def engine():
    """One in-memory database per test, shared by every session through a static pool."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def events() -> List[GradeEvent]:
    """Events published during the test, in order."""
    publisher = EventPublisher()
    received: List[GradeEvent] = []
    publisher.subscribe(received.append)
    app.dependency_overrides[get_event_publisher] = lambda: publisher
    yield received
    app.dependency_overrides.pop(get_event_publisher, None)


@pytest.fixture()
async def client(session_factory, events) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app; each request gets its own session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
async def seed(session_factory) -> SimpleNamespace:
    """Two schools with a subject each; school one also has a term and a class of three students."""
    async with session_factory() as session:
        green = School(name="Green Valley High", code="GVH")
        river = School(name="Riverside Academy", code="RSA")
        closed = School(name="Old Town School", code="OTS", status="INACTIVE")
        session.add_all([green, river, closed])
        await session.flush()

        math = Subject(school_id=green.id, name="Mathematics", name_bn="গণিত", code="MATH")
        science = Subject(school_id=green.id, name="Science", code="SCI")
        river_math = Subject(school_id=river.id, name="Mathematics", code="MATH")
        term = AcademicTerm(school_id=green.id, name="Term 1")
        session.add_all([math, science, river_math, term])
        await session.flush()

        students = [
            Student(school_id=green.id, student_code="GVH-001", name="Ayesha Rahman", class_name="8", section="A", roll_number=1),
            Student(school_id=green.id, student_code="GVH-002", name="Tanvir Hasan", class_name="8", section="A", roll_number=2),
            Student(school_id=green.id, student_code="GVH-003", name="Nadia Islam", class_name="8", section="B", roll_number=1),
        ]
        river_student = Student(
            school_id=river.id, student_code="RSA-001", name="Karim Uddin", class_name="8", section="A", roll_number=1
        )
        session.add_all(students + [river_student])
        await session.commit()

        return SimpleNamespace(
            school_id=green.id,
            other_school_id=river.id,
            inactive_school_id=closed.id,
            subject_id=math.id,
            science_id=science.id,
            other_subject_id=river_math.id,
            term_id=term.id,
            student_ids=[s.id for s in students],
            other_student_id=river_student.id,
        )


@pytest.fixture()
def make_headers(seed) -> Callable[..., Dict[str, str]]:
    """Bearer headers for a token shaped like the identity provider's."""

    def _make(user_id: str = "teacher-1", role: str = "teacher", school_id=None, **claims) -> Dict[str, str]:
        subject = {"sub": user_id, "role": role, **claims}
        if school_id is None:
            school_id = seed.school_id
        if school_id is not False:
            subject["school_id"] = school_id
        return {"Authorization": f"Bearer {create_access_token(subject=subject)}"}

    return _make


@pytest.fixture()
def teacher(make_headers) -> Dict[str, str]:
    return make_headers()


@pytest.fixture()
def admin(make_headers) -> Dict[str, str]:
    return make_headers(user_id="admin-1", role="school_admin")


@pytest.fixture()
def new_assessment(client, teacher, seed):
    """POST an assessment for class 8/A maths; keyword arguments override the payload."""

    async def _create(headers=None, **overrides) -> dict:
        payload = {
            "subject_id": seed.subject_id,
            "class_name": "8",
            "section": "A",
            "assessment_name": "Midterm",
            "assessment_type": "exam",
            "total_marks": 100,
        }
        payload.update(overrides)
        response = await client.post("/api/v1/assessments", json=payload, headers=headers or teacher)
        assert response.status_code == 201, response.text
        return response.json()

    return _create


@pytest.fixture()
def put_score(client, teacher):
    """PUT one score and return the stored row."""

    async def _put(assessment_id: int, student_id: int, score, headers=None, **extra) -> dict:
        payload = {"assessment_id": assessment_id, "student_id": student_id, "score_obtained": score, **extra}
        response = await client.put("/api/v1/scores", json=payload, headers=headers or teacher)
        assert response.status_code == 200, response.text
        return response.json()

    return _put
