from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from academy.api import dependencies
from academy.main import app
from academy.models.course import Course, CourseModule, Lesson
from academy.models.principal import Principal
from academy.models.user import Role, User
from academy.repos.content_repo import InMemoryContentRepo
from academy.repos.payment_repo import InMemoryPaymentRepo
from academy.repos.progress_repo import InMemoryProgressRepo
from academy.repos.quiz_repo import InMemoryQuizRepo
from academy.repos.user_repo import InMemoryUserRepo
from academy.services import token_service
from academy.services.cache import cache_service


@pytest.fixture(autouse=True)
def reset_repos() -> None:
    """Clear the in-memory stores the API is wired to between tests."""
    dependencies.user_repo._by_id.clear()
    dependencies.user_repo._emails.clear()
    dependencies.content_repo._courses.clear()
    dependencies.content_repo._modules.clear()
    dependencies.content_repo._lessons.clear()
    dependencies.progress_repo._courses.clear()
    dependencies.progress_repo._lessons.clear()
    dependencies.payment_repo._store.clear()
    dependencies.quiz_repo._quizzes.clear()
    dependencies.quiz_repo._attempts.clear()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    """Clear cache between tests."""
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(user_id: object, role: Role = "student") -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=str(user_id), role=role)


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {mint_token(user.id, user.role)}"}


# ---------------------------------------------------------------------------
# In-memory world builders
# ---------------------------------------------------------------------------


@dataclass
class Store:
    users: InMemoryUserRepo
    content: InMemoryContentRepo
    progress: InMemoryProgressRepo
    payments: InMemoryPaymentRepo
    quizzes: InMemoryQuizRepo


@pytest.fixture
def store() -> Store:
    """Fresh repos for service-level tests."""
    return Store(
        users=InMemoryUserRepo(),
        content=InMemoryContentRepo(),
        progress=InMemoryProgressRepo(),
        payments=InMemoryPaymentRepo(),
        quizzes=InMemoryQuizRepo(),
    )


@pytest.fixture
def api_store() -> Store:
    """The repos behind the FastAPI app (reset by the autouse fixture)."""
    return Store(
        users=dependencies.user_repo,
        content=dependencies.content_repo,
        progress=dependencies.progress_repo,
        payments=dependencies.payment_repo,
        quizzes=dependencies.quiz_repo,
    )


class FixedClock:
    """Callable clock for services; tests move it with ``advance``."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2024, 3, 15, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


def principal(user: User) -> Principal:
    return Principal(user_id=user.id, role=user.role)


def add_user(store: Store, role: Role = "student", name: str = "") -> User:
    email = f"{role}-{len(store.users._by_id)}@example.com"
    user = User.new(email=email, name=name, role=role)
    asyncio.run(store.users.add(user))
    return user


def add_course(
    store: Store,
    instructor: User,
    *,
    title: str = "Course",
    lessons: int = 4,
    modules: int = 1,
    duration: int = 600,
    created_at: datetime | None = None,
) -> tuple[Course, list[CourseModule], list[Lesson]]:
    """Create a course whose lessons are spread evenly over its modules."""
    course = Course(
        id=uuid4(),
        title=title,
        instructor_id=instructor.id,
        created_at=created_at or datetime(2024, 1, 1, tzinfo=UTC),
    )
    asyncio.run(store.content.add_course(course))
    mods = [
        CourseModule.new(course_id=course.id, title=f"{title} module {i + 1}", order=i + 1)
        for i in range(modules)
    ]
    for m in mods:
        asyncio.run(store.content.add_module(m))
    created: list[Lesson] = []
    per_module: dict[int, int] = {}
    for i in range(lessons):
        index = i * modules // max(lessons, 1)
        per_module[index] = per_module.get(index, 0) + 1
        module = mods[index]
        lesson = Lesson.new(
            module_id=module.id,
            course_id=course.id,
            title=f"{title} lesson {i + 1}",
            order=per_module[index],
            duration=duration,
        )
        asyncio.run(store.content.add_lesson(lesson))
        created.append(lesson)
    return course, mods, created
