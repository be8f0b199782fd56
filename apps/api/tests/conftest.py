"""
Pytest fixtures for testing.

Provides:
- Async database session on an in-memory SQLite database
- Test client with database and clock overrides
- Factory for building the school graph (users, roles, courses, profiles)
- Fake notification channels and a controllable clock
"""

from datetime import datetime, timedelta
from typing import AsyncGenerator
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from jose import jwt
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy import select
from sqlalchemy.pool import StaticPool

from school_approvals.main import app
from school_approvals.core.config import settings
from school_approvals.core.interfaces.notifications import (
    BulkNotificationResult,
    Notification,
    NotificationResult,
)
from school_approvals.models import (
    AccessPermission,
    Base,
    Course,
    GuardianLink,
    ParentProfile,
    PermissionKind,
    RequestState,
    Role,
    RoleGrant,
    StudentProfile,
    TeacherCourse,
    TeacherProfile,
    User,
)
from school_approvals.api.dependencies.database import get_db
from school_approvals.api.dependencies.services import get_clock
from school_approvals.services.notifications import NotificationDispatcher
from school_approvals.services.workflow import WorkflowService
from school_approvals.utils.timezone import UTC


# Test database URL (SQLite in-memory for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Fixed "now" for every workflow decision in tests
T0 = datetime(2026, 3, 2, 8, 0, tzinfo=UTC)


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Database session for one test."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def fresh_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """A second session, for checking what was actually committed."""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession)
    async with session_factory() as session:
        yield session


# ============ Clock ============


class FakeClock:
    """Controllable time source."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **delta) -> None:
        self.now = self.now + timedelta(**delta)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ============ Notification fakes ============


class RecordingChannel:
    """Channel that remembers every notification it was asked to send."""

    channel_type = "recording"

    def __init__(self):
        self.sent: list[tuple[UUID, Notification]] = []

    async def send(self, user_id: UUID, notification: Notification) -> NotificationResult:
        self.sent.append((user_id, notification))
        return NotificationResult(success=True, channel=self.channel_type)

    async def send_bulk(
        self,
        user_ids: list[UUID],
        notification: Notification,
    ) -> BulkNotificationResult:
        results = [await self.send(user_id, notification) for user_id in user_ids]
        return BulkNotificationResult(
            total=len(user_ids),
            sent=len(results),
            failed=0,
            results=results,
        )

    def recipients(self, title: str | None = None) -> list[UUID]:
        return [u for u, n in self.sent if title is None or n.title == title]

    def titles_for(self, user_id: UUID) -> list[str]:
        return [n.title for u, n in self.sent if u == user_id]


class FailingChannel:
    """Channel whose delivery always blows up."""

    channel_type = "failing"

    async def send(self, user_id: UUID, notification: Notification) -> NotificationResult:
        raise RuntimeError("notification backend down")

    async def send_bulk(
        self,
        user_ids: list[UUID],
        notification: Notification,
    ) -> BulkNotificationResult:
        raise RuntimeError("notification backend down")


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest_asyncio.fixture
async def workflow(db: AsyncSession, channel: RecordingChannel, clock: FakeClock) -> WorkflowService:
    """Workflow service with a recording channel and the fake clock."""
    return WorkflowService(db, NotificationDispatcher([channel]), clock=clock)


# ============ Factory Fixtures ============


class SchoolFactory:
    """
    Factory for the school graph.

    Role grants created here are written directly in their final state;
    only the workflow under test goes through the state machine.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _save(self, *entities):
        self.db.add_all(entities)
        await self.db.commit()
        for entity in entities:
            await self.db.refresh(entity)
        return entities[0]

    async def user(self, name: str = "Test User", email: str | None = None) -> User:
        email = email or f"test-{uuid4().hex[:8]}@example.com"
        return await self._save(User(email=email, name=name))

    async def role(self, name: str) -> Role:
        role = await self.db.scalar(select(Role).where(Role.name == name))
        if role is not None:
            return role
        return await self._save(Role(name=name))

    async def grant(
        self,
        user: User,
        role_name: str,
        state: RequestState = RequestState.APPROVED,
    ) -> RoleGrant:
        role = await self.role(role_name)
        return await self._save(RoleGrant(user_id=user.id, role_id=role.id, state=state))

    async def course(self, name: str = "Primero EGB", parallel: str = "A") -> Course:
        return await self._save(Course(name=name, parallel=parallel, school_year="2025-2026"))

    async def admin(self, name: str = "Admin") -> User:
        user = await self.user(name)
        await self.grant(user, "admin")
        return user

    async def teacher(
        self,
        *courses: Course,
        tutor: bool = True,
        grant_state: RequestState | None = RequestState.APPROVED,
        name: str = "Teacher",
    ) -> User:
        """Teacher assigned to courses; grant_state=None means no teacher grant at all."""
        user = await self.user(name)
        await self._save(TeacherProfile(user_id=user.id, specialty="Matemáticas"))
        if grant_state is not None:
            await self.grant(user, "profesor", grant_state)
        for course in courses:
            await self._save(TeacherCourse(teacher_id=user.id, course_id=course.id, is_tutor=tutor))
        return user

    async def student(self, course: Course, name: str = "Student") -> User:
        user = await self.user(name)
        await self._save(StudentProfile(user_id=user.id, course_id=course.id, grade="1"))
        return user

    async def parent(
        self,
        name: str = "Parent",
        grant_state: RequestState | None = RequestState.APPROVED,
        role_name: str = "padre",
    ) -> User:
        user = await self.user(name)
        await self._save(ParentProfile(user_id=user.id, phone="0999999999"))
        if grant_state is not None:
            await self.grant(user, role_name, grant_state)
        return user

    async def link(
        self,
        parent: User,
        student: User,
        state: RequestState = RequestState.APPROVED,
    ) -> GuardianLink:
        return await self._save(
            GuardianLink(parent_id=parent.id, student_id=student.id, state=state)
        )

    async def permission(
        self,
        parent: User,
        course: Course,
        start: datetime,
        end: datetime,
        state: RequestState = RequestState.PENDING,
        student: User | None = None,
        kind: PermissionKind = PermissionKind.ACCESS,
        token: str | None = None,
    ) -> AccessPermission:
        return await self._save(
            AccessPermission(
                parent_id=parent.id,
                course_id=course.id,
                student_id=student.id if student else None,
                kind=kind,
                title="Reunión con tutor",
                window_start=start,
                window_end=end,
                state=state,
                credential_token=token,
            )
        )


@pytest_asyncio.fixture
async def school(db: AsyncSession) -> SchoolFactory:
    """Fixture that provides SchoolFactory."""
    return SchoolFactory(db)


# ============ HTTP client & auth ============


@pytest_asyncio.fixture(scope="function")
async def client(db: AsyncSession, clock: FakeClock) -> AsyncGenerator[AsyncClient, None]:
    """
    Test client with database session and clock overrides.
    """

    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict[str, str]:
    """Bearer header as the identity provider would issue it."""
    token = jwt.encode(
        {"sub": str(user.id)},
        settings.auth.secret_key,
        algorithm=settings.auth.algorithm,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    """Build auth headers for any user."""
    return auth_headers
