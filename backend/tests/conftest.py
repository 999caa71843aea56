"""
Synergy Backend: Test Configuration (conftest.py)
==================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test gets a fresh in-memory SQLite database (aiosqlite, one
       shared connection via StaticPool) with the full schema created from
       the ORM metadata.

Fixture Hierarchy (all function-scoped):
    engine ── session_factory ── db
                    │               ├── make_user / make_project / load_project
                    │               └── lifecycle (LifecycleService + recording sink)
                    └── test_client (FastAPI app with the session dependency
                                     overridden and the recording sink patched in)
"""

import os

# Override settings for testing BEFORE any synergy imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["SWEEP_RETRY_INITIAL_WAIT"] = "0"
os.environ["SWEEP_RETRY_MAX_WAIT"] = "0"
# The app's rate limiter lives as long as the module; tests share one client IP
os.environ["RATE_LIMIT_REQUESTS"] = "10000"
os.environ["RATE_LIMIT_IP_REQUESTS"] = "10000"

from typing import Any, Dict, List, Optional, Sequence, Tuple  # noqa: E402
from uuid import UUID, uuid4  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event, select  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from synergy.database import Base  # noqa: E402
from synergy.models.enums import NotificationKind, ProjectCategory, UserRole  # noqa: E402
from synergy.models.notification import Notification  # noqa: E402,F401
from synergy.models.project import Project  # noqa: E402
from synergy.models.user import User  # noqa: E402
from synergy.schemas.project import ProjectCreate, RoleCreate  # noqa: E402
from synergy.services.lifecycle_service import LifecycleService  # noqa: E402
from synergy.services.notification_base import NotificationSink  # noqa: E402
from synergy.services.project_service import project_service  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# Test Doubles
# ══════════════════════════════════════════════════════════════════════════


class RecordingNotificationSink(NotificationSink):
    """Keeps emitted notifications in memory; can be told to fail."""

    def __init__(self):
        self.events: List[Tuple[UUID, NotificationKind, Dict[str, Any]]] = []
        self.fail = False

    async def emit(self, recipient_id, kind, payload) -> None:
        if self.fail:
            raise RuntimeError("sink unavailable")
        self.events.append((recipient_id, NotificationKind(kind), payload))

    def kinds_for(self, recipient_id: UUID) -> List[NotificationKind]:
        return [kind for rid, kind, _ in self.events if rid == recipient_id]

    def payloads(self, kind: NotificationKind) -> List[Dict[str, Any]]:
        return [payload for _, k, payload in self.events if k == kind]


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def sink():
    return RecordingNotificationSink()


@pytest.fixture
def lifecycle(sink):
    return LifecycleService(sink=sink)


# ══════════════════════════════════════════════════════════════════════════
# Data Builders
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def make_user(db):
    """
    Factory: `await make_user(UserRole.FOUNDER)` inserts and commits a user.
    """
    async def _make(role: UserRole = UserRole.JOBSEEKER, name: Optional[str] = None) -> User:
        handle = uuid4().hex[:10]
        user = User(
            id=uuid4(),
            name=name or f"User {handle}",
            username=f"user_{handle}",
            email=f"{handle}@example.com",
            user_role=role.value,
            past_engagements=[],
        )
        db.add(user)
        await db.commit()
        return user

    return _make


@pytest.fixture
def make_project(db):
    """
    Factory: `await make_project(founder, roles=[("Engineer", 1)], team_size=5)`
    creates a project through ProjectService and returns its id.
    """
    async def _make(
        founder: User,
        roles: Sequence[Tuple[str, int]] = (("Engineer", 1),),
        team_size: int = 5,
        name: str = "Acme Robotics",
        category: ProjectCategory = ProjectCategory.SOFTWARE,
    ) -> UUID:
        created = await project_service.create_project(
            db,
            founder,
            ProjectCreate(
                name=name,
                description=f"{name} builds things",
                category=category,
                team_size=team_size,
                open_roles=[RoleCreate(title=title, capacity=capacity) for title, capacity in roles],
            ),
        )
        await db.commit()
        return created.id

    return _make


@pytest.fixture
def load_project(db):
    """Re-reads a project and its collections from the database."""
    async def _load(project_id: UUID) -> Project:
        result = await db.execute(
            select(Project)
            .where(Project.id == project_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    return _load


@pytest.fixture
def load_user(db):
    async def _load(user_id: UUID) -> User:
        result = await db.execute(
            select(User).where(User.id == user_id).execution_options(populate_existing=True)
        )
        return result.scalar_one()

    return _load


# ══════════════════════════════════════════════════════════════════════════
# API Client
# ══════════════════════════════════════════════════════════════════════════


@pytest_asyncio.fixture
async def test_client(session_factory, sink, monkeypatch):
    """
    HTTPX AsyncClient wired to the FastAPI app.

    Requests get sessions from the per-test database, and lifecycle
    notifications go to the recording sink.
    """
    from synergy.database import get_db_session
    from synergy.main import app
    from synergy.services.lifecycle_service import lifecycle_service

    async def _override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _override_session
    monkeypatch.setattr(lifecycle_service, "sink", sink)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
