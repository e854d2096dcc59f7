"""Pytest configuration and fixtures for CareOps tests.

Tests run against an in-memory SQLite database (aiosqlite) so no
Postgres instance is needed. Each test gets a fresh schema.
"""

import asyncio
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  register all tables on Base.metadata
from app.auth.jwt import create_access_token
from app.database import Base, get_db
from app.main import app
from app.models.profile import Profile
from app.models.workspace import Workspace, WorkspaceStatus
from app.services.onboarding import OnboardingWizard, WizardSession
from app.services.session_context import AuthEvent, Identity, SessionContext
from app.services.wizard_sessions import WizardSessionRegistry
from app.store import RecordStoreError, SqlRecordStore

TEST_USER_ID = "8f14e45f-ceea-467f-a0e6-b6ab2f1c0d11"


# ── Database ─────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with the DB dependency overridden."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.state.wizard_sessions = WizardSessionRegistry()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Record store doubles ─────────────────────────────────────────

class FlakyRecordStore(SqlRecordStore):
    """SQL store that fails the next call of selected operations.

    `fail_next` holds operation names ("update_fields", "insert_row",
    "read_profile", ...); each entry fails exactly once.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(db)
        self.fail_next: list[str] = []
        self.calls: list[str] = []

    def _maybe_fail(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_next:
            self.fail_next.remove(operation)
            raise RecordStoreError(f"injected {operation} failure")

    async def read_one(self, collection, record_id):
        self._maybe_fail("read_one")
        return await super().read_one(collection, record_id)

    async def update_fields(self, collection, record_id, fields):
        self._maybe_fail("update_fields")
        return await super().update_fields(collection, record_id, fields)

    async def insert_row(self, collection, row):
        self._maybe_fail("insert_row")
        return await super().insert_row(collection, row)

    async def read_profile(self, user_id):
        self._maybe_fail("read_profile")
        return await super().read_profile(user_id)


class SlowRecordStore(SqlRecordStore):
    """SQL store whose calls sleep first, to exercise timeouts."""

    def __init__(self, db: AsyncSession, delay: float):
        super().__init__(db)
        self.delay = delay

    async def read_profile(self, user_id):
        await asyncio.sleep(self.delay)
        return await super().read_profile(user_id)

    async def update_fields(self, collection, record_id, fields):
        await asyncio.sleep(self.delay)
        return await super().update_fields(collection, record_id, fields)


class StallAfterWriteStore(SqlRecordStore):
    """SQL store whose updates commit, then hang before returning."""

    def __init__(self, db: AsyncSession, delay: float):
        super().__init__(db)
        self.delay = delay

    async def update_fields(self, collection, record_id, fields):
        record = await super().update_fields(collection, record_id, fields)
        await asyncio.sleep(self.delay)
        return record


@pytest.fixture
def store(db_session) -> FlakyRecordStore:
    return FlakyRecordStore(db_session)


# ── Test data ────────────────────────────────────────────────────

@pytest.fixture
def make_workspace(db_session: AsyncSession):
    """Factory: insert a workspace + profile for TEST_USER_ID."""

    async def _make(
        name: str = "",
        status: WorkspaceStatus = WorkspaceStatus.PROVISIONAL,
        onboarding_step: int | None = None,
        user_id: str = TEST_USER_ID,
    ) -> Workspace:
        workspace = Workspace(name=name, status=status, onboarding_step=onboarding_step)
        db_session.add(workspace)
        await db_session.flush()
        db_session.add(
            Profile(user_id=user_id, workspace_id=workspace.id, display_name="Test Owner")
        )
        await db_session.commit()
        return workspace

    return _make


@pytest.fixture
def identity() -> Identity:
    return Identity(user_id=TEST_USER_ID, email="owner@example.com")


@pytest_asyncio.fixture
async def context(store, identity) -> AsyncGenerator[SessionContext, None]:
    """Signed-out session context over the flaky store.

    Tests sign in after seeding data so resolution sees it.
    """
    ctx = SessionContext(store, resolution_timeout=1.0)
    yield ctx
    await ctx.teardown()


@pytest.fixture
def open_wizard(store, context, identity):
    """Factory: sign in, then build and enter a wizard for the workspace."""

    async def _open(workspace: Workspace, write_timeout: float = 5.0) -> OnboardingWizard:
        await context.handle_auth_event(AuthEvent.SIGNED_IN, identity)
        session = WizardSession(id="test-session", user_id=identity.user_id, workspace_id=workspace.id)
        wizard = OnboardingWizard(session, store, context, write_timeout=write_timeout)
        result = await wizard.enter()
        assert result.ok, result.message
        return wizard

    return _open


@pytest.fixture
def auth_headers() -> dict:
    token = create_access_token(user_id=TEST_USER_ID, email="owner@example.com")
    return {"Authorization": f"Bearer {token}"}


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: HTTP API tests")
