import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.main import app
from app.models import Workspace, WorkspaceMember
from app.models.workspace import WorkspaceRole

OWNER = "user-owner"
ANALYST = "user-analyst"
OUTSIDER = "user-outsider"


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)

    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


async def _make_workspace(session_factory, slug: str) -> Workspace:
    async with session_factory() as session:
        workspace = Workspace(name=slug.title(), slug=slug)
        session.add(workspace)
        await session.flush()
        session.add_all(
            [
                WorkspaceMember(workspace_id=workspace.id, user_id=OWNER, role=WorkspaceRole.OWNER.value),
                WorkspaceMember(workspace_id=workspace.id, user_id=ANALYST, role=WorkspaceRole.ANALYST.value),
            ]
        )
        await session.commit()
        return workspace


@pytest_asyncio.fixture
async def workspace(session_factory):
    return await _make_workspace(session_factory, "acme")


@pytest_asyncio.fixture
async def other_workspace(session_factory):
    return await _make_workspace(session_factory, "globex")


@pytest_asyncio.fixture
async def client(session_factory):
    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def manual_row(**overrides):
    row = {
        "postUrl": "https://www.tiktok.com/@mia/video/1",
        "platform": "tiktok",
        "creatorHandle": "mia",
        "caption": "Great #Deal and #SUMMER23!",
    }
    row.update(overrides)
    return row


def csv_row(**overrides):
    row = {
        "post_url": "https://x.com/a",
        "platform": "TIKTOK",
        "creator_handle": "u1",
    }
    row.update(overrides)
    return row
