"""Configuration pytest du backend GAMR (base SQLite en mémoire, client HTTP ASGI)."""
import os

# Avant tout import de gamr : settings lus une seule fois
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("REVIEW_SCAN_ENABLED", "false")
os.environ.setdefault("API_KEY", "")
os.environ.setdefault("ENV", "test")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

import gamr.models  # noqa: F401
from gamr.core.rate_limit import rate_limiter
from gamr.db.base import Base
from gamr.db.session import get_db, make_sessionmaker
from gamr.main import app


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_sessionmaker(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    rate_limiter.reset()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
    rate_limiter.reset()
