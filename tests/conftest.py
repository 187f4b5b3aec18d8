import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from rainstats.core.db import get_db
from rainstats.main import app
from rainstats.models import Base, WeatherReading

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def test_engine():
    """
    Create an in-memory SQLite async engine with all tables for one test.

    StaticPool keeps a single connection, so every session sees the same
    in-memory database.
    """
    engine = create_async_engine(TEST_DB_URL, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """
    Provide a fresh AsyncSession for each test.
    """
    async with session_factory() as session:
        yield session


@pytest.fixture
def seed_readings(db_session):
    """
    Insert readings given as `(timestamp, accumulation)` pairs and commit.
    """
    async def _seed(rows):
        db_session.add_all(
            WeatherReading(obs_timestamp=ts, local_day_rain_accumulation=rain) for ts, rain in rows
        )
        await db_session.commit()

    return _seed


@pytest.fixture
def test_app(db_session):
    """
    Return the FastAPI app with get_db overridden to use the test session.
    """
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield app
    app.dependency_overrides.clear()
