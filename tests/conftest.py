import os

# Configure before the application modules build their engine and settings
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SEED_ON_STARTUP", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
import pytest_asyncio
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from db.database import Base
from db import database
import db.models  # noqa: F401  (registers tables on Base.metadata)
from app import app

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

STAFF_EMAIL = "staff@londonzoo.co.uk"
VISITOR_EMAIL = "visitor@example.com"
PASSWORD = "Zebra!Crossing9"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create async engine for the test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Get a test database session.
    It also patches the application's session factory so request handlers
    use the same in-memory database.
    """
    test_session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with test_session_factory() as session:
        original_factory = database.async_session_factory
        database.async_session_factory = test_session_factory

        yield session

        await session.rollback()
        database.async_session_factory = original_factory


@pytest_asyncio.fixture
async def test_client(test_db_session) -> AsyncGenerator[AsyncClient, None]:
    """Anonymous client for the application"""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def _login(email: str, password: str) -> AsyncClient:
    client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
    response = await client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return client


@pytest_asyncio.fixture
async def visitor_client(test_db_session, visitor_user) -> AsyncGenerator[AsyncClient, None]:
    """Client holding a visitor session cookie"""
    client = await _login(VISITOR_EMAIL, PASSWORD)
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def staff_client(test_db_session, staff_user) -> AsyncGenerator[AsyncClient, None]:
    """Client holding a staff session cookie"""
    client = await _login(STAFF_EMAIL, PASSWORD)
    yield client
    await client.aclose()


# ==================== DATA FIXTURES ====================

@pytest.fixture
def sample_attractions():
    """Sample attraction data"""
    return [
        {
            "name": "African Savanna",
            "category": "Mammals",
            "latitude": 51.5350,
            "longitude": -0.1507,
            "capacity": 200,
            "estimated_duration_minutes": 45
        },
        {
            "name": "Penguin Pool",
            "category": "Birds",
            "latitude": 51.5355,
            "longitude": -0.1500,
            "capacity": 100,
            "estimated_duration_minutes": 30
        },
        {
            "name": "Reptile House",
            "category": "Reptiles",
            "latitude": 51.5345,
            "longitude": -0.1500,
            "capacity": 100,
            "estimated_duration_minutes": 25,
            "status": "closed"
        }
    ]


@pytest_asyncio.fixture
async def seed_attractions(test_db_session, sample_attractions):
    """Seed database with attractions; returns name -> AttractionInfo"""
    from db.repositories import AttractionRepository
    repo = AttractionRepository(test_db_session)

    created = {}
    for data in sample_attractions:
        info = await repo.create(**data)
        created[info.name] = info
    return created


async def _create_user(session: AsyncSession, email: str, role: str):
    from db.repositories import UserRepository
    from services.access import hash_password

    return await UserRepository(session).create(email, await hash_password(PASSWORD), role=role)


@pytest_asyncio.fixture
async def visitor_user(test_db_session):
    return await _create_user(test_db_session, VISITOR_EMAIL, "visitor")


@pytest_asyncio.fixture
async def staff_user(test_db_session):
    return await _create_user(test_db_session, STAFF_EMAIL, "staff")
