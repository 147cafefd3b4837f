"""
Pytest configuration and fixtures for restaurant security tests
"""

import os
from collections.abc import AsyncGenerator
from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from restaurant_security import models  # noqa: F401
from restaurant_security.auth import create_access_token, hash_password
from restaurant_security.config import settings
from restaurant_security.database import Base, get_db
from restaurant_security.models.user import Restaurant, User

# In-memory SQLite by default; one shared connection so every session sees the same data
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

import restaurant_security.database as database_module  # noqa: E402
from main import app  # noqa: E402

database_module.engine = test_engine
database_module.AsyncSessionLocal = TestSessionLocal

SERVICE_KEY = "test-service-key"


async def override_get_db():
    async with TestSessionLocal() as session:
        yield session


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="function")
async def setup_test_database():
    """Fresh schema for each test that touches the database."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(scope="function")
async def test_db(setup_test_database) -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionLocal() as session:
        yield session


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
async def test_user(test_db: AsyncSession) -> User:
    user = User(
        username="testowner",
        email="owner@example.com",
        hashed_password=hash_password("testpassword"),
    )
    test_db.add(user)
    await test_db.commit()
    await test_db.refresh(user)
    return user


@pytest.fixture
async def other_user(test_db: AsyncSession) -> User:
    user = User(
        username="otheruser",
        email="other@example.com",
        hashed_password=hash_password("otherpassword"),
    )
    test_db.add(user)
    await test_db.commit()
    await test_db.refresh(user)
    return user


@pytest.fixture
async def test_restaurant(test_db: AsyncSession, test_user: User) -> Restaurant:
    restaurant = Restaurant(name="Bistro Test", owner_id=test_user.id)
    test_db.add(restaurant)
    await test_db.commit()
    await test_db.refresh(restaurant)
    return restaurant


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Bearer headers for the restaurant owner"""
    access_token = create_access_token(data={"sub": test_user.email}, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def other_auth_headers(other_user: User) -> dict:
    access_token = create_access_token(data={"sub": other_user.email}, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def service_headers(monkeypatch) -> dict:
    monkeypatch.setattr(settings, "service_api_key", SERVICE_KEY)
    return {"X-Service-Key": SERVICE_KEY}
