import os

os.environ.setdefault("SECRET_KEY", "test_secret_key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

from app.db.session import get_db
from app.db.redis import get_redis
from app.main import app
from app.models.base import Base
from app.models.users import User, UserRole
from app.models.tours import Tour, Review, Difficulty
from app.core.config import settings
from app.core.security import get_password_hash, create_access_token

TEST_DB_URL = "sqlite+aiosqlite://"
PASSWORD = "password123"


@pytest.fixture
async def engine():
    """In-memory database shared by every session of one test"""
    engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def db_session(session_factory):
    """Session for arranging and inspecting data; requests get their own"""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def mock_redis():
    """Mock Redis client"""
    redis_mock = AsyncMock()
    redis_mock.incr.return_value = 1
    redis_mock.expire.return_value = True
    return redis_mock


@pytest.fixture(autouse=True)
def mock_welcome_email():
    """Signup queues a Celery task; no broker runs under test"""
    with patch("app.api.v1.auth.send_welcome_email") as mock:
        yield mock


@pytest.fixture
def mock_reset_email():
    with patch("app.services.auth.Email.send_password_reset", new_callable=AsyncMock) as mock:
        mock.return_value = True
        yield mock


@pytest.fixture
def images_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "IMAGES_DIR", str(tmp_path / "img"))
    return tmp_path / "img"


@pytest.fixture
async def client(session_factory, mock_redis):
    """Create test client with mocked dependencies"""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_redis():
        yield mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides = {}


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    async def _make_user(role=UserRole.USER, name=None, email=None, password=PASSWORD, active=True):
        counter["n"] += 1
        user = User(
            sid=Base.generate_sid(),
            name=name or f"Test User {counter['n']}",
            email=email or f"user{counter['n']}@example.com",
            password_hash=get_password_hash(password),
            role=role,
            active=active,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_tour(db_session):
    counter = {"n": 0}

    async def _make_tour(**overrides):
        counter["n"] += 1
        values = dict(
            name=f"The Test Hiker {counter['n']:03d}",
            duration=7,
            max_group_size=10,
            difficulty=Difficulty.EASY,
            price=500,
            summary="A test tour",
            image_cover="cover.jpg",
            images=[],
            start_dates=[],
            locations=[],
            created_at=datetime.now(timezone.utc),
        )
        values.update(overrides)
        values.setdefault("slug", values["name"].lower().replace(" ", "-"))
        tour = Tour(sid=Base.generate_sid(), **values)
        db_session.add(tour)
        await db_session.commit()
        return tour

    return _make_tour


@pytest.fixture
def make_review(db_session):
    async def _make_review(tour, user, rating=5, text="Great tour"):
        review = Review(
            sid=Base.generate_sid(),
            review=text,
            rating=rating,
            tour_sid=tour.sid,
            user_sid=user.sid,
        )
        db_session.add(review)
        await db_session.commit()
        return review

    return _make_review


@pytest.fixture
def auth_headers():
    """Builds a bearer header for a user"""

    def _auth_headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.sid)}"}

    return _auth_headers


@pytest.fixture
async def test_user(make_user):
    return await make_user(email="test@example.com", name="Test User")


@pytest.fixture
async def admin_user(make_user):
    return await make_user(role=UserRole.ADMIN, email="admin@example.com", name="Admin User")


@pytest.fixture
async def lead_guide(make_user):
    return await make_user(role=UserRole.LEAD_GUIDE, email="lead@example.com", name="Lead Guide")
