from datetime import datetime, timezone

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.auth.jwt import create_access_token
from app.auth.service import hash_password
from app.config import settings
from app.database import get_db
from app.main import create_app
from app.messages.models import Message
from app.models.base import Base
from app.users.models import User, UserRole

TEST_DATABASE_URL = settings.TEST_DATABASE_URL

engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
test_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(autouse=True)
async def setup_database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def override_get_db():
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def db_session():
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client():
    app = create_app()
    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


async def _create_user(email: str, role: UserRole, password: str = "securepass123", is_active: bool = True) -> User:
    async with test_session_factory() as session:
        user = User(
            email=email,
            name=email.split("@")[0],
            password_hash=hash_password(password),
            role=role.value,
            is_active=is_active,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


@pytest_asyncio.fixture
async def admin_user():
    return await _create_user("admin@example.com", UserRole.ADMIN)


@pytest_asyncio.fixture
async def agent_user():
    return await _create_user("agent@example.com", UserRole.AGENT)


@pytest_asyncio.fixture
async def inactive_admin():
    return await _create_user("former@example.com", UserRole.ADMIN, is_active=False)


@pytest_asyncio.fixture
async def admin_headers(admin_user: User):
    return {"Authorization": f"Bearer {create_access_token(str(admin_user.id))}"}


@pytest_asyncio.fixture
async def agent_headers(agent_user: User):
    return {"Authorization": f"Bearer {create_access_token(str(agent_user.id))}"}


@pytest_asyncio.fixture
async def add_messages():
    """Insert message rows given as dicts of ``Message`` column values."""

    async def _add(rows: list[dict]) -> None:
        async with test_session_factory() as session:
            for row in rows:
                row = dict(row)
                row.setdefault("created_at", datetime.now(timezone.utc))
                session.add(Message(**row))
            await session.commit()

    return _add
