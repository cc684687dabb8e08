"""
Конфигурация pytest для тестов MigrantDesk
Объединяет фикстуры БД и моки для unit тестов
"""
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from domain.entities import Base
from tests.utils.test_helpers import TestDataFactory


# In-memory SQLite: одна БД на тест, общая для всех соединений пула
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# =============================================================================
# Фикстуры для работы с БД
# =============================================================================

@pytest_asyncio.fixture
async def test_engine():
    """Создать тестовый движок БД со всеми таблицами."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Фабрика сессий поверх тестового движка."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Создать сессию БД для каждого теста."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def factory(db_session):
    """Фабрика тестовых данных, привязанная к сессии."""
    return TestDataFactory(db_session)


# =============================================================================
# Моки для unit тестов
# =============================================================================

@pytest.fixture
def mock_db_session():
    """Мок сессии базы данных для unit тестов"""
    session = AsyncMock(spec=AsyncSession)
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.flush = AsyncMock()
    session.add = MagicMock()
    session.in_transaction = MagicMock(return_value=True)
    return session
