"""
Фабрика для создания сессий базы данных
"""

from typing import AsyncGenerator, Optional
from contextlib import asynccontextmanager
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from core.config.settings import settings
from core.logging.logger import logger


def to_async_url(database_url: str) -> str:
    """Переводит URL PostgreSQL на драйвер asyncpg."""
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


class DatabaseManager:
    """Менеджер базы данных для создания сессий."""

    def __init__(self):
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None
        self._initialized = False

    async def initialize(self, database_url: Optional[str] = None):
        """Инициализирует подключение к базе данных."""
        if self._initialized:
            return

        try:
            url = to_async_url(database_url or settings.database_url)
            engine_kwargs = {"echo": settings.database_echo, "pool_pre_ping": True}
            if url.startswith("postgresql"):
                engine_kwargs.update(
                    pool_size=settings.database_pool_size,
                    max_overflow=settings.database_max_overflow,
                    pool_recycle=3600,
                )

            self.engine = create_async_engine(url, **engine_kwargs)
            self.bind(self.engine)

            logger.info("Database connection initialized successfully", url=self.engine.url.render_as_string())

        except Exception as e:
            logger.error(f"Failed to initialize database connection: {e}")
            raise

    def bind(self, engine: AsyncEngine) -> None:
        """Привязывает менеджер к готовому движку (используется в тестах)."""
        self.engine = engine
        self.session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False
        )
        self._initialized = True

    async def close(self):
        """Закрывает подключение к базе данных."""
        if self.engine:
            await self.engine.dispose()
            self._initialized = False
            logger.info("Database connection closed")

    def get_session(self) -> AsyncSession:
        """Возвращает новую сессию базы данных."""
        if not self._initialized:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        return self.session_factory()

    async def get_session_async(self) -> AsyncGenerator[AsyncSession, None]:
        """Асинхронный генератор для получения сессий."""
        session = self.get_session()
        try:
            yield session
        finally:
            await session.close()


# Глобальный экземпляр менеджера БД
db_manager = DatabaseManager()


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency для получения сессии БД."""
    if not db_manager._initialized:
        await db_manager.initialize()
    async for session in db_manager.get_session_async():
        yield session


async def init_database():
    """Инициализирует базу данных."""
    await db_manager.initialize()


async def close_database():
    """Закрывает подключение к базе данных."""
    await db_manager.close()


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Асинхронный контекстный менеджер для получения сессии БД.

    Обеспечивает ленивую инициализацию подключения и корректное закрытие сессии.
    Использование:
        async with get_async_session() as session:
            ...
    """
    if not db_manager._initialized:
        await db_manager.initialize()
    session = db_manager.get_session()
    try:
        yield session
    finally:
        await session.close()


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """Открывает транзакцию на сессии: commit при успехе, rollback при ошибке.

    Все операции движка квот выполняются внутри такой транзакции; блокировки
    строк (SELECT ... FOR UPDATE) держатся до её завершения.
    """
    async with session.begin():
        if settings.database_lock_timeout_ms and session.bind.dialect.name == "postgresql":
            await session.execute(
                text(f"SET LOCAL lock_timeout = {int(settings.database_lock_timeout_ms)}")
            )
        yield session
