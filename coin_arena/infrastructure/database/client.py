import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    async_sessionmaker,
    AsyncSession,
)
from sqlalchemy.exc import SQLAlchemyError
from coin_arena.infrastructure.database.models import Base

logger = logging.getLogger(__name__)


class DatabaseClient:
    """
    Async SQLAlchemy engine + session factory.

    Built once at process start and injected into every service that
    touches the ledger; disposed at shutdown.
    """

    def __init__(
        self,
        db_url: str,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout: int = 30,
        pool_recycle: int = 3600,
        echo: bool = False,
    ):
        self._db_url = db_url.replace("postgresql://", "postgresql+asyncpg://")

        if self._db_url.startswith("sqlite"):
            # SQLite has no server-side pool to size
            self._engine = create_async_engine(
                self._db_url,
                echo=echo,
                future=True,
            )
        else:
            self._engine = create_async_engine(
                self._db_url,
                echo=echo,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
                pool_pre_ping=True,
                future=True,
            )

        self._session_factory = async_sessionmaker(
            bind=self._engine,
            expire_on_commit=False,
            class_=AsyncSession,
        )
        self._is_initialized = False

    async def init(self, create_schema: bool = True) -> None:
        """
        Opens the connection and optionally creates every table.

        Call once at server startup.
        """
        if self._is_initialized:
            return

        logger.info("🔌 Initializing database connection...")

        async with self._engine.begin() as conn:
            await conn.execute(text("SELECT 1"))

            if create_schema:
                logger.info("🧱 Creating / updating database schema...")
                await conn.run_sync(Base.metadata.create_all)

        self._is_initialized = True
        logger.info("✅ Database client initialized successfully")

    async def close(self) -> None:
        """
        Disposes the engine and releases pooled connections.
        """
        if self._is_initialized:
            await self._engine.dispose()
            self._is_initialized = False
            logger.info("🔌 Database client closed")

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Yields an async session; rolls back on any error.
        """
        async with self._session_factory() as session:
            try:
                yield session
            except Exception as e:
                await session.rollback()
                logger.error(f"❌ Error in DB session, rollback applied: {e}")
                raise

    async def health_check(self) -> bool:
        """
        Runs SELECT 1 to verify connectivity.
        """
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"❌ Database health check failed: {e}")
            return False
