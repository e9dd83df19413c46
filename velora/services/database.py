"""
Async database service.

Owns the SQLAlchemy engine and session factory. One instance is created per
application in the lifespan and shared through ``app.state``; the stores open
short-lived sessions from ``session_factory`` for each operation.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from velora.core.config import Settings
from velora.models import Base

logger = logging.getLogger("velora.database")


class Database:
    """
    Async database connection for users, conversations and messages.

    Features:
    - Async connection pooling (PostgreSQL via asyncpg, SQLite via aiosqlite)
    - Automatic table creation
    - Graceful degradation if no database is configured
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine: AsyncEngine | None = None
        self.session_factory: async_sessionmaker[AsyncSession] | None = None
        self._connected = False

    @property
    def is_available(self) -> bool:
        """Check if database is configured and connected."""
        return self._connected and self.engine is not None

    async def connect(self) -> bool:
        """
        Create the engine and the tables if needed.

        Returns:
            True if connection successful, False otherwise.
        """
        url = self.settings.DATABASE_URL
        if not url:
            logger.warning("DATABASE_URL not configured - conversation persistence disabled")
            return False

        engine_kwargs: dict = {"echo": False}
        if not url.startswith("sqlite"):
            engine_kwargs.update(pool_size=5, max_overflow=10, pool_pre_ping=True)

        try:
            self.engine = create_async_engine(url, **engine_kwargs)
            self.session_factory = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )

            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            self._connected = True
            logger.info("Connected to database: %s", self.settings.sanitize_url(url))
            return True
        except Exception as e:
            logger.error("Failed to connect to database: %s", e)
            if self.engine is not None:
                await self.engine.dispose()
            self.engine = None
            self.session_factory = None
            self._connected = False
            return False

    async def close(self) -> None:
        """Close database connection pool."""
        if self.engine:
            await self.engine.dispose()
            self._connected = False
            logger.info("Database connection closed")

    def session(self) -> AsyncSession:
        """
        Open a new session.

        Raises:
            RuntimeError: If the database is not connected.
        """
        if not self.is_available or self.session_factory is None:
            raise RuntimeError("Database not connected")
        return self.session_factory()
