"""Async relational store handle built on SQLModel and SQLAlchemy 2.0."""

from contextlib import asynccontextmanager
from typing import Any, Dict

from sqlmodel import SQLModel
from sqlalchemy.pool import StaticPool
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from modelfunc.core.config import Settings
from modelfunc.core.logging import get_logger

logger = get_logger(__name__)


def engine_options(settings: Settings) -> Dict[str, Any]:
    """Engine keyword arguments for the configured database URL."""
    url = settings.database_url
    options: Dict[str, Any] = {"echo": settings.database_echo, "future": True}

    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
        # One shared connection, otherwise every checkout sees an empty database
        if ":memory:" in url:
            options["poolclass"] = StaticPool
    else:
        options["pool_size"] = settings.database_pool_size
        options["max_overflow"] = settings.database_max_overflow

    return options


class Database:
    """Async database service with SQLModel.

    This is the store handle ModelFunc runs its queries through and the one it
    passes to link finders and post-operation hooks.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine = None
        self.async_session = None

    async def startup(self, create_tables: bool = True):
        """Initialize database connection and optionally create tables."""
        try:
            self.engine = create_async_engine(self.settings.database_url, **engine_options(self.settings))

            self.async_session = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            if create_tables:
                async with self.engine.begin() as conn:
                    await conn.run_sync(SQLModel.metadata.create_all)

            logger.info("Database initialized successfully", url=self.settings.database_url)

        except Exception as e:
            logger.error("Database startup failed", error=str(e))
            raise

    async def shutdown(self):
        """Close database connections."""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.async_session = None
            logger.info("Database connections closed")

    @asynccontextmanager
    async def get_session(self):
        """Get async database session."""
        if not self.async_session:
            raise RuntimeError("Database not initialized")

        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()
