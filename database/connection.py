"""
Database Connection Module for AreWeUp

Manages the async engine and session factory backing the SQL metrics
sink.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine
)
from sqlalchemy.pool import NullPool, StaticPool

from config.settings import MetricsSettings
from database.models import Base
from exceptions import MetricPublishError
from utils.logger import get_logger


logger = get_logger("Database")


class DatabaseManager:
    """
    Database Manager Class

    Owns the engine and session factory. Constructed explicitly by the
    entry point (or a test) and passed to the metrics sink.

    Attributes:
        engine: SQLAlchemy async engine
        session_factory: Async session maker
        is_connected: Connection status flag
    """

    def __init__(self, metrics_settings: MetricsSettings) -> None:
        """
        Initialize database manager.

        Args:
            metrics_settings: The METRICS_* settings group
        """
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self.is_connected: bool = False
        self._settings = metrics_settings

    async def connect(self) -> None:
        """
        Create the engine, verify it and create missing tables.

        Raises:
            MetricPublishError: If the database cannot be reached
        """
        if self.is_connected:
            logger.warning("Database already connected")
            return

        url = self._settings.database_url
        self._ensure_sqlite_directory(url)

        try:
            logger.info("Connecting to metrics database...")

            self.engine = create_async_engine(url, **self._get_engine_kwargs(url))
            self.session_factory = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False
            )

            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                await conn.run_sync(Base.metadata.create_all)

            self.is_connected = True
            logger.info("Metrics database connection established successfully")

        except (SQLAlchemyError, OSError) as e:
            error_msg = f"Failed to connect to metrics database: {e}"
            logger.error(error_msg)
            if self.engine is not None:
                await self.engine.dispose()
                self.engine = None
            raise MetricPublishError(error_msg, sink="database", cause=e) from e

    def _get_engine_kwargs(self, url: str) -> Dict[str, Any]:
        """
        Get engine configuration kwargs for the URL.

        Returns:
            Dictionary of engine configuration options
        """
        kwargs: Dict[str, Any] = {"echo": self._settings.echo}

        if url.startswith("sqlite"):
            database = make_url(url).database
            # An in-memory database only lives as long as its single connection
            if not database or database == ":memory:":
                kwargs["poolclass"] = StaticPool
                kwargs["connect_args"] = {"check_same_thread": False}
            else:
                kwargs["poolclass"] = NullPool
        else:
            kwargs["pool_pre_ping"] = True

        return kwargs

    @staticmethod
    def _ensure_sqlite_directory(url: str) -> None:
        if not url.startswith("sqlite"):
            return
        database = make_url(url).database
        if database and database != ":memory:":
            Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)

    async def disconnect(self) -> None:
        """Dispose of the engine."""
        if not self.is_connected:
            return

        logger.info("Disconnecting from metrics database...")

        if self.engine:
            await self.engine.dispose()
            self.engine = None

        self.session_factory = None
        self.is_connected = False

        logger.info("Metrics database disconnected successfully")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Context manager for database sessions.

        Provides a session that is automatically committed on success
        or rolled back on failure.

        Yields:
            AsyncSession: Database session

        Raises:
            MetricPublishError: If not connected or the statement fails
        """
        if not self.is_connected or not self.session_factory:
            raise MetricPublishError("Metrics database not connected", sink="database")

        session = self.session_factory()

        try:
            yield session
            await session.commit()

        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Database session error: {e}")
            raise MetricPublishError(str(e), sink="database", cause=e) from e

        finally:
            await session.close()
