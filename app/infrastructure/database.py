"""Database configuration and session management"""
import asyncio
import logging
import time
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.config import settings

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()

# Connection error types
CONNECTION_ERRORS = (
    ConnectionError,
    ConnectionRefusedError,
    ConnectionResetError,
    BrokenPipeError,
)


def is_connection_error(error: BaseException) -> bool:
    """Check if an exception indicates a connection problem"""
    if isinstance(error, CONNECTION_ERRORS):
        return True

    if isinstance(error, (DBAPIError, OperationalError, InterfaceError)):
        if getattr(error, "connection_invalidated", False):
            return True
        error_str = str(error).lower()
        keywords = [
            'connection refused', 'connection reset', 'connection closed',
            'broken pipe', 'connect call failed',
            'server closed the connection', 'could not connect',
        ]
        return any(kw in error_str for kw in keywords)

    return False


def _create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create a new SQLAlchemy async engine with a small fixed pool"""
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=echo)

    return create_async_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=0,
        pool_recycle=1800,  # Recycle connections after 30 minutes
        pool_timeout=settings.db_pool_timeout,
        connect_args={
            "server_settings": {"timezone": "UTC"},
            "command_timeout": 60,
        },
    )


class Database:
    """Owns the engine and session factory of one application instance"""

    def __init__(self, database_url: Optional[str] = None, echo: Optional[bool] = None):
        self.database_url = database_url or settings.database_url
        self.engine = _create_engine(
            self.database_url,
            echo=settings.debug if echo is None else echo,
        )
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info(f"Database engine initialized ({self.dialect})")

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    async def init_db(self):
        """Initialize database tables"""
        # Register the tables on Base.metadata
        from app.infrastructure import db_models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ready")

    async def health_check(self) -> dict:
        """Check database connection health"""
        start = time.time()
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            latency = (time.time() - start) * 1000
            return {'healthy': True, 'latency_ms': latency, 'error': None}
        except (DBAPIError, OSError, asyncio.TimeoutError) as e:
            latency = (time.time() - start) * 1000
            logger.error(f"Database health check failed: {e}")
            return {'healthy': False, 'latency_ms': latency, 'error': str(e)}

    async def close(self):
        """Close database engine gracefully"""
        await self.engine.dispose()
        logger.info("Database engine closed")
