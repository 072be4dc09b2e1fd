from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from billing.core.config import settings
import logging

logger = logging.getLogger(__name__)


def build_async_engine(url: str = None, **kwargs):
    """Create the async engine used by the application and the Celery tasks."""
    url = url or settings.async_database_url
    options = {"echo": settings.DEBUG and settings.ENVIRONMENT != "test"}
    if url.startswith("sqlite") or settings.ENVIRONMENT == "test" or kwargs.get("poolclass") is NullPool:
        # Sin pool: conexiones ligadas a un solo event loop (tests, tareas Celery)
        options["poolclass"] = NullPool
    else:
        options.update(pool_pre_ping=True, pool_size=10, max_overflow=20)
    options.update(kwargs)
    return create_async_engine(url, **options)


def build_session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


def build_sync_engine():
    """Synchronous engine, only for create_all at startup."""
    return create_engine(
        settings.database_url,
        pool_pre_ping=True,
        echo=settings.DEBUG
    )


# Async engine for application use
async_engine = build_async_engine()

# Async session for application
AsyncSessionLocal = build_session_factory(async_engine)

Base = declarative_base()


# Async dependency for application endpoints
async def get_async_db() -> AsyncSession:
    """Genera una sesión de base de datos asíncrona para endpoints."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            logger.error(f"Database error: {e}")
            await session.rollback()
            raise
        finally:
            await session.close()
