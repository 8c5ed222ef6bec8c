"""
Database configuration and session management
Flow: Settings -> Engine -> SessionLocal -> get_db dependency
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, AsyncIterator, Dict

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from assembly_factory.config.settings import get_settings
from assembly_factory.core.exceptions import AssemblyFactoryException, ConflictError, StoreError
from assembly_factory.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()


def _engine_options(url: str) -> Dict[str, Any]:
    """Pool options; SQLite drivers do not accept queue pool sizing."""
    options: Dict[str, Any] = {"echo": settings.DEBUG, "future": True}
    if not url.startswith("sqlite"):
        options.update(pool_size=10, max_overflow=20, pool_pre_ping=True)
    return options


def build_engine(url: str) -> AsyncEngine:
    """Create an async engine for the given URL."""
    return create_async_engine(url, **_engine_options(url))


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to an engine."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


# Create async engine
engine = build_engine(settings.DATABASE_URL)

# Create async session factory
AsyncSessionLocal = build_session_factory(engine)

# Create declarative base
Base = declarative_base()


def get_database_url() -> str:
    """Get database URL for scripts."""
    return settings.DATABASE_URL


async def create_tables(bind: AsyncEngine | None = None) -> None:
    """Create all factory tables that do not exist yet."""
    # Import models so they register on Base.metadata
    import assembly_factory.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def transaction(db: AsyncSession, operation: str) -> AsyncIterator[AsyncSession]:
    """
    One store call = one transaction.

    Commits on success; on any failure rolls back so nothing is half-written.
    Driver errors surface as a retryable StoreError, duplicate keys as ConflictError.
    """
    try:
        yield db
        await db.commit()
    except AssemblyFactoryException:
        if db.new or db.dirty or db.deleted:
            await db.rollback()
        else:
            # rejected before any write: end the read without expiring loaded instances
            await db.commit()
        raise
    except IntegrityError as e:
        await db.rollback()
        logger.warning("Integrity violation", operation=operation, error=str(e.orig))
        raise ConflictError(f"Conflicting data in '{operation}'", conflicting_resource=operation) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Store operation failed", operation=operation, error=str(e))
        raise StoreError(f"Store unavailable during '{operation}', retry", operation=operation) from e


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
