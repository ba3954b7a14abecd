"""
Database connection and session management for SQLAlchemy 2.0.
Configured for async operations with PostgreSQL (asyncpg) in production
and SQLite (aiosqlite) for local development and tests.
"""
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool
from sqlalchemy import text
from urllib.parse import urlparse
import logging

from gallery.config import settings

logger = logging.getLogger(__name__)

# Create declarative base for models
Base = declarative_base()

SQLITE_MEMORY_URL = "sqlite+aiosqlite:///:memory:"


def build_engine_args(database_url: str) -> dict:
    """
    Build keyword arguments for create_async_engine.
    Pool settings only apply to PostgreSQL; in-memory SQLite shares one connection.
    """
    engine_args = {
        "echo": False,  # Set to True for SQL query logging in development
    }

    if database_url.startswith("postgresql"):
        engine_args.update({
            "pool_size": 10,
            "max_overflow": 20,
            "pool_pre_ping": True,  # Verify connections before using
            "pool_recycle": 3600,
            "connect_args": {
                "server_settings": {
                    "application_name": "lounge-gallery-api"
                }
            }
        })
    elif database_url.startswith("sqlite") and ":memory:" in database_url:
        engine_args.update({
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        })

    return engine_args


_database_url = settings.DATABASE_URL or SQLITE_MEMORY_URL

engine = create_async_engine(_database_url, **build_engine_args(_database_url))

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncSession:
    """
    FastAPI dependency for database sessions.
    Provides async database session with automatic commit/rollback.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.debug(f"Database session rolled back: {type(e).__name__}: {str(e)}")
            raise
        finally:
            await session.close()


def validate_database_url(url: str) -> tuple[bool, str]:
    """
    Validate database URL and provide diagnostic information.
    Returns (is_valid, diagnostic_message)
    """
    if not url:
        return False, "DATABASE_URL is empty"

    if url.startswith("sqlite+aiosqlite://"):
        return True, "SQLite database (development/testing only)"

    try:
        parsed = urlparse(url)
    except ValueError as e:
        return False, f"Error parsing DATABASE_URL: {str(e)}"

    if not url.startswith("postgresql+asyncpg://"):
        return False, (
            "Invalid database URL scheme. Expected postgresql+asyncpg:// "
            f"or sqlite+aiosqlite://, got: {parsed.scheme}"
        )

    if not parsed.hostname:
        return False, "No hostname found in DATABASE_URL"

    return True, (
        f"URL format valid. Hostname: {parsed.hostname}, Port: {parsed.port or 5432}, "
        f"Database: {parsed.path or '/postgres'}"
    )


async def create_tables() -> None:
    """Create all tables from model metadata (development and tests)."""
    # Import models so they register on Base.metadata
    import gallery.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")


async def init_db():
    """
    Initialize database connection.
    Used by the startup event to verify the connection.
    """
    if not settings.DATABASE_URL:
        logger.warning("DATABASE_URL not set, using in-memory SQLite database")
        await create_tables()
        return

    is_valid, diagnostic = validate_database_url(settings.DATABASE_URL)
    if not is_valid:
        logger.error(f"Invalid DATABASE_URL: {diagnostic}")
        raise ValueError(f"Invalid DATABASE_URL: {diagnostic}")

    logger.info(f"Database URL validation: {diagnostic}")

    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("Database connection initialized successfully")

    if settings.DB_CREATE_ALL:
        await create_tables()


async def close_db():
    """
    Close database connections.
    Used by the shutdown event.
    """
    await engine.dispose()
    logger.info("Database connections closed")
