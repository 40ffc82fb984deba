"""Database connection and session management."""
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from clippilot.config import settings


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with SQLite foreign keys enabled."""
    engine = create_async_engine(database_url, echo=echo, future=True)
    
    if database_url.startswith("sqlite"):
        # Required for ON DELETE CASCADE on clips
        @event.listens_for(engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            """Enable foreign keys for SQLite connections."""
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    
    return engine


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# Create async engine
engine = build_engine(settings.database_url, echo=settings.debug)

# Session factory
async_session_maker = build_session_maker(engine)

# Base class for models
Base = declarative_base()


async def init_db(bind: AsyncEngine = None):
    """Initialize database tables."""
    # Register models on Base.metadata
    import clippilot.models  # noqa: F401
    
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(bind: AsyncEngine = None):
    """Close database connections."""
    await (bind or engine).dispose()
