"""Local store setup and session management.

The notification core keeps its on-device state (encrypted push token,
registration flag, encryption key, notification inbox) in a SQLite file.
Set DATABASE_URL to point it somewhere else:
    sqlite+aiosqlite:////var/lib/app/sitenotify.db
"""
import logging
import os

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from .config import get_database_url

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()


def create_engine(url: str) -> AsyncEngine:
    """Create an async engine configured for the local SQLite store."""
    engine = create_async_engine(
        url,
        echo=False,
        pool_pre_ping=True,
        connect_args={"timeout": 30},  # Wait up to 30 seconds for locks
    )

    # Enable WAL mode and busy timeout on each SQLite connection
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        """Configure SQLite for app-side concurrent access."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=30000")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    return engine


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to the given engine."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )


_database_url = get_database_url()

engine = create_engine(_database_url)
async_session = create_session_factory(engine)


async def init_db(bind: AsyncEngine | None = None):
    """Create tables and ensure the data directory exists."""
    bind = bind or engine

    database = bind.url.database
    if database and database != ":memory:":
        directory = os.path.dirname(database)
        if directory:
            os.makedirs(directory, exist_ok=True)

    # Import models so they register with Base.metadata
    from . import models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Local store initialized")


async def close_db(bind: AsyncEngine | None = None):
    """Close local store connections."""
    await (bind or engine).dispose()
