import ssl
from collections.abc import AsyncGenerator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

from truthlens.config import settings


def _async_url_and_connect_args(url: str) -> tuple[str, dict]:
    """Strip sslmode/channel_binding from the URL (asyncpg doesn't accept them) and pass SSL via connect_args."""
    if "sslmode=require" in url:
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        # Remove params that asyncpg doesn't accept as URL/keyword args
        for param in ["sslmode=require", "channel_binding=require"]:
            url = url.replace(f"?{param}&", "?").replace(f"&{param}", "").replace(f"?{param}", "")
        return url, {"ssl": ctx}
    return url, {}


def install_sqlite_pragmas(engine: Engine) -> None:
    """Make SQLite behave closely enough to PostgreSQL for the write paths.

    Foreign keys are off by default in SQLite, and the driver's implicit
    BEGIN breaks savepoints. Every transaction takes the write lock up front
    so concurrent writers queue on the busy timeout instead of deadlocking.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_async_engine(url: str) -> AsyncEngine:
    if url.startswith("sqlite"):
        engine = create_async_engine(
            url,
            echo=False,
            poolclass=NullPool,
            connect_args={"timeout": settings.sqlite_busy_timeout_seconds},
        )
        install_sqlite_pragmas(engine.sync_engine)
        return engine

    async_url, connect_args = _async_url_and_connect_args(url)
    return create_async_engine(
        async_url, echo=False, connect_args=connect_args,
        pool_size=5, max_overflow=10, pool_pre_ping=True, pool_recycle=300,
    )


def build_sync_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        engine = create_engine(url, echo=False, connect_args={"timeout": settings.sqlite_busy_timeout_seconds})
        install_sqlite_pragmas(engine)
        return engine
    return create_engine(url, echo=False)


# Async engine for FastAPI
async_engine = build_async_engine(settings.database_url)
AsyncSessionLocal = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)

# Sync engine for maintenance commands
sync_engine = build_sync_engine(settings.database_url_sync)
SyncSessionLocal = sessionmaker(sync_engine, class_=Session, expire_on_commit=False)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
