"""
Async engine and session factory for the template store.

PostgreSQL (asyncpg) in deployments, SQLite (aiosqlite) for local runs and
tests. Sessions are handed to routes through ``get_db``; services commit or
roll back themselves.
"""

from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from flowtemplates.config import settings
from flowtemplates.logging_config import get_logger
from flowtemplates.models import Base

logger = get_logger(__name__)


def _engine_options(url: str, debug: bool) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": debug}
    if url.startswith("sqlite"):
        return options
    if debug:
        options["poolclass"] = NullPool
    else:
        options.update(pool_pre_ping=True, pool_size=20, max_overflow=40)
    return options


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL, settings.DEBUG))

# Templates are read back by the API after the service commits
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield one session per request; an exception escaping the route rolls it back"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create missing tables (startup)"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database ready", url=engine.url.render_as_string(hide_password=True))


async def close_db() -> None:
    """Dispose of the connection pool (shutdown)"""
    await engine.dispose()
    logger.info("Database engine disposed")
