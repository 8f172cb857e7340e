import asyncio
import re

import asyncpg
import structlog

from learnd.core.config import settings
from learnd.core.constants import DatabasePool

logger = structlog.get_logger(__name__)

_pool: asyncpg.Pool | None = None
_pool_lock = asyncio.Lock()


def _asyncpg_dsn(url: str) -> str:
    """Strip SQLAlchemy driver suffixes (postgresql+asyncpg://) that asyncpg rejects."""
    return re.sub(r"^postgres(?:ql)?\+\w+://", "postgresql://", url)


async def get_db_pool() -> asyncpg.Pool:
    """Return the shared asyncpg connection pool, creating it on first call."""
    global _pool

    if _pool is None:
        async with _pool_lock:
            if _pool is None:
                logger.info(
                    "db.pool.create",
                    min_size=DatabasePool.MIN_SIZE,
                    max_size=DatabasePool.MAX_SIZE,
                )
                _pool = await asyncpg.create_pool(
                    dsn=_asyncpg_dsn(settings.DATABASE_URL),
                    min_size=DatabasePool.MIN_SIZE,
                    max_size=DatabasePool.MAX_SIZE,
                )
                logger.info("db.pool.created", pool_size=_pool.get_size())
    return _pool  # type: ignore[return-value]


async def close_db_pool() -> None:
    """Close the asyncpg pool on shutdown."""
    global _pool
    if _pool:
        logger.info("db.pool.closing", pool_size=_pool.get_size())
        await _pool.close()
        _pool = None
