from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings


def engine_options(url: str) -> dict[str, Any]:
    """
    Pool settings per backend. Postgres (asyncpg) gets liveness checks and
    recycling for long-lived pooled connections; SQLite keeps its defaults.
    """
    if make_url(url).get_backend_name() == "sqlite":
        return {}
    return {"pool_pre_ping": True, "pool_recycle": 300}


# asyncpg rejects libpq-only query params (sslmode, channel_binding), so use the cleaned URL.
engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL_ASYNC_CLEAN,
    **engine_options(settings.DATABASE_URL_ASYNC_CLEAN),
)

# Handlers keep using loaded rows after commit to build responses.
SessionFactory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    One AsyncSession per request, shared by the access checks and the handler.
    Anything not committed by the handler is rolled back when the session closes.
    """
    async with SessionFactory() as session:
        yield session
