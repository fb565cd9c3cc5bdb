from __future__ import annotations

import threading

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from beacon.config import get_settings
from beacon.models import Base

_lock = threading.Lock()
_engine: AsyncEngine | None = None
_SessionLocal: async_sessionmaker[AsyncSession] | None = None


async def init_db(database_url: str | None = None) -> None:
    """Create the engine and tables. Called once at process start."""
    global _engine, _SessionLocal
    await dispose_db()
    settings = get_settings()
    if database_url is None:
        database_url = settings.database_url
        if not settings.database_url_override:
            settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_async_engine(database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    with _lock:
        _engine = engine
        _SessionLocal = async_sessionmaker(engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


async def dispose_db() -> None:
    global _engine, _SessionLocal
    with _lock:
        engine, _engine, _SessionLocal = _engine, None, None
    if engine is not None:
        await engine.dispose()


def get_session() -> AsyncSession:
    with _lock:
        if _SessionLocal is None:
            raise RuntimeError("init_db() has not been called")
        factory = _SessionLocal
    return factory()
