"""
Database configuration and session management.

Every order submission runs on one request-scoped AsyncSession. The
reservation primitives rely on the database to serialize concurrent
conditional updates, so nothing here holds application-level locks.
"""
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from ordering.config import get_settings

settings = get_settings()


def _get_async_url(url: str) -> str:
    """Convert database URL to async variant"""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://")
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///")
    return url


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for a sync-style or async-style database URL."""
    async_url = _get_async_url(url)
    engine_kwargs = {"echo": echo}

    if async_url.startswith("sqlite"):
        # Concurrent writers queue on the SQLite file lock instead of failing fast
        engine_kwargs["connect_args"] = {"timeout": 30}
    else:
        engine_kwargs["pool_size"] = 20
        engine_kwargs["max_overflow"] = 10
        engine_kwargs["pool_pre_ping"] = True

    return create_async_engine(async_url, **engine_kwargs)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
AsyncSessionLocal = build_session_factory(engine)

# Base class for models
Base = declarative_base()


async def get_db() -> AsyncSession:
    """Dependency for getting database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
