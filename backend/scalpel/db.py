"""
Async engine for the account store.

Postgres (asyncpg) in production; any SQLAlchemy async URL works, which is
how the test-suite runs against a throwaway SQLite file.
"""
import os
import structlog
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

log = structlog.get_logger()


class Base(DeclarativeBase):
    pass


# ── URL helpers ────────────────────────────────────────────────────────────

def _raw_url() -> str:
    from scalpel.config import settings
    url = os.environ.get("DATABASE_URL") or settings.DATABASE_URL
    if not url:
        raise RuntimeError("DATABASE_URL is not set")
    # Normalise postgres:// → postgresql://
    return url.replace("postgres://", "postgresql://", 1)


def _async_url() -> str:
    url = _raw_url()
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


# ── Engine ─────────────────────────────────────────────────────────────────

_async_engine = None
_async_factory = None


def get_async_engine():
    global _async_engine
    if _async_engine is None:
        url = _async_url()
        kwargs = {"echo": False}
        if url.startswith("postgresql"):
            kwargs.update(pool_size=5, max_overflow=10)
        _async_engine = create_async_engine(url, **kwargs)
    return _async_engine


def get_session_factory():
    global _async_factory
    if _async_factory is None:
        _async_factory = async_sessionmaker(get_async_engine(), class_=AsyncSession, expire_on_commit=False)
    return _async_factory


def new_session() -> AsyncSession:
    """Fresh session bound to the current engine (resolved lazily)."""
    return get_session_factory()()


# ── FastAPI dependency ─────────────────────────────────────────────────────

async def get_db():
    async with new_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ── Startup / shutdown ─────────────────────────────────────────────────────

async def init_db():
    engine = get_async_engine()
    from scalpel.models import account, payment_event  # noqa: F401
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    log.info("tables_created")


async def close_db():
    global _async_engine, _async_factory
    if _async_engine is not None:
        await _async_engine.dispose()
    _async_engine = None
    _async_factory = None
