"""Declarative base and the process-wide async engine.

The engine and session factory are module globals installed once at startup
(``init_db``) or by tests (``bind_engine``). Request code only ever asks for
``get_session_factory()``.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from paygate.core.config import get_settings


class Base(DeclarativeBase):
    pass


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def bind_engine(engine: AsyncEngine | None) -> async_sessionmaker[AsyncSession] | None:
    """Make ``engine`` the one sessions come from; ``None`` unbinds."""
    global _engine, _session_factory

    _engine = engine
    # Rows are read after commit (tokens are issued from the inserted user)
    _session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False) if engine else None
    return _session_factory


async def create_tables(engine: AsyncEngine) -> None:
    """Create ``users`` and ``payment_records`` if they do not exist."""
    import paygate.db.models  # noqa: F401  (registers the tables on Base.metadata)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db(url: str | None = None, **engine_kwargs) -> None:
    """Create the engine for ``url`` (default ``DATABASE_URL``) and its tables.

    A second call is a no-op while an engine is bound.
    """
    if _engine is not None:
        return

    settings = get_settings()
    engine_kwargs.setdefault("pool_pre_ping", True)
    engine = create_async_engine(url or settings.database_url, echo=settings.debug, **engine_kwargs)

    bind_engine(engine)
    await create_tables(engine)


async def close_db() -> None:
    if _engine is not None:
        engine = _engine
        bind_engine(None)
        await engine.dispose()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the bound session factory.

    Raises RuntimeError if no engine is bound yet.
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory
