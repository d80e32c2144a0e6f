"""
Async engine and session handling for the telemetry database.

The engine is created on the first request that needs a session, from
``Settings.database_url`` (postgresql+asyncpg://...), and disposed by the
application lifespan on shutdown. Sessions are request-scoped and never
shared between requests.

CHANGELOG:
- 2026-10-19: Read DATABASE_URL through Settings, add dispose_engine
- 2026-10-19: Initial creation
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from bms_telemetry.config import get_settings

# Populated by init_engine(); reset by dispose_engine().
async_engine: AsyncEngine | None = None
async_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_engine(url: str | None = None) -> AsyncEngine:
    """Build the async engine.

    Pooled connections are pre-pinged on checkout.

    Args:
        url: Database URL. Defaults to ``Settings.database_url``.

    Returns:
        AsyncEngine: Engine bound to PostgreSQL through asyncpg.
    """
    return create_async_engine(
        url or get_settings().database_url,
        echo=False,
        pool_pre_ping=True,
    )


def create_session_factory(
    engine: AsyncEngine | None = None,
) -> async_sessionmaker[AsyncSession]:
    """Return a session factory bound to ``engine`` (or a new engine)."""
    return async_sessionmaker(
        engine or create_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
    )


def init_engine() -> None:
    """Create the module-level engine and session factory once."""
    global async_engine, async_session_factory  # noqa: PLW0603
    if async_engine is None:
        async_engine = create_engine()
        async_session_factory = create_session_factory(async_engine)


async def dispose_engine() -> None:
    """Close pooled connections and forget the engine, if one was created."""
    global async_engine, async_session_factory  # noqa: PLW0603
    if async_engine is not None:
        await async_engine.dispose()
    async_engine = None
    async_session_factory = None


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield one request-scoped session, closing it afterwards.

    Yields:
        AsyncSession: An async SQLAlchemy session.
    """
    init_engine()
    assert async_session_factory is not None, "Session factory not initialized"
    async with async_session_factory() as session:
        yield session
