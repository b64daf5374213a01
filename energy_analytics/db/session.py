"""
Async database engine and session factory.

Uses SQLAlchemy 2.x async engine with asyncpg driver for PostgreSQL.
Provides module-level engine and session factory singletons. The analytics
repository opens one short-lived session per read so per-meter reads can
run concurrently.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-107)
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

# Module-level singletons, initialized lazily via init_engine().
async_engine: AsyncEngine | None = None
async_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_engine(database_url: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Args:
        database_url: postgresql+asyncpg:// connection URL.

    Returns:
        AsyncEngine: Configured async engine.
    """
    return create_async_engine(database_url, echo=False, pool_pre_ping=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to *engine*."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def init_engine(database_url: str) -> async_sessionmaker[AsyncSession]:
    """Initialize the module-level engine and session factory.

    Call this at application startup. Safe to call multiple times;
    subsequent calls return the existing factory.

    Returns:
        async_sessionmaker: The shared session factory.
    """
    global async_engine, async_session_factory  # noqa: PLW0603
    if async_engine is None:
        async_engine = create_engine(database_url)
        async_session_factory = create_session_factory(async_engine)
    assert async_session_factory is not None, "Session factory not initialized"
    return async_session_factory


async def dispose_engine() -> None:
    """Dispose the module-level engine at shutdown, if it was created."""
    global async_engine, async_session_factory  # noqa: PLW0603
    if async_engine is not None:
        await async_engine.dispose()
    async_engine = None
    async_session_factory = None
