"""Async database engine and session management.

Reservation writes do not use the request-scoped session: each one opens its
own unit of work (see services.transaction) so that commit and rollback are
owned by the core, not by the HTTP layer.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from playhub.core.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    pool_size=20,
    max_overflow=10,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session. Used as a FastAPI dependency for read-only paths."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_dialect_name(session: AsyncSession, default: str = "postgresql") -> str:
    """Return the dialect name of the engine behind a session."""
    bind = session.get_bind()
    if bind is None:
        return default
    dialect = getattr(bind, "dialect", None)
    return getattr(dialect, "name", None) or default
