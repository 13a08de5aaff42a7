"""Async database engine and session management."""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from goryl.domain.models import Base


def build_session_factory(
    database_url: str, echo: bool = False
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create an engine and a session factory bound to it."""
    engine = create_async_engine(database_url, echo=echo)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    return engine, factory


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables. Production deployments use the Alembic migrations."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
