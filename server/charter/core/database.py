"""Async engine, session factory and store helpers for the lifecycle tables."""

from collections.abc import AsyncGenerator
from enum import Enum
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from .config import settings


def _engine_options(url: str) -> dict[str, Any]:
    # One shared connection keeps an in-memory SQLite database alive across sessions
    if url.startswith("sqlite"):
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_async_engine(settings.database_url, echo=settings.debug, **_engine_options(settings.database_url))

# Services flush only at commit, inside their conflict handling
async_session_factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


class Base(DeclarativeBase):
    pass


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Session per request, rolled back if the handler raises."""
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create missing tables; deployed databases are migrated with Alembic."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()


async def advisory_xact_lock(db: AsyncSession, key: str) -> None:
    """
    Serialize writers on ``key`` until the current transaction ends.

    PostgreSQL only; SQLite serializes writes on its own.
    """
    if db.bind is not None and db.bind.dialect.name == "postgresql":
        await db.execute(text("SELECT pg_advisory_xact_lock(hashtext(:lock_key))"), {"lock_key": key})


def stored_value(value: Any) -> Any:
    """Plain value of an enum-typed column, as the database stores it."""
    return value.value if isinstance(value, Enum) else value
