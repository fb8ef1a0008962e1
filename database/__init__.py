"""Database session/engine bootstrap for AdBoard."""

import os

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from database.models import Base
from database.store import AdBoardStore

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    "sqlite+aiosqlite:///adboard.db",
)

engine = create_async_engine(
    DATABASE_URL,
    echo=False,
    connect_args={"timeout": 30},
)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_store() -> AdBoardStore:
    """Store (repository over one session) dependency for FastAPI."""
    async with async_session() as session:
        yield AdBoardStore(session)


async def init_db(bind: AsyncEngine | None = None):
    """Create tables. ``bind`` lets tests point at their own engine."""
    bind = bind or engine
    async with bind.begin() as conn:
        if bind.dialect.name == "sqlite" and bind.url.database not in (None, "", ":memory:"):
            await conn.exec_driver_sql("PRAGMA journal_mode=WAL")
            await conn.exec_driver_sql("PRAGMA synchronous=NORMAL")
        await conn.run_sync(Base.metadata.create_all)
