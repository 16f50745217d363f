from typing import AsyncGenerator
from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from .config import get_settings

# Tests set DATABASE_URL in os.environ before importing this module to force
# an isolated SQLite file.
DATABASE_URL = get_settings().database_url

# Ensure we use the async drivers
if DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")
elif DATABASE_URL.startswith("postgresql+psycopg2://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql+psycopg2://", "postgresql+asyncpg://")
elif DATABASE_URL.startswith("sqlite:///"):
    DATABASE_URL = DATABASE_URL.replace("sqlite:///", "sqlite+aiosqlite:///")

engine_kwargs = {"echo": False, "future": True}
if DATABASE_URL.startswith("sqlite"):
    engine_kwargs["connect_args"] = {"check_same_thread": False}

    if (
        ":memory:" in DATABASE_URL
        or "mode=memory" in DATABASE_URL
        or DATABASE_URL == "sqlite+aiosqlite://"
    ):
        # In-memory DBs must share one connection or the schema disappears
        engine_kwargs["poolclass"] = StaticPool
    else:
        # Fresh connection per session; aiosqlite connections are bound to
        # the event loop that opened them.
        engine_kwargs["poolclass"] = NullPool
elif "asyncpg" in DATABASE_URL:
    engine_kwargs["poolclass"] = NullPool

engine = create_async_engine(DATABASE_URL, **engine_kwargs)

async_session_factory = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        yield session


async def init_db() -> None:
    # Postgres schemas are managed by Alembic (`alembic upgrade head`);
    # SQLite dev/test databases get their tables created directly.
    dialect = engine.dialect.name
    if "postgres" in dialect:
        return

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
