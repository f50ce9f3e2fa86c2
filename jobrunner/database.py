# jobrunner/database.py

from pathlib import Path
import os

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from jobrunner.core.config import get_settings

settings = get_settings()

# Use environment variable directly if settings is empty
database_url = settings.DATABASE_URL or os.environ.get('DATABASE_URL', '')
if not database_url:
    raise ValueError("DATABASE_URL is not set in environment variables")

# Convert postgresql:// to postgresql+asyncpg:// for async support
if database_url.startswith('postgresql://'):
    database_url = database_url.replace('postgresql://', 'postgresql+asyncpg://', 1)


def _engine_options(url: str) -> dict:
    if url.startswith('sqlite'):
        # Local/dev database: make sure the file's directory exists
        db_path = make_url(url).database
        if db_path and db_path != ':memory:':
            Path(db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        # One connection per session, never reused across event loops
        # (CLI runs and tests each start their own); wait on write locks.
        return {"poolclass": NullPool, "connect_args": {"timeout": 30}}

    return {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    }


engine = create_async_engine(
    database_url,
    echo=settings.DEBUG,
    future=True,
    **_engine_options(database_url)
)


async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)

Base = declarative_base()


async def create_tables() -> None:
    """Create every table registered on Base (local/dev convenience, alembic in production)."""
    from jobrunner import models  # noqa: F401  (registers models on Base)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
