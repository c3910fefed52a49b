"""Database module with async SQLAlchemy engine and session management."""

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from .logging import get_logger

logger = get_logger(__name__)

# SQLAlchemy base for models
Base = declarative_base()


def is_memory_sqlite(db_url: str) -> bool:
    """True for ``sqlite://`` and ``:memory:`` style URLs."""
    url = make_url(db_url)
    if url.get_backend_name() != "sqlite":
        return False
    return url.database in (None, "", ":memory:") or url.query.get("mode") == "memory"


def build_engine(db_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create the async engine for ``db_url``.

    In-memory SQLite lives inside one connection, so it gets a StaticPool and
    is only safe for one session at a time (tests). File-backed SQLite keeps
    the default pool: every session owns its connection and SQLite's own
    locking serialises writers.
    """
    if is_memory_sqlite(db_url):
        return create_async_engine(
            db_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    if make_url(db_url).get_backend_name() == "sqlite":
        return create_async_engine(
            db_url,
            echo=echo,
            connect_args={"timeout": 30},
        )

    return create_async_engine(
        db_url,
        echo=echo,
        pool_size=10,
        max_overflow=20,
    )


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@retry(
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=8.0),
    retry=retry_if_exception_type((OperationalError, OSError)),
    reraise=True
)
async def init_db(engine: AsyncEngine) -> None:
    """Wait until the database accepts connections."""
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("Database connection established")


async def check_db(engine: AsyncEngine) -> bool:
    """Single connectivity probe used by the health endpoint."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except (OperationalError, OSError) as e:
        logger.error(f"Database health check failed: {e}")
        return False


async def create_all(engine: AsyncEngine) -> None:
    """Create all tables in the database."""
    # Register models on the metadata
    from . import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_all(engine: AsyncEngine) -> None:
    """Drop all tables in the database."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
