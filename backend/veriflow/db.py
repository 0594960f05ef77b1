# backend/veriflow/db.py

import logging
import asyncio
from pathlib import Path

from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, AsyncEngine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import NullPool
import sqlalchemy

from .config import settings

logger = logging.getLogger("veriflow.db")

ALEMBIC_DIR = Path(__file__).resolve().parent.parent / "alembic"

# ---------------------------------------------------------
# Define Base (needed by Alembic)
# ---------------------------------------------------------
Base = declarative_base()


# ---------------------------------------------------------
# Engine + session maker factories
# (built once by the app lifespan and handed to the store)
# ---------------------------------------------------------
def build_engine(url: str = None, echo: bool = None) -> AsyncEngine:
    url = url or settings.DATABASE_URL
    kwargs = {
        "echo": bool(settings.DEBUG if echo is None else echo),
        "future": True,
    }
    if url.startswith("sqlite"):
        # aiosqlite connections are tied to the loop that opened them
        kwargs["poolclass"] = NullPool
    else:
        kwargs.update(pool_pre_ping=True, pool_recycle=180)
    return create_async_engine(url, **kwargs)


def build_session_maker(engine: AsyncEngine):
    return sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


def _create_and_stamp(sync_conn):
    Base.metadata.create_all(sync_conn)
    # record the schema as migrated so `alembic upgrade head` does not recreate it
    MigrationContext.configure(sync_conn).stamp(ScriptDirectory(str(ALEMBIC_DIR)), "head")


async def create_tables(engine: AsyncEngine):
    # models must be imported so they register on Base.metadata
    from .models import verification_record  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(_create_and_stamp)


# ---------------------------------------------------------
# DB readiness check for container startup
# ---------------------------------------------------------
async def wait_for_db(engine: AsyncEngine, max_retries: int = 8, delay: float = 2.0):
    """
    Wait for DB to accept connections before serving or migrating.
    """
    last_exc = None
    for attempt in range(1, max_retries + 1):
        try:
            async with engine.connect() as conn:
                await conn.execute(sqlalchemy.text("SELECT 1"))
                logger.info("Database connected (attempt %d)", attempt)
                return True

        except OperationalError as e:
            last_exc = e
            msg = str(e.__cause__ or e)

            if "password authentication failed" in msg.lower():
                logger.error("Database authentication failed: %s", msg)
                raise

            logger.warning(
                "DB not ready (attempt %d/%d): %s",
                attempt, max_retries, msg
            )
            await asyncio.sleep(delay)

    logger.error("Failed to connect to DB after %d retries. Last error: %s",
                 max_retries, last_exc)
    raise last_exc
