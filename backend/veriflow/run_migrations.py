# run_migrations.py (wraps alembic call with wait_for_db)
import asyncio
import logging
from alembic import command
from alembic.config import Config
from veriflow.db import build_engine, wait_for_db

logging.basicConfig(level=logging.INFO)
log = logging.getLogger("run_migrations")

async def _wait():
    engine = build_engine()
    try:
        # will raise if auth fails
        await wait_for_db(engine, max_retries=8, delay=2.0)
    finally:
        await engine.dispose()

def run_migrations(config_path: str = "alembic.ini"):
    asyncio.run(_wait())
    # alembic's env.py runs its own sync engine, outside the event loop
    cfg = Config(config_path)
    command.upgrade(cfg, "head")
    log.info("Migrations applied")

if __name__ == "__main__":
    run_migrations()
