"""
Drop every inventory table and recreate it from the current models.
Destroys all data; meant for local/dev databases.

Usage:  python reset_schema.py --yes
"""

import argparse
import asyncio
import logging

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("reset_schema")


async def reset():
    from inventory.database import engine
    from inventory.models import Base

    logger.info("dropping tables: %s", ", ".join(Base.metadata.tables))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    logger.info("schema recreated")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--yes", action="store_true", help="confirm dropping all data")
    args = parser.parse_args()
    if not args.yes:
        parser.error("refusing to drop tables without --yes")
    asyncio.run(reset())
