#!/usr/bin/env python3
"""
Create indexes for the ``releases`` and ``downloads`` collections in MongoDB.

Usage:
    MONGODB_URI="mongodb+srv://..." python scripts/create_release_indexes.py

Defaults to mongodb://localhost:27017 / center_app_store if env vars are not set.
"""

import asyncio
import logging
import sys
from pathlib import Path

# Allow imports from backend/app/
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "backend" / "app"))

from app_config import load_settings
from mongodb import DOWNLOADS, RELEASES, create_mongo_client, ensure_indexes, get_database

logging.basicConfig(level=logging.INFO, format="%(levelname)s  %(message)s")
logger = logging.getLogger(__name__)


async def main():
    settings = load_settings()
    logger.info("Connecting to MongoDB...")
    client = create_mongo_client(settings.mongodb_uri)
    db = get_database(client, settings.mongodb_database)

    logger.info("Creating indexes on '%s'...", settings.mongodb_database)
    await ensure_indexes(db)

    logger.info("Done. Indexes:")
    for name in (RELEASES, DOWNLOADS):
        async for idx in db[name].list_indexes():
            logger.info("  - %s.%s", name, idx["name"])

    client.close()


if __name__ == "__main__":
    asyncio.run(main())
