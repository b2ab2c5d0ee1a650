"""
MongoDB connection module for the Center App Store backend.

The client is built once at startup and handed to the services that need
it. Connection is lazy, so the backend starts even if MongoDB is
unreachable; the health check reports the real state.
"""

import logging

import pymongo
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

logger = logging.getLogger(__name__)

RELEASES = "releases"
DOWNLOADS = "downloads"
COUNTERS = "counters"


def create_mongo_client(uri: str) -> AsyncIOMotorClient:
    """Create a MongoDB client.

    No network call happens until the first operation.
    """
    logger.info(f"Initialising MongoDB client with URI: {uri}")
    return AsyncIOMotorClient(uri, serverSelectionTimeoutMS=5000, tz_aware=True)


def get_database(client: AsyncIOMotorClient, db_name: str) -> AsyncIOMotorDatabase:
    return client[db_name]


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create the indexes used by the release and download queries (idempotent)."""
    releases = db[RELEASES]
    await releases.create_index(
        [
            ("isActive", pymongo.ASCENDING),
            ("isLatest", pymongo.ASCENDING),
            ("versionCode", pymongo.DESCENDING),
        ],
        name="active_latest_version_code",
    )
    await releases.create_index(
        [("versionCode", pymongo.DESCENDING)], name="version_code_desc"
    )
    await releases.create_index(
        [("sequence", pymongo.DESCENDING)], name="sequence_desc"
    )

    downloads = db[DOWNLOADS]
    await downloads.create_index(
        [("downloadedAt", pymongo.DESCENDING)], name="downloaded_at_desc"
    )
    await downloads.create_index([("version", pymongo.ASCENDING)], name="version")
    await downloads.create_index([("releaseId", pymongo.ASCENDING)], name="release_id")


async def check_mongo_connection(client: AsyncIOMotorClient) -> bool:
    """Check if MongoDB is reachable by sending a ping.

    Returns True if connected, False otherwise. Never raises.
    """
    try:
        await client.admin.command("ping")
        return True
    except Exception as e:
        logger.warning(f"MongoDB connection check failed: {e}")
        return False
