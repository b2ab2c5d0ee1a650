#!/usr/bin/env python3
"""
Upload an APK to Cloudinary and register it as the latest release.

Usage:
    python scripts/upload_release.py path/to/app-release.apk \\
        --version 1.0.0 --version-code 1 \\
        --changelog "Modern interface" --feature "Geolocation" \\
        [--icon path/to/icon.png]

Reads MONGODB_URI, MONGODB_DATABASE and the CLOUDINARY_* variables from the
environment or backend/.env.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Allow imports from backend/app/
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "backend" / "app"))

from app_config import load_settings
from app_errors import AppStoreError
from mongodb import create_mongo_client, get_database
from object_store import CloudinaryStore
from publisher import publish_release
from release_service import ReleaseRegistry

logging.basicConfig(level=logging.INFO, format="%(levelname)s  %(message)s")
logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Publish a Center App release")
    parser.add_argument("apk", help="path to the release APK")
    parser.add_argument("--version", required=True, help="semantic version, e.g. 1.0.0")
    parser.add_argument("--version-code", type=int, required=True)
    parser.add_argument("--changelog", action="append", default=[], help="changelog entry (repeatable)")
    parser.add_argument("--feature", action="append", default=[], help="feature entry (repeatable)")
    parser.add_argument("--icon", help="optional icon image")
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    args = parse_args(argv)
    settings = load_settings()

    missing = settings.missing_cloudinary()
    if missing:
        logger.error(f"Cloudinary not configured, missing: {', '.join(missing)}")
        return 1

    logger.info(f"Center App - upload release {args.version} (code {args.version_code})")
    logger.info(f"APK path: {args.apk}")

    store = CloudinaryStore(
        settings.cloudinary_cloud_name,
        settings.cloudinary_api_key,
        settings.cloudinary_api_secret,
    )
    client = create_mongo_client(settings.mongodb_uri)
    registry = ReleaseRegistry(get_database(client, settings.mongodb_database), store)

    try:
        release = await publish_release(
            registry,
            store,
            args.apk,
            args.version,
            args.version_code,
            changelog=args.changelog,
            features=args.feature,
            icon_path=args.icon,
        )
    except AppStoreError as e:
        logger.error(f"Publishing failed: {e.message}")
        return 1
    finally:
        client.close()

    logger.info("Release created")
    logger.info(f"  id:      {release.id}")
    logger.info(f"  version: {release.version}")
    logger.info(f"  size:    {release.apk_size / (1024 * 1024):.2f} MB")
    logger.info(f"  url:     {release.apk_url}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
