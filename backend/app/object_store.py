"""
Cloudinary object store for release artifacts (APKs, icons, screenshots).

The Cloudinary SDK is blocking, so every call runs in a worker thread.
"""

import asyncio
import logging
from typing import List, NamedTuple, Optional

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from app_errors import ObjectStoreError

logger = logging.getLogger(__name__)

RELEASES_FOLDER = "center-app/releases"
RELEASE_TAGS = ["apk", "android", "center-app"]


def release_public_id(version: str) -> str:
    return f"center-app-v{version}"


class StoredObject(NamedTuple):
    url: str
    object_id: str
    size: Optional[int]


class CloudinaryStore:
    """Upload and delete artifacts on Cloudinary."""

    def __init__(
        self,
        cloud_name: Optional[str],
        api_key: Optional[str],
        api_secret: Optional[str],
    ):
        self.configured = bool(cloud_name and api_key and api_secret)
        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True,
        )

    async def upload(
        self,
        path: str,
        *,
        public_id: str,
        folder: str = RELEASES_FOLDER,
        tags: Optional[List[str]] = None,
        resource_type: str = "raw",
    ) -> StoredObject:
        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.upload,
                path,
                resource_type=resource_type,
                folder=folder,
                public_id=public_id,
                tags=tags or [],
            )
        except CloudinaryError as e:
            logger.error(f"Cloudinary upload of {path} failed: {e}", exc_info=True)
            raise ObjectStoreError(f"Upload failed: {e}") from e

        logger.info(f"Uploaded {path} as {result['public_id']}")
        return StoredObject(
            url=result["secure_url"],
            object_id=result["public_id"],
            size=result.get("bytes"),
        )

    async def delete(self, object_id: str, resource_type: str = "image") -> None:
        """Delete an artifact. An already missing artifact counts as deleted."""
        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.destroy,
                object_id,
                resource_type=resource_type,
            )
        except CloudinaryError as e:
            logger.error(f"Cloudinary delete of {object_id} failed: {e}", exc_info=True)
            raise ObjectStoreError(f"Delete failed for {object_id}: {e}") from e

        outcome = result.get("result")
        if outcome not in ("ok", "not found"):
            raise ObjectStoreError(f"Delete failed for {object_id}: {outcome}")
        logger.info(f"Deleted {resource_type} artifact {object_id} ({outcome})")
