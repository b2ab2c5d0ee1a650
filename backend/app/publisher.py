"""
Publish an APK: upload it (and an optional icon) to the object store, then
register the release so it becomes the latest one.
"""

import logging
import os
from typing import List, Optional

from app_errors import AppStoreError, ValidationError
from object_store import RELEASE_TAGS, release_public_id
from release_models import ReleaseModel
from release_service import ReleaseRegistry

logger = logging.getLogger(__name__)


async def publish_release(
    registry: ReleaseRegistry,
    object_store,
    apk_path: str,
    version: str,
    version_code: int,
    changelog: Optional[List[str]] = None,
    features: Optional[List[str]] = None,
    icon_path: Optional[str] = None,
) -> ReleaseModel:
    if not os.path.isfile(apk_path):
        raise ValidationError(f"APK file not found: {apk_path}")
    if icon_path and not os.path.isfile(icon_path):
        raise ValidationError(f"Icon file not found: {icon_path}")

    apk_size = os.path.getsize(apk_path)
    logger.info(f"APK size: {apk_size / (1024 * 1024):.2f} MB")

    # Cloudinary overwrites by public id, so reject a stale versionCode before uploading
    await registry.check_version_code(version_code)

    public_id = release_public_id(version)
    apk = await object_store.upload(
        apk_path, public_id=public_id, tags=RELEASE_TAGS, resource_type="raw"
    )
    logger.info(f"APK uploaded: {apk.url}")

    fields = {
        "version": version,
        "versionCode": version_code,
        "apkUrl": apk.url,
        "apkObjectId": apk.object_id,
        "apkSize": apk_size,
        "changelog": changelog or [],
        "features": features or [],
    }

    # (object_id, resource_type) of everything uploaded so far
    uploaded = [(apk.object_id, "raw")]
    try:
        if icon_path:
            icon = await object_store.upload(
                icon_path,
                public_id=f"{public_id}-icon",
                tags=RELEASE_TAGS,
                resource_type="image",
            )
            uploaded.append((icon.object_id, "image"))
            fields["iconUrl"] = icon.url
            fields["iconObjectId"] = icon.object_id

        return await registry.create_release(fields)
    except AppStoreError as e:
        logger.error(f"Publishing {version} failed, removing uploaded artifacts: {e.message}")
        await _remove_uploads(object_store, uploaded)
        raise


async def _remove_uploads(object_store, uploaded) -> None:
    for object_id, resource_type in uploaded:
        try:
            await object_store.delete(object_id, resource_type=resource_type)
        except AppStoreError as e:
            logger.warning(f"Orphaned {resource_type} artifact left on object store: {object_id} ({e.message})")
