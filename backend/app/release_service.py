"""
Release registry, download tracker and download stats.

All three work on an injected MongoDB database; the registry also gets the
object store used to remove artifacts of deleted releases.

Only one release is advertised as latest at a time, the one with the highest
versionCode. A new release must carry a versionCode above every stored one.
Every creation also takes a publication sequence number from the ``counters``
collection, inserts itself as latest, then clears the flag on any latest
release ranking lower by (versionCode, sequence). A creation that finds a
higher-ranked latest release already present steps down itself, so concurrent
creations settle on a single latest release.
"""

import logging
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Union

import pydantic
import pymongo
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from app_errors import NotFound, StorageError, ValidationError
from mongodb import COUNTERS, DOWNLOADS, RELEASES
from release_models import (
    DownloadModel,
    DownloadStats,
    RecentDownload,
    ReleaseCreate,
    ReleaseModel,
    ReleaseSummary,
    VersionCount,
    utcnow,
)

logger = logging.getLogger(__name__)

RELEASE_SEQUENCE = "release_sequence"
DEFAULT_LIST_LIMIT = 10
RECENT_DOWNLOADS = 10


class DownloadTicket(NamedTuple):
    download_url: str
    version: str
    size: Optional[int]


def _object_id(value: str, what: str) -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFound(f"{what} {value} not found") from None


def _describe(error: pydantic.ValidationError) -> str:
    problems = []
    for item in error.errors():
        field = ".".join(str(part) for part in item["loc"]) or "body"
        problems.append(f"{field}: {item['msg']}")
    return "Invalid release: " + "; ".join(problems)


def release_from_doc(doc: Mapping[str, Any]) -> ReleaseModel:
    data = dict(doc)
    data["id"] = str(data.pop("_id"))
    return ReleaseModel.model_validate(data)


def download_from_doc(doc: Mapping[str, Any]) -> DownloadModel:
    data = dict(doc)
    data["id"] = str(data.pop("_id"))
    data["releaseId"] = str(data["releaseId"])
    return DownloadModel.model_validate(data)


class ReleaseRegistry:
    def __init__(self, db: AsyncIOMotorDatabase, object_store):
        self._releases = db[RELEASES]
        self._counters = db[COUNTERS]
        self._object_store = object_store

    async def _next_sequence(self) -> int:
        counter = await self._counters.find_one_and_update(
            {"_id": RELEASE_SEQUENCE},
            {"$inc": {"value": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return counter["value"]

    async def check_version_code(self, version_code: int) -> None:
        """Raise ValidationError unless version_code is above every stored release's."""
        try:
            doc = await self._releases.find_one(
                {},
                sort=[("versionCode", pymongo.DESCENDING)],
                projection={"versionCode": 1},
            )
        except PyMongoError as e:
            logger.error(f"Failed to read highest versionCode: {e}", exc_info=True)
            raise StorageError(f"Release storage unavailable: {e}") from e

        highest = doc.get("versionCode") if doc else None
        if highest is not None and version_code <= highest:
            raise ValidationError(
                f"versionCode {version_code} must be greater than {highest}"
            )

    async def create_release(
        self, fields: Union[ReleaseCreate, Mapping[str, Any]]
    ) -> ReleaseModel:
        """Publish a release and make it the latest one.

        Raises ValidationError when a required field (version, versionCode,
        apkUrl, apkObjectId) is missing or malformed, or when versionCode is
        not above every existing release's.
        """
        if not isinstance(fields, ReleaseCreate):
            try:
                fields = ReleaseCreate.model_validate(fields)
            except pydantic.ValidationError as e:
                raise ValidationError(_describe(e)) from e

        now = utcnow()
        data = fields.model_dump()
        data["release_date"] = fields.release_date or now
        release = ReleaseModel.model_validate(
            {
                **data,
                "download_count": 0,
                "is_latest": True,
                "is_active": True,
                "created_at": now,
                "updated_at": now,
            }
        )
        version_code = release.version_code

        try:
            await self.check_version_code(version_code)

            sequence = await self._next_sequence()
            doc = release.model_dump(by_alias=True, exclude={"id"})
            doc["sequence"] = sequence
            result = await self._releases.insert_one(doc)
            release_id = result.inserted_id

            await self._releases.update_many(
                {
                    "_id": {"$ne": release_id},
                    "isLatest": True,
                    "$or": [
                        {"versionCode": {"$lt": version_code}},
                        {"versionCode": version_code, "sequence": {"$lt": sequence}},
                        {"versionCode": version_code, "sequence": {"$exists": False}},
                    ],
                },
                {"$set": {"isLatest": False, "updatedAt": now}},
            )

            outranked = await self._releases.find_one(
                {
                    "_id": {"$ne": release_id},
                    "isLatest": True,
                    "$or": [
                        {"versionCode": {"$gt": version_code}},
                        {"versionCode": version_code, "sequence": {"$gt": sequence}},
                    ],
                },
                projection={"_id": 1},
            )
            if outranked is not None:
                # A concurrent publication with a higher versionCode got in first
                await self._releases.update_one(
                    {"_id": release_id},
                    {"$set": {"isLatest": False, "updatedAt": utcnow()}},
                )

            stored = await self._releases.find_one({"_id": release_id})
        except PyMongoError as e:
            logger.error(f"Failed to create release {fields.version}: {e}", exc_info=True)
            raise StorageError(f"Release storage unavailable: {e}") from e

        release = release_from_doc(stored)
        logger.info(
            f"Created release {release.version} (versionCode={release.version_code}, "
            f"id={release.id}, is_latest={release.is_latest})"
        )
        return release

    async def get_latest(self) -> ReleaseModel:
        try:
            doc = await self._releases.find_one(
                {"isActive": True, "isLatest": True},
                sort=[("versionCode", pymongo.DESCENDING)],
            )
        except PyMongoError as e:
            logger.error(f"Failed to get latest release: {e}", exc_info=True)
            raise StorageError(f"Release storage unavailable: {e}") from e

        if doc is None:
            raise NotFound("No release available")
        return release_from_doc(doc)

    async def get_release(self, release_id: str) -> ReleaseModel:
        oid = _object_id(release_id, "Release")
        try:
            doc = await self._releases.find_one({"_id": oid})
        except PyMongoError as e:
            logger.error(f"Failed to get release {release_id}: {e}", exc_info=True)
            raise StorageError(f"Release storage unavailable: {e}") from e

        if doc is None:
            raise NotFound(f"Release {release_id} not found")
        return release_from_doc(doc)

    async def list_active(self, limit: int = DEFAULT_LIST_LIMIT) -> List[ReleaseModel]:
        """Active releases, highest versionCode first."""
        if limit < 1:
            raise ValidationError("limit must be at least 1")
        try:
            cursor = self._releases.find(
                {"isActive": True},
                sort=[("versionCode", pymongo.DESCENDING)],
                limit=limit,
            )
            return [release_from_doc(doc) async for doc in cursor]
        except PyMongoError as e:
            logger.error(f"Failed to list releases: {e}", exc_info=True)
            raise StorageError(f"Release storage unavailable: {e}") from e

    async def delete_release(self, release_id: str) -> None:
        """Retract a release, delete its artifacts, then drop the record.

        If an artifact cannot be deleted the record is kept, inactive, and
        ObjectStoreError propagates so the delete can be retried.
        """
        oid = _object_id(release_id, "Release")
        try:
            doc = await self._releases.find_one({"_id": oid})
            if doc is None:
                raise NotFound(f"Release {release_id} not found")

            await self._releases.update_one(
                {"_id": oid},
                {"$set": {"isActive": False, "isLatest": False, "updatedAt": utcnow()}},
            )
        except PyMongoError as e:
            logger.error(f"Failed to retract release {release_id}: {e}", exc_info=True)
            raise StorageError(f"Release storage unavailable: {e}") from e

        if doc.get("apkObjectId"):
            await self._object_store.delete(doc["apkObjectId"], resource_type="raw")
        if doc.get("iconObjectId"):
            await self._object_store.delete(doc["iconObjectId"], resource_type="image")

        try:
            await self._releases.delete_one({"_id": oid})
        except PyMongoError as e:
            logger.error(f"Failed to delete release {release_id}: {e}", exc_info=True)
            raise StorageError(f"Release storage unavailable: {e}") from e

        logger.info(f"Deleted release {doc.get('version')} ({release_id})")


class DownloadTracker:
    def __init__(self, db: AsyncIOMotorDatabase):
        self._releases = db[RELEASES]
        self._downloads = db[DOWNLOADS]

    async def record_download(
        self,
        release_id: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        country: Optional[str] = None,
    ) -> DownloadTicket:
        """Count one download of a release and log the event.

        Returns where the APK lives; the binary itself is served by the
        object store.
        """
        oid = _object_id(release_id, "Release")
        try:
            doc = await self._releases.find_one_and_update(
                {"_id": oid},
                {"$inc": {"downloadCount": 1}},
                return_document=ReturnDocument.AFTER,
            )
            if doc is None:
                raise NotFound(f"Release {release_id} not found")

            download = DownloadModel(
                release_id=release_id,
                version=doc["version"],
                ip_address=ip_address,
                user_agent=user_agent,
                country=country,
            )
            record = download.model_dump(by_alias=True, exclude={"id"})
            record["releaseId"] = oid
            await self._downloads.insert_one(record)
        except PyMongoError as e:
            logger.error(f"Failed to record download of {release_id}: {e}", exc_info=True)
            raise StorageError(f"Download storage unavailable: {e}") from e

        logger.info(
            f"Download of {doc['version']} recorded (total {doc['downloadCount']})"
        )
        return DownloadTicket(
            download_url=doc["apkUrl"],
            version=doc["version"],
            size=doc.get("apkSize"),
        )


class StatsAggregator:
    def __init__(self, db: AsyncIOMotorDatabase):
        self._releases = db[RELEASES]
        self._downloads = db[DOWNLOADS]

    async def _release_summaries(self, ids: List[ObjectId]) -> Dict[ObjectId, ReleaseSummary]:
        if not ids:
            return {}
        summaries = {}
        cursor = self._releases.find(
            {"_id": {"$in": ids}}, projection={"version": 1, "appName": 1}
        )
        async for doc in cursor:
            summaries[doc["_id"]] = ReleaseSummary(
                id=str(doc["_id"]),
                version=doc["version"],
                app_name=doc.get("appName", "Center App"),
            )
        return summaries

    async def get_download_stats(self) -> DownloadStats:
        try:
            total = await self._downloads.count_documents({})

            pipeline = [
                {"$group": {"_id": "$version", "count": {"$sum": 1}}},
                {"$sort": {"count": -1, "_id": 1}},
            ]
            by_version = [
                VersionCount(version=row["_id"], count=row["count"])
                async for row in self._downloads.aggregate(pipeline)
            ]

            cursor = self._downloads.find(
                {},
                sort=[("downloadedAt", pymongo.DESCENDING), ("_id", pymongo.DESCENDING)],
                limit=RECENT_DOWNLOADS,
            )
            docs = [doc async for doc in cursor]
            summaries = await self._release_summaries(
                list({doc["releaseId"] for doc in docs})
            )
        except PyMongoError as e:
            logger.error(f"Failed to compute download stats: {e}", exc_info=True)
            raise StorageError(f"Download storage unavailable: {e}") from e

        recent = [
            RecentDownload(
                **download_from_doc(doc).model_dump(),
                release=summaries.get(doc["releaseId"]),
            )
            for doc in docs
        ]
        return DownloadStats(total=total, by_version=by_version, recent=recent)
