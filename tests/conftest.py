"""Test configuration and fixtures."""

from typing import List, Tuple

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from app_config import Settings
from app_errors import ObjectStoreError
from app_server import create_app
from object_store import RELEASES_FOLDER, StoredObject
from release_service import DownloadTracker, ReleaseRegistry, StatsAggregator

TEST_DATABASE = "center_app_store_test"


class FakeObjectStore:
    """In-memory stand-in for the Cloudinary store."""

    def __init__(self):
        self.configured = True
        self.uploaded: List[Tuple[str, str, str]] = []
        self.deleted: List[Tuple[str, str]] = []
        self.failing_ids = set()
        self.failing_paths = set()

    async def upload(self, path, *, public_id, folder=RELEASES_FOLDER, tags=None, resource_type="raw"):
        if path in self.failing_paths:
            raise ObjectStoreError(f"Upload failed: {path}")
        object_id = f"{folder}/{public_id}"
        self.uploaded.append((path, object_id, resource_type))
        return StoredObject(
            url=f"https://res.cloudinary.com/demo/{resource_type}/upload/{object_id}",
            object_id=object_id,
            size=None,
        )

    async def delete(self, object_id, resource_type="image"):
        if object_id in self.failing_ids:
            raise ObjectStoreError(f"Delete failed for {object_id}: error")
        self.deleted.append((object_id, resource_type))


@pytest.fixture
def mongo_client():
    return AsyncMongoMockClient()


@pytest.fixture
def db(mongo_client):
    return mongo_client[TEST_DATABASE]


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def registry(db, object_store):
    return ReleaseRegistry(db, object_store)


@pytest.fixture
def tracker(db):
    return DownloadTracker(db)


@pytest.fixture
def stats(db):
    return StatsAggregator(db)


@pytest.fixture
def release_fields():
    """Build the body of a release creation request."""

    def build(version="1.0.0", version_code=1, **extra):
        fields = {
            "version": version,
            "versionCode": version_code,
            "apkUrl": f"https://res.cloudinary.com/demo/raw/upload/center-app/releases/center-app-v{version}",
            "apkObjectId": f"center-app/releases/center-app-v{version}",
            "apkSize": 24 * 1024 * 1024,
        }
        fields.update(extra)
        return fields

    return build


@pytest.fixture
def settings():
    return Settings(
        mongodb_database=TEST_DATABASE,
        cloudinary_cloud_name="demo",
        cloudinary_api_key="key",
        cloudinary_api_secret="secret",
    )


@pytest.fixture
def client(settings, mongo_client, object_store):
    app = create_app(settings, mongo_client=mongo_client, object_store=object_store)
    with TestClient(app) as test_client:
        yield test_client
