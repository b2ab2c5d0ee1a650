"""
Pydantic models for the release/download API.

Documents are stored in MongoDB with the same camelCase keys the API
exposes, so every model aliases its snake_case fields to camelCase.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScreenshotModel(CamelModel):
    url: Optional[str] = None
    object_id: Optional[str] = None
    caption: Optional[str] = None


class ReleaseCreate(CamelModel):
    """Fields accepted when publishing a release."""
    app_name: str = "Center App"
    version: str = Field(min_length=1)
    version_code: int
    release_date: Optional[datetime] = None
    apk_url: str = Field(min_length=1)
    apk_object_id: str = Field(min_length=1)
    apk_size: Optional[int] = Field(default=None, ge=0)
    changelog: List[str] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)
    screenshots: List[ScreenshotModel] = Field(default_factory=list)
    icon_url: Optional[str] = None
    icon_object_id: Optional[str] = None
    min_android_version: str = "5.0"
    target_android_version: str = "14"
    permissions: List[str] = Field(default_factory=list)
    package_name: str = "com.center.app"


class ReleaseModel(ReleaseCreate):
    """A single app release record in MongoDB."""
    id: Optional[str] = None
    release_date: datetime = Field(default_factory=utcnow)
    download_count: int = 0
    is_latest: bool = False
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DownloadModel(CamelModel):
    """One download event. Never modified once written."""
    id: Optional[str] = None
    release_id: str
    version: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    country: Optional[str] = None
    downloaded_at: datetime = Field(default_factory=utcnow)


class ReleaseSummary(CamelModel):
    id: str
    version: str
    app_name: str


class RecentDownload(DownloadModel):
    # None once the referenced release has been deleted
    release: Optional[ReleaseSummary] = None


class VersionCount(CamelModel):
    version: str
    count: int


class DownloadStats(CamelModel):
    total: int = 0
    by_version: List[VersionCount] = Field(default_factory=list)
    recent: List[RecentDownload] = Field(default_factory=list)


# ---------- Responses ----------

class LatestReleaseResponse(CamelModel):
    success: bool = True
    release: ReleaseModel


class ReleaseListResponse(CamelModel):
    success: bool = True
    total: int
    releases: List[ReleaseModel]


class DownloadResponse(CamelModel):
    success: bool = True
    download_url: str
    version: str
    size: Optional[int] = None
    message: str = "Download started"


class DownloadStatsResponse(CamelModel):
    success: bool = True
    stats: DownloadStats


class CreateReleaseResponse(CamelModel):
    success: bool = True
    message: str = "Release created"
    release: ReleaseModel


class MessageResponse(CamelModel):
    success: bool = True
    message: str
