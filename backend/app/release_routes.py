"""
Public release API: latest release, version list, download tracking and stats.
"""

from fastapi import APIRouter, Depends, Query, Request

from app_deps import get_registry, get_stats, get_tracker
from release_models import (
    DownloadResponse,
    DownloadStatsResponse,
    LatestReleaseResponse,
    ReleaseListResponse,
)
from release_service import (
    DEFAULT_LIST_LIMIT,
    DownloadTracker,
    ReleaseRegistry,
    StatsAggregator,
)

router = APIRouter(prefix="/api", tags=["releases"])


@router.get("/app/latest", response_model=LatestReleaseResponse)
async def get_latest_release(registry: ReleaseRegistry = Depends(get_registry)):
    """Get the release currently advertised to clients."""
    release = await registry.get_latest()
    return LatestReleaseResponse(release=release)


@router.get("/app/versions", response_model=ReleaseListResponse)
async def list_versions(
    limit: int = Query(DEFAULT_LIST_LIMIT, ge=1, le=50),
    registry: ReleaseRegistry = Depends(get_registry),
):
    """List active releases, newest versionCode first."""
    releases = await registry.list_active(limit)
    return ReleaseListResponse(total=len(releases), releases=releases)


@router.get("/app/download/{release_id}", response_model=DownloadResponse)
async def download_release(
    release_id: str,
    request: Request,
    tracker: DownloadTracker = Depends(get_tracker),
):
    """Record a download and return where the APK can be fetched."""
    ticket = await tracker.record_download(
        release_id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    return DownloadResponse(
        download_url=ticket.download_url,
        version=ticket.version,
        size=ticket.size,
    )


@router.get("/stats/downloads", response_model=DownloadStatsResponse)
async def download_stats(stats: StatsAggregator = Depends(get_stats)):
    return DownloadStatsResponse(stats=await stats.get_download_stats())
