"""
Admin API for publishing and retracting releases.

These routes are unauthenticated; an auth dependency belongs on ``router``.
"""

from fastapi import APIRouter, Depends

from app_deps import get_registry
from release_models import CreateReleaseResponse, MessageResponse, ReleaseCreate
from release_service import ReleaseRegistry

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/release", response_model=CreateReleaseResponse, status_code=201)
async def create_release(
    release: ReleaseCreate,
    registry: ReleaseRegistry = Depends(get_registry),
):
    """Create a release record and mark it as the latest one."""
    created = await registry.create_release(release)
    return CreateReleaseResponse(message="Release created", release=created)


@router.delete("/release/{release_id}", response_model=MessageResponse)
async def delete_release(
    release_id: str,
    registry: ReleaseRegistry = Depends(get_registry),
):
    """Delete a release along with its APK and icon on Cloudinary."""
    await registry.delete_release(release_id)
    return MessageResponse(message="Release deleted")
