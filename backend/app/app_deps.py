"""
FastAPI dependencies handing the startup-built clients to the services.
"""

from fastapi import Request

from release_service import DownloadTracker, ReleaseRegistry, StatsAggregator


def get_registry(request: Request) -> ReleaseRegistry:
    state = request.app.state
    return ReleaseRegistry(state.db, state.object_store)


def get_tracker(request: Request) -> DownloadTracker:
    return DownloadTracker(request.app.state.db)


def get_stats(request: Request) -> StatsAggregator:
    return StatsAggregator(request.app.state.db)
