"""
Center App Store API.

Builds the FastAPI app: MongoDB and Cloudinary clients are created once in
the lifespan and kept on ``app.state``; routers get the services through
the dependencies in ``app_deps``.

Run with ``python app_server.py`` or ``uvicorn --factory app_server:create_app``.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import admin_routes
import release_routes
from app_config import Settings, load_settings
from app_errors import AppStoreError
from mongodb import check_mongo_connection, create_mongo_client, ensure_indexes, get_database
from object_store import CloudinaryStore

logger = logging.getLogger(__name__)

SERVICE_NAME = "Center App Store API"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppStoreError)
    async def app_store_error(request: Request, exc: AppStoreError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        problems = []
        for item in exc.errors():
            field = ".".join(str(part) for part in item["loc"] if part != "body")
            problems.append(f"{field or 'body'}: {item['msg']}")
        return _error(400, "Invalid request: " + "; ".join(problems))

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _error(404, "Route not found")
        return _error(exc.status_code, str(exc.detail))

    # Registered before CORSMiddleware so it runs inside it and 500s keep CORS headers
    @app.middleware("http")
    async def unhandled_error(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
            return _error(500, "Internal server error")


def create_app(
    settings: Optional[Settings] = None,
    mongo_client=None,
    object_store=None,
) -> FastAPI:
    """Create the API.

    ``mongo_client`` and ``object_store`` replace the real MongoDB and
    Cloudinary clients when given; a passed-in client is not closed on
    shutdown.
    """
    settings = settings or load_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = mongo_client
        if client is None:
            client = create_mongo_client(settings.mongodb_uri)
        app.state.settings = settings
        app.state.mongo_client = client
        app.state.db = get_database(client, settings.mongodb_database)
        app.state.object_store = object_store
        if object_store is None:
            app.state.object_store = CloudinaryStore(
                settings.cloudinary_cloud_name,
                settings.cloudinary_api_key,
                settings.cloudinary_api_secret,
            )

        missing = settings.missing_cloudinary()
        if missing:
            logger.warning(f"Cloudinary not configured, missing: {', '.join(missing)}")

        try:
            await ensure_indexes(app.state.db)
        except PyMongoError as e:
            logger.warning(f"Could not create indexes, MongoDB unreachable? {e}")

        logger.info(
            f"{SERVICE_NAME} ready (database={settings.mongodb_database}, "
            f"frontend={settings.frontend_url})"
        )
        yield

        if mongo_client is None:
            client.close()

    app = FastAPI(title=SERVICE_NAME, lifespan=lifespan)
    _register_error_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health", tags=["system"])
    async def health(request: Request):
        """Liveness plus the state of MongoDB and Cloudinary."""
        connected = await check_mongo_connection(request.app.state.mongo_client)
        configured = getattr(request.app.state.object_store, "configured", False)
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "database": "connected" if connected else "disconnected",
            "cloudinary": "configured" if configured else "not configured",
        }

    app.include_router(release_routes.router)
    app.include_router(admin_routes.router)
    return app


if __name__ == "__main__":
    import uvicorn

    settings = load_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
