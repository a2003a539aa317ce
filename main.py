import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from routes.report_route import router as report_router
from services.image_normalizer import ImageNormalizer
from utils.artifact_cleaner import ArtifactCleaner
from utils.database_init import AsyncDatabase
from utils.logging_config import configure_logging
from utils.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)


def _build_lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan manager to initialize:
          - the shared database handle (and the `reports` table)
          - the optional image normalizer and its upload directory
          - the optional orphaned-artifact sweeper
        and attach them to `app.state`.
        """
        db = AsyncDatabase(settings.database_path)
        app.state.db = db

        # Bootstrap failure is not fatal; inserts will fail and surface as 500.
        try:
            await db.ensure_schema()
        except Exception:  # pylint: disable=broad-exception-caught
            LOGGER.exception("Error creating table 'reports' in %s", settings.database_path)

        app.state.image_normalizer = None
        if settings.image_uploads_enabled:
            settings.upload_dir.mkdir(parents=True, exist_ok=True)
            app.state.image_normalizer = ImageNormalizer(
                settings.upload_dir,
                reference_prefix=settings.reference_prefix,
                max_dimension=settings.max_image_dimension,
                quality=settings.image_quality,
                max_upload_bytes=settings.max_upload_bytes,
            )

        sweeper: Optional[asyncio.Task] = None
        if settings.image_uploads_enabled and settings.orphan_sweep_interval_seconds > 0:
            cleaner = ArtifactCleaner(
                db,
                settings.upload_dir,
                reference_prefix=settings.reference_prefix,
                grace_seconds=settings.orphan_grace_seconds,
            )
            sweeper = asyncio.create_task(cleaner.run_periodic_cleanup(settings.orphan_sweep_interval_seconds))

        LOGGER.info(
            "Report service ready (image uploads %s)",
            "enabled" if settings.image_uploads_enabled else "disabled",
        )
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sweeper

    return lifespan


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTP errors with the `{message}` body used across the API."""
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)}, headers=exc.headers)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render path and query validation errors as `{message, errors}`."""
    errors = [
        {"field": str(err.get("loc", ("request",))[-1]), "message": err.get("msg", "Invalid value")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=422, content={"message": "Request parameters are invalid.", "errors": errors})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Incident Report Service", lifespan=_build_lifespan(settings))
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    # Artifacts are served as-is; the directory is created by the lifespan.
    if settings.image_uploads_enabled:
        app.mount(
            settings.uploads_route,
            StaticFiles(directory=settings.upload_dir, check_dir=False),
            name="uploads",
        )

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check reporting schema bootstrap and image stage status.
        """
        db = getattr(request.app.state, "db", None)
        return {
            "ok": True,
            "db_initialized": bool(db is not None and db.schema_ready),
            "image_uploads_enabled": getattr(request.app.state, "image_normalizer", None) is not None,
        }

    # Register application routers
    app.include_router(report_router)

    return app


app = create_app()
