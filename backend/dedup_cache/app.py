"""FastAPI application setup for Dedup Cache."""

from __future__ import annotations

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dedup_cache.api.dependencies import get_app_settings
from dedup_cache.api.routes_admin import router as admin_router
from dedup_cache.api.routes_files import router as files_router
from dedup_cache.api.routes_ingest import router as ingest_router
from dedup_cache.core.config import Settings, get_settings
from dedup_cache.core.errors import NotFoundError, ValidationError
from dedup_cache.core.logging import configure_logging, get_logger
from dedup_cache.core.metrics import REQUEST_COUNT
from dedup_cache.ingest.coordinator import IngestCoordinator
from dedup_cache.models.dto import ErrorResponse
from dedup_cache.processing.jobs import ProcessingJob, SimulatedProcessingJob
from dedup_cache.processing.watchdog import ProcessingWatchdog
from dedup_cache.processing.worker import ProcessingWorker
from dedup_cache.store import RecordStore, create_store

logger = get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    store: RecordStore | None = None,
    job: ProcessingJob | None = None,
) -> FastAPI:
    """Build the app; services are created on startup and owned by the app.

    A ``store`` passed in by the caller is left open on shutdown.
    """
    app = FastAPI(
        title="Dedup Cache",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://127.0.0.1:3000",
            "http://localhost:3000",
        ],
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    app.include_router(ingest_router, prefix="", tags=["ingest"])
    app.include_router(files_router, prefix="/files", tags=["files"])
    app.include_router(admin_router, prefix="", tags=["admin"])

    @app.on_event("startup")
    def startup() -> None:
        resolved = settings or get_settings()
        configure_logging(resolved.log_level, use_json=resolved.log_json)
        record_store = store or create_store(resolved)
        worker = ProcessingWorker(
            store=record_store,
            job=job or SimulatedProcessingJob(simulate_delay=resolved.simulate_processing_delay),
            max_workers=resolved.processing_workers,
            max_attempts=resolved.processing_max_attempts,
            retry_backoff_seconds=resolved.processing_retry_backoff_seconds,
        )
        watchdog = ProcessingWatchdog(
            store=record_store,
            timeout_seconds=resolved.processing_timeout_seconds,
            interval_seconds=resolved.watchdog_interval_seconds,
        )
        app.state.settings = resolved
        app.state.store = record_store
        app.state.worker = worker
        app.state.watchdog = watchdog
        app.state.coordinator = IngestCoordinator(
            store=record_store,
            worker=worker,
            max_upload_bytes=resolved.max_upload_bytes,
            default_list_limit=resolved.list_default_limit,
        )
        watchdog.start()
        worker.resubmit_pending()
        logger.info("Dedup Cache started with %s store", resolved.store_backend)

    @app.on_event("shutdown")
    def shutdown() -> None:
        app.state.watchdog.stop()
        app.state.worker.shutdown(wait=True)
        if store is None:
            app.state.store.close()

    @app.middleware("http")
    async def count_requests(request: Request, call_next):
        response = await call_next(request)
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
        REQUEST_COUNT.labels(endpoint=endpoint, method=request.method, status=str(response.status_code)).inc()
        return response

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        body = ErrorResponse(error=exc.message, reason=exc.reason.value)
        return JSONResponse(status_code=400, content=body.model_dump())

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content=ErrorResponse(error=str(exc)).model_dump())

    @app.get("/health", tags=["admin"])
    def health(app_settings: Settings = Depends(get_app_settings)) -> dict[str, object]:
        """Simple liveness check."""
        return {"ok": True, "store": app_settings.store_backend}

    return app


app = create_app()
