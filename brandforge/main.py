import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from brandforge import __version__
from brandforge.config import VideoConfig, settings
from brandforge.database import get_session_factory, init_db
from brandforge.providers.registry import ProviderRegistry
from brandforge.routers import admin_keys, video
from brandforge.services.blob_storage import BlobStore
from brandforge.services.encryption_validator import validate_encryption_key

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database, providers and blob storage on startup."""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await init_db()

    config = VideoConfig.from_settings(settings)
    app.state.video_config = config
    app.state.registry = ProviderRegistry.from_config(config)
    app.state.blob_store = BlobStore.from_config(config)
    if app.state.blob_store is None:
        logger.info("Blob storage not configured; finished videos stay at provider URLs")

    # Catch an ENCRYPTION_KEY change before every generation request fails on decrypt
    encryption_status = await validate_encryption_key(get_session_factory())
    app.state.encryption_status = encryption_status
    if encryption_status["status"] == "error":
        logger.error(
            f"ENCRYPTION_KEY check failed: {encryption_status.get('error')}. "
            "Restore the original key or re-add the provider keys."
        )
    elif encryption_status["status"] == "warning":
        logger.warning(encryption_status.get("message", "Encryption validation warning"))

    yield


app = FastAPI(
    title="Brandforge",
    description="Brand video generation service",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(video.router)
app.include_router(admin_keys.router)


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint with encryption validation status."""
    encryption_status = getattr(request.app.state, "encryption_status", None)
    registry = getattr(request.app.state, "registry", None)

    if encryption_status and encryption_status.get("status") == "error":
        overall_status = "degraded"
    else:
        overall_status = "healthy"

    return {
        "status": overall_status,
        "service": "brandforge",
        "version": __version__,
        "providers": registry.names if registry else [],
        "blobStorage": getattr(request.app.state, "blob_store", None) is not None,
        "checks": {
            "encryption": encryption_status or {"status": "unknown"},
        },
    }


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unhandled errors and answer with a generic JSON 500."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {type(exc).__name__}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
