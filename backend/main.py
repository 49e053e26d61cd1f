"""Drop Links — Main application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.blobs.controllers.blobs_controller import router as blobs_router
from api.download.controllers.download_controller import router as download_router
from api.files.controllers.files_controller import router as files_router
from api.upload.controllers.upload_controller import router as upload_router
from cleanup import cleanup_loop
from config import CLEANUP_INTERVAL_SECONDS, CORS_ORIGINS, LOG_LEVEL, SIGNING_SECRET_GENERATED
from errors import StoreError

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def run_migrations():
    """Run Alembic migrations on startup."""
    try:
        alembic_ini = Path(__file__).parent / "alembic.ini"
        alembic_cfg = Config(str(alembic_ini))
        alembic_cfg.set_main_option(
            "script_location", str(Path(__file__).parent / "db_migrations")
        )
        alembic_cfg.attributes["configure_logger"] = False
        command.upgrade(alembic_cfg, "head")
    except Exception as e:
        logger.warning("Migration failed, creating tables directly: %s", e)
        from database import init_db

        init_db()


@asynccontextmanager
async def lifespan(app: FastAPI):
    run_migrations()
    if SIGNING_SECRET_GENERATED:
        logger.warning("SIGNING_SECRET not set; signed URLs only work within this process")

    cleanup_task = None
    if CLEANUP_INTERVAL_SECONDS > 0:
        cleanup_task = asyncio.create_task(cleanup_loop(CLEANUP_INTERVAL_SECONDS))

    yield

    if cleanup_task:
        cleanup_task.cancel()


app = FastAPI(title="Drop Links", version="0.1.0", lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in CORS_ORIGINS.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error("Store error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={
            "detail": {
                "reason": "INFRA_ERROR",
                "message": "Storage is temporarily unavailable",
                "retryable": exc.retryable,
            }
        },
    )


# Router registration order matters:
# 1. Health check (before catch-all routes)
@app.get("/api/health")
async def health():
    return {"status": "ok"}


# 2. API routers (prefixed — match first)
app.include_router(files_router)
app.include_router(blobs_router)

# 3. Upload (POST /api/upload, catch-all PUT /{filename})
app.include_router(upload_router)

# 4. Download (catch-all GET /{token} and /{token}/{filename})
app.include_router(download_router)
