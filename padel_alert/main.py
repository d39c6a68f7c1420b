from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from padel_alert import __version__
from padel_alert.api.router import api_router
from padel_alert.config import get_settings
from padel_alert.db.database import init_db
from padel_alert.log import configure_logging
from padel_alert.scheduler import start_scheduler
from padel_alert.scheduler.runner import Scheduler

settings = get_settings()
scheduler: Optional[Scheduler] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global scheduler
    configure_logging(settings.log_level)
    logger.info(f"Starting PadelAlert {__version__}")
    init_db()

    scheduler = start_scheduler(settings)

    yield

    if scheduler:
        scheduler.stop()
        scheduler = None
    logger.info("Shutting down...")


# Disable interactive docs in production
docs_url = None if settings.is_production else "/docs"
redoc_url = None if settings.is_production else "/redoc"

app = FastAPI(
    title="PadelAlert API",
    description="Rules that watch Playtomic for new padel matches, classes and lessons",
    version=__version__,
    lifespan=lifespan,
    docs_url=docs_url,
    redoc_url=redoc_url,
)

# Configure CORS origins
default_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
if settings.cors_origins:
    cors_origins = [origin.strip() for origin in settings.cors_origins.split(",")]
else:
    cors_origins = default_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "X-User-Id"],
)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    return {"status": "ok", "version": __version__}


@app.get("/api/admin/status")
async def admin_status(x_admin_key: str = Header(None)):
    # Require admin key in production
    if settings.is_production:
        if not settings.admin_api_key:
            raise HTTPException(status_code=503, detail="Admin API not configured")
        if x_admin_key != settings.admin_api_key:
            raise HTTPException(status_code=401, detail="Invalid admin key")

    return {
        "scheduler_running": scheduler is not None and scheduler.running,
        "jobs": scheduler.jobs() if scheduler else [],
        "workers": scheduler.pool.stats() if scheduler else None,
    }
