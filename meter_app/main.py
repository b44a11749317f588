# meter_app/main.py

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from meter_app.core.config import settings
from meter_app.core.database import db, connect_to_mongo, close_mongo_connection
from meter_app.core.exceptions import MeterAppError
from meter_app.api import auth, media, readings

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(
    title="Water Meter Readings API",
    version="1.0.0",
    description="Meter photo upload, OCR reading and manual correction",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------
@app.exception_handler(MeterAppError)
async def meter_app_exception_handler(request: Request, exc: MeterAppError):
    logger.warning(
        f"{exc.http_status} {type(exc).__name__} on {request.method} {request.url.path}: {exc.message}"
    )
    content = {
        "success": False,
        "error": exc.message,
        "path": str(request.url.path),
        "method": request.method,
    }
    if exc.image_url:
        content["imageUrl"] = exc.image_url
    return JSONResponse(status_code=exc.http_status, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    content_type = request.headers.get("content-type", "")
    logger.warning(
        f"422 ValidationError on {request.method} {request.url.path} "
        f"(content-type={content_type}) errors={exc.errors()}"
    )
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "detail": exc.errors(),
            "path": str(request.url.path),
            "method": request.method,
        },
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled exception on {request.method} {request.url}")
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": str(exc) if settings.DEBUG else "Internal server error",
            "path": str(request.url.path),
            "method": request.method,
        },
    )

# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------
def _build_cors_origins() -> List[str]:
    origins = [
        # Local dev
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    if settings.FRONTEND_URL:
        origins.append(str(settings.FRONTEND_URL).strip().rstrip("/"))

    for o in settings.get_cors_origins():
        if o == "*":
            logger.warning("CORS_ORIGINS contains '*'. Ignoring '*' and using explicit allow-list.")
            continue
        origins.append(o)

    # de-dup
    merged: List[str] = []
    for o in origins:
        if o and o not in merged:
            merged.append(o)
    return merged


cors_origins = _build_cors_origins()
logger.info(f"CORS origins configured: {cors_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,     # Authorization Bearer token, not cookies
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Routers / media
# ---------------------------------------------------------------------------
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(readings.router, prefix="/api", tags=["readings"])

app.include_router(media.router, prefix="/" + settings.MEDIA_URL_PATH.strip("/"), tags=["media"])

# ---------------------------------------------------------------------------
# Startup / Shutdown
# ---------------------------------------------------------------------------
@app.on_event("startup")
async def on_startup():
    logger.info("Starting Water Meter Readings API...")

    try:
        await connect_to_mongo()
        logger.info("MongoDB connected")
    except Exception as e:
        logger.exception(f"MongoDB connection failed: {e}")

    logger.info(f"Startup complete. ENV={settings.ENVIRONMENT}")

@app.on_event("shutdown")
async def on_shutdown():
    await close_mongo_connection()
    logger.info("Shutdown complete")

# ---------------------------------------------------------------------------
# Root / Health
# ---------------------------------------------------------------------------
@app.get("/")
async def root():
    return {
        "message": "Water Meter Readings API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "docs": "/docs" if settings.DEBUG else None,
    }

@app.get("/health")
async def health_check():
    db_status = "unknown"
    try:
        await db.command("ping")
        db_status = "healthy"
    except Exception as e:
        db_status = f"error: {str(e)}"
        logger.error(f"DB health check failed: {e}")

    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.ENVIRONMENT,
        "services": {
            "database": db_status,
            "ocr_endpoint": settings.OCR_API_URL,
        },
    }
