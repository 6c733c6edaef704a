# backend/app/main.py

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.database import db, connect_to_mongo, close_mongo_connection
from app.core.errors import ExternalCapabilityFailure, PersistenceFailure, ValidationFailure

from app.api import consumption, dashboard, insights, leaderboard, weather

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(
    title="Econest API",
    version="1.0.0",
    description="Household utility tracking, CO₂ footprint and AI advice",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------
def _error_body(request: Request, detail: str, exc: Exception) -> dict:
    return {
        "detail": detail,
        "path": str(request.url.path),
        "method": request.method,
        "error": str(exc) if settings.DEBUG else None,
    }


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
            "detail": exc.errors(),
            "path": str(request.url.path),
            "method": request.method,
            "content_type": content_type,
        },
    )


@app.exception_handler(ValidationFailure)
async def validation_failure_handler(request: Request, exc: ValidationFailure):
    logger.warning(f"422 {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=422, content=_error_body(request, str(exc), exc))


@app.exception_handler(PersistenceFailure)
async def persistence_failure_handler(request: Request, exc: PersistenceFailure):
    logger.error(f"503 storage failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content=_error_body(request, "Storage unavailable", exc))


@app.exception_handler(ExternalCapabilityFailure)
async def external_failure_handler(request: Request, exc: ExternalCapabilityFailure):
    logger.error(f"502 upstream failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content=_error_body(request, "Upstream service failed", exc))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled exception on {request.method} {request.url}")
    return JSONResponse(status_code=500, content=_error_body(request, "Internal server error", exc))

# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------
def _build_cors_origins() -> List[str]:
    origins = [
        # Local dev
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    if settings.FRONTEND_URL:
        origins.append(str(settings.FRONTEND_URL).strip().rstrip("/"))

    for o in settings.get_cors_origins():
        o = (o or "").strip().rstrip("/")
        if not o:
            continue
        if o == "*":
            logger.warning("CORS_ORIGINS contains '*'. Ignoring '*' and using explicit allow-list.")
            continue
        origins.append(o)

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
# Routers
# ---------------------------------------------------------------------------
app.include_router(consumption.router, prefix="/api", tags=["consumption"])
app.include_router(insights.router, prefix="/api", tags=["insights"])
app.include_router(dashboard.router, prefix="/api", tags=["dashboard"])
app.include_router(leaderboard.router, prefix="/api/leaderboard", tags=["leaderboard"])
app.include_router(weather.router, prefix="/api/weather", tags=["weather"])

# ---------------------------------------------------------------------------
# Startup / Shutdown
# ---------------------------------------------------------------------------
@app.on_event("startup")
async def on_startup():
    logger.info("Starting Econest API...")

    try:
        await connect_to_mongo()
        logger.info("MongoDB connected")
    except Exception as e:
        logger.exception(f"MongoDB connection failed: {e}")

    logger.info(f"Startup complete. ENV={settings.ENVIRONMENT}")


@app.on_event("shutdown")
async def on_shutdown():
    try:
        await close_mongo_connection()
    except Exception as e:
        logger.warning(f"Mongo close failed: {e}")

    logger.info("Shutdown complete")

# ---------------------------------------------------------------------------
# Root / Health
# ---------------------------------------------------------------------------
@app.get("/")
async def root():
    return {
        "message": "Econest API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "docs": "/docs" if settings.DEBUG else None,
    }


@app.get("/health")
async def health_check():
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
        "services": {"database": db_status},
    }
