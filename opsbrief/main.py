# ============================================================================
# Ops Brief - FastAPI Application Entry Point
# ============================================================================
"""
Main FastAPI application module for the Ops Brief service.

This module sets up the FastAPI application with:
- Logging configuration
- CORS and correlation-ID middleware
- Error handlers returning the ``{error, detail}`` envelope
- API routers under both ``/api`` (dashboard paths) and ``/api/v1``

Usage:
    Direct: python -m opsbrief.main
    Server: uvicorn opsbrief.main:app --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __description__
from .api.v1 import api_router
from .config import settings
from .dependencies import shutdown_briefing_service
from .middleware.correlation import CorrelationMiddleware, get_correlation_id
from .models import ErrorResponse

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("opsbrief.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting %s v%s", settings.api_title, settings.api_version)
    yield
    logger.info("Shutting down %s", settings.api_title)
    await shutdown_briefing_service()


# ============================================================================
# APPLICATION INITIALIZATION
# ============================================================================

app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description=__description__,
    lifespan=lifespan,
)

# ============================================================================
# MIDDLEWARE CONFIGURATION
# ============================================================================

# First added = innermost; CORS wraps correlation so preflights skip it
app.add_middleware(CorrelationMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-ID"],
)

# ============================================================================
# ERROR HANDLERS
# ============================================================================


def _error(status_code: int, detail: Any, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    try:
        error = HTTPStatus(status_code).phrase
    except ValueError:
        error = f"HTTP {status_code}"
    body = ErrorResponse(error=error, detail=None if detail is None else str(detail))
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """400/404/405 and friends, in the standard envelope."""
    return _error(exc.status_code, exc.detail, getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all for unexpected errors.

    The exception text is only returned in debug mode; it is always logged.
    """
    logger.exception("[%s] Unhandled error on %s %s", get_correlation_id(), request.method, request.url.path)
    detail = str(exc) if settings.debug else "An unexpected error occurred"
    return _error(500, detail)


# ============================================================================
# ROUTER CONFIGURATION
# ============================================================================

app.include_router(api_router, prefix="/api")
app.include_router(api_router, prefix="/api/v1")


@app.get("/", tags=["root"])
async def root() -> Dict[str, Any]:
    return {
        "name": settings.api_title,
        "version": settings.api_version,
        "status": "running",
        "docs_url": "/docs",
        "health_check": "/api/v1/system/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("opsbrief.main:app", host="0.0.0.0", port=8000, log_level=settings.log_level.lower())
