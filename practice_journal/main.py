"""
Practice Journal Backend - Main FastAPI Application

Entry point for the API server.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from practice_journal.config import get_settings
from practice_journal.core.exceptions import JournalException, error_response_for
from practice_journal.database import create_tables, dispose_engine
from practice_journal.sessions.service import SessionCache

from practice_journal.library.router import content_router, repertoire_router, tags_router
from practice_journal.logs.router import router as logs_router
from practice_journal.sessions.router import router as sessions_router
from practice_journal.stats.router import router as stats_router
from practice_journal.topics.router import goals_router, topics_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs startup and shutdown logic.
    """
    # Startup
    logger.info(f"[Startup] Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"[Startup] Debug mode: {settings.debug}, timezone: {settings.app_timezone}")

    try:
        await create_tables()
        logger.info("[Startup] Database tables created/verified")
    except Exception as e:
        logger.error(f"[Startup] Database initialization failed: {e}")
        # Don't fail startup - tables might already exist

    yield

    # Shutdown
    logger.info("[Shutdown] Application shutting down...")
    await dispose_engine()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Practice Journal API - topics, goals, practice logs and activity.

    ## Features

    * **Topics & Goals** - Numbered practice topics and goals ("3.2")
    * **Logs** - Dated practice entries linked to content and repertoire
    * **Library** - Reusable content and repertoire with tags and practice stats
    * **Sessions** - Goals planned for a given day
    * **Stats** - Yearly activity heatmap

    ## Architecture

    Built with FastAPI and SQLAlchemy 2.0 (async).
    Uses a 3-layer architecture: Router → Service → Repository.
    """,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# (owner, date) -> session id, owned by the application instance
app.state.session_cache = SessionCache(max_entries=settings.session_cache_size)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(JournalException)
async def journal_exception_handler(request: Request, exc: JournalException):
    """Map domain exceptions to {"error", "code"} responses."""
    status_code, code = error_response_for(exc)
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(f"[ErrorHandler] {code}: {exc.message}")
    else:
        logger.info(f"[ErrorHandler] {code}: {exc.message}")
    return JSONResponse(status_code=status_code, content={"error": exc.message, "code": code})


@app.exception_handler(PermissionError)
async def permission_error_handler(request: Request, exc: PermissionError):
    """Rows of another owner are never readable or writable."""
    logger.warning(f"[ErrorHandler] Access denied: {exc}")
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"error": "Access denied", "code": "ACCESS_DENIED"},
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions globally."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "code": "INTERNAL_ERROR"},
    )


# Health check endpoints
@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - API info."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
    }


@app.get("/health", tags=["Health"])
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# API v1 routes
API_V1_PREFIX = "/api/v1"


@app.get(f"{API_V1_PREFIX}/health", tags=["Health"])
async def api_health():
    """API health check with version."""
    return {
        "status": "healthy",
        "version": settings.app_version,
    }


# Include routers
app.include_router(topics_router, prefix=API_V1_PREFIX)
app.include_router(goals_router, prefix=API_V1_PREFIX)
app.include_router(logs_router, prefix=API_V1_PREFIX)
app.include_router(content_router, prefix=API_V1_PREFIX)
app.include_router(repertoire_router, prefix=API_V1_PREFIX)
app.include_router(tags_router, prefix=API_V1_PREFIX)
app.include_router(sessions_router, prefix=API_V1_PREFIX)
app.include_router(stats_router, prefix=API_V1_PREFIX)
