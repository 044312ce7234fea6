"""Bidyard Backend API - FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config import get_settings
from .database import JOBS_TABLE
from .logging_config import configure_logging, get_logger
from .rate_limit import limiter
from .routes import bids_router

API_PREFIX = "/api/v1"

logger = get_logger("bidyard.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = get_settings()
    configure_logging("DEBUG" if settings.debug else settings.log_level)
    logger.info(f"Starting Bidyard Backend API (debug={settings.debug})")
    yield
    logger.info("Shutting down Bidyard Backend API")


app = FastAPI(
    title="Bidyard Backend API",
    description="Bid submission and job award API for the Bidyard marketplace",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(bids_router, prefix=API_PREFIX)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "service": "bidyard-backend",
        "version": "0.1.0",
        "status": "ok",
    }


@app.get("/health")
async def health():
    """Detailed health check with actual database verification."""
    from .database import get_supabase_client

    db_status = "disconnected"
    try:
        db = get_supabase_client()
        db.table(JOBS_TABLE).select("id").limit(1).execute()
        db_status = "connected"
    except Exception as e:
        logger.warning(f"Health check database query failed: {e}")
        db_status = f"error: {str(e)[:50]}"

    overall_status = "healthy" if db_status == "connected" else "degraded"

    return {
        "status": overall_status,
        "database": db_status,
    }
