"""
This is the main entry point for the CanopyWatch FastAPI application.
It initializes the FastAPI app, includes API routers, and configures middleware.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from canopywatch.config import settings
from canopywatch.routes import comparisons, coverage, grid, health
from canopywatch.services.feed_client import feed_client

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Determine environment
IS_PRODUCTION = settings.BACKEND_ENV == "production"

# Configure CORS based on environment
if IS_PRODUCTION:
    # Production: Restrict to the monitoring front-end only
    allowed_origins = [
        "https://canopywatch-frontend.run.app",
    ]
    logger.info("Production mode: CORS restricted to %s", allowed_origins)
else:
    # Local development: Allow all origins
    allowed_origins = ["*"]
    logger.info("Local mode: CORS allows all origins")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    logger.info("=" * 60)
    logger.info("CanopyWatch API starting up...")
    logger.info("Environment: %s", "PRODUCTION" if IS_PRODUCTION else "LOCAL")
    logger.info("Feed URL: %s", settings.FEED_BASE_URL)
    logger.info(
        "Default grid: %dx%d cells of %.4f deg around (%.4f, %.4f)",
        settings.GRID_ROWS,
        settings.GRID_COLS,
        settings.GRID_CELL_SIZE_DEGREES,
        settings.GRID_CENTER_LAT,
        settings.GRID_CENTER_LNG,
    )
    logger.info(
        "Coverage baseline: %s, warning threshold: %.2f pp",
        settings.COMPARISON_BASELINE_DATE or "feed baseline table",
        settings.DECREASE_WARNING_THRESHOLD,
    )
    logger.info("=" * 60)

    yield

    # Shutdown
    logger.info("CanopyWatch API shutting down...")
    await feed_client.close()


app = FastAPI(
    title="CanopyWatch API",
    description="Forest-cover change detection and grid coverage for monitored regions.",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(grid.router, prefix="/api", tags=["Grid"])
app.include_router(comparisons.router, prefix="/api", tags=["Comparisons"])
app.include_router(coverage.router, prefix="/api", tags=["Coverage"])
