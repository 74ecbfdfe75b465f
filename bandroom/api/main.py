"""
Bandroom API Server

FastAPI server for the band's member directory, rehearsal sessions, song
library, chat, media and notifications.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
import uvicorn
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

from bandroom.api.routes import router, limiter as routes_limiter
from bandroom.database import db

# Set up logging
# Allow log level to be configured via environment variable (default: INFO)
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    # Startup
    logger.info("Starting up Bandroom API...")

    # Tests may have installed their own factory already
    if getattr(app.state, "session_factory", None) is None:
        engine = db.create_engine_from_env()
        app.state.engine = engine
        app.state.session_factory = db.build_session_factory(engine)

    engine = getattr(app.state, "engine", None)

    # Create tables that migrations haven't created yet
    if engine is not None:
        try:
            await db.init_database(engine)
            logger.info("Database initialized")
        except Exception as e:
            logger.error(f"Database initialization failed: {e}", exc_info=True)
            # Don't raise - allow app to start even if initialization fails

    yield  # App is running

    # Shutdown
    logger.info("Shutting down Bandroom API...")
    if engine is not None:
        try:
            await engine.dispose()
            logger.info("Database engine disposed")
        except Exception as e:
            logger.error(f"Error disposing database engine: {e}", exc_info=True)


app = FastAPI(
    title="Bandroom API",
    description="API for scheduling band rehearsals, managing members and sharing session media",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware - origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
