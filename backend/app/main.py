"""
FastAPI Application Entry Point
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.routes import api_router
from app.core.config import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan - startup and shutdown events.

    Startup:
    - Logs the environment and which store backend is active

    Shutdown:
    - Releases the transcript annotator client
    """
    # ========================
    # STARTUP
    # ========================
    settings = get_settings()
    logger.info(f"Starting Power Dialer API ({settings.environment})...")

    from app.api.v1.dependencies import get_store
    logger.info(f"Dialer store: {type(get_store()).__name__}")

    logger.info("Power Dialer API started successfully")

    yield  # Application is running

    # ========================
    # SHUTDOWN
    # ========================
    logger.info("Shutting down Power Dialer API...")

    try:
        from app.api.v1 import dependencies
        if dependencies._annotator is not None:
            await dependencies._annotator.cleanup()
            dependencies._annotator = None
    except Exception as e:
        logger.error(f"Error during shutdown: {e}")

    logger.info("Power Dialer API shutdown complete")


settings = get_settings()

app = FastAPI(
    title="Power Dialer",
    description="Outbound cold-call queue, disposition tracking and caller-ID rotation",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {"message": "Power Dialer API", "status": "running"}


@app.get("/health")
async def health_check():
    """Liveness probe outside the API prefix."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
