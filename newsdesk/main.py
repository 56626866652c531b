"""FastAPI application entry point."""

import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .routers import editor_router
from .services.editor_session import session_store
from .services.upload_pipeline import preview_registry

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown tasks."""
    # Startup
    logger.info(
        f"Images are stored in bucket '{settings.images_bucket}' "
        f"and served from {settings.public_base_url}"
    )

    yield

    # Shutdown
    logger.info(f"Closing {len(session_store)} editor sessions...")
    session_store.close_all()
    logger.info("Editor sessions closed")


# Create FastAPI application
app = FastAPI(
    title="Newsdesk Editor API",
    description="Rich-text article body editor with image, embed and table insertion",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.cors_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handler to log errors
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log all unhandled exceptions with full traceback."""
    logger.error(f"Unhandled exception on {request.method} {request.url}:")
    logger.error(f"Exception type: {type(exc).__name__}")
    logger.error(f"Exception message: {str(exc)}")
    logger.error(f"Traceback:\n{traceback.format_exc()}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# Include API routers
app.include_router(editor_router)


@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {
        "status": "healthy",
        "service": "Newsdesk Editor API",
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "minio": {
            "bucket": settings.images_bucket,
            "public_url": settings.public_base_url,
        },
        "editor": {
            "sessions": len(session_store),
            "previews": len(preview_registry),
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("newsdesk.main:app", host=settings.host, port=settings.port)
