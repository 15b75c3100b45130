"""
FastAPI Application Entry Point

This module creates and configures the FastAPI application for the
Face Widget verification service.

The application provides:
- POST /register: register a reference face image
- POST /verify: verify a burst of 5 live frames
- REST endpoints for user management
- Health check endpoint

Usage:
    # From project root:
    uvicorn api.app:app --host 0.0.0.0 --port 8080 --reload

    # Or run directly:
    python -m api.app
"""

import logging
from contextlib import asynccontextmanager

import onnxruntime
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import (
    registration_router,
    verification_router,
    management_router,
)
from api.schemas import HealthResponse
from core.config import get_config, get_server_config
from core.extractor import get_extractor
from core.user_store import get_user_store


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

API_VERSION = "0.2.0"


def gpu_available() -> bool:
    """True if onnxruntime can run on CUDA."""
    return "CUDAExecutionProvider" in onnxruntime.get_available_providers()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs on startup:
    - Initialize the user store
    - Optionally pre-load the face analysis model

    Runs on shutdown:
    - Close the user store
    """
    logger.info("=" * 60)
    logger.info("Starting Face Widget API")
    logger.info("=" * 60)

    logger.info("Initializing user store...")
    user_store = get_user_store()
    stats = user_store.get_stats()
    logger.info(f"User store ready: {stats['total_users']} users registered")

    extractor_config = get_config().get("extractor", {})
    if extractor_config.get("preload", False):
        logger.info("Pre-loading face analysis model...")
        get_extractor().load_model()

    if not gpu_available():
        logger.warning("No CUDA provider available - face analysis will run on CPU")

    logger.info("API startup complete!")

    yield

    logger.info("Shutting down API...")
    user_store.close()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Face Widget API",
    description="""
API for face registration and live face verification.

## Features
- **Registration**: Store a reference face image for an account
- **Verification**: Verify a burst of 5 live frames against the reference,
  with identity consistency and liveness checks
- **User Management**: List, view, and delete registered users

Frames are sent as base64-encoded JPEG images.
    """,
    version=API_VERSION,
    lifespan=lifespan,
)

# Configure CORS for widget access
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().get("api", {}).get("cors_origins", ["*"]),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Authorization", "Content-Type"],
)

# Include routers
app.include_router(registration_router)
app.include_router(verification_router)
app.include_router(management_router)


# ============================================================
# Health Check Endpoint
# ============================================================

@app.get("/health", response_model=HealthResponse, tags=["system"])
def health_check():
    """
    Check the health of the API and its dependencies.

    Returns status of:
    - Face analysis model (loaded/not loaded)
    - GPU availability
    - Number of registered users and verification attempts
    """
    extractor = get_extractor()
    stats = get_user_store().get_stats()

    matching_config = get_config().get("matching", {}) or {}

    return HealthResponse(
        status="healthy",
        model_loaded=extractor.is_loaded,
        gpu_available=gpu_available(),
        registered_users=stats["total_users"],
        verification_attempts=stats["total_verifications"],
        identity_threshold=matching_config.get("identity_threshold"),
    )


@app.get("/", tags=["system"])
def root():
    """Root endpoint with API information."""
    return {
        "name": "Face Widget API",
        "version": API_VERSION,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    server_config = get_server_config()

    logger.info(f"Starting server on {server_config['host']}:{server_config['port']}")
    uvicorn.run(
        "api.app:app",
        host=server_config["host"],
        port=server_config["port"],
        reload=True,
        log_level="info",
    )
