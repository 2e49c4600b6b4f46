"""
REPSENSE Backend API
Pose-landmark exercise tracking

FastAPI application entry point. Hosts the tracking service over REST
and WebSocket.
"""

import logging
import sys
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from core.config import settings
from shared.utils import LOG_DATE_FORMAT, LOG_FORMAT, parse_log_level, setup_logger

# ============================================
# Configure Root Logger First
# ============================================
logging.basicConfig(
    level=parse_log_level(settings.LOG_LEVEL),
    format=LOG_FORMAT,
    datefmt=LOG_DATE_FORMAT,
    handlers=[logging.StreamHandler(sys.stdout)]
)

# Service routers
from tracking_service.router import router as tracking_router, get_services

# Setup logging
logger = setup_logger("repsense.main", level=parse_log_level(settings.LOG_LEVEL))
request_logger = setup_logger("repsense.requests", level=parse_log_level(settings.LOG_LEVEL))


# ============================================
# Request Logging Middleware
# ============================================

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all incoming requests and responses with timing."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        query_string = f"?{request.url.query}" if request.url.query else ""
        request_logger.debug(f"➡️  {request.method} {request.url.path}{query_string}")

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = (time.time() - start_time) * 1000
            request_logger.exception(
                f"💥 {request.method} {request.url.path} → ERROR: {type(e).__name__}: {e} ({process_time:.1f}ms)"
            )
            raise

        process_time = (time.time() - start_time) * 1000
        if response.status_code < 300:
            status_emoji = "✅"
        elif response.status_code < 400:
            status_emoji = "↪️"
        elif response.status_code < 500:
            status_emoji = "⚠️"
        else:
            status_emoji = "❌"

        request_logger.info(
            f"{status_emoji} {request.method} {request.url.path} → {response.status_code} ({process_time:.1f}ms)"
        )
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown."""
    # ===== STARTUP =====
    logger.info(f"🚀 {settings.APP_NAME} API starting up...")
    get_services()
    logger.info(f"✅ {settings.APP_NAME} API ready!")

    yield  # Application runs here

    # ===== SHUTDOWN =====
    logger.info(f"👋 {settings.APP_NAME} API shutting down...")
    get_services().cleanup()
    logger.info("✅ Shutdown complete")


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Real-time exercise rep counting and form feedback from pose landmarks",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add request logging middleware
app.add_middleware(RequestLoggingMiddleware)


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "service": "repsense-api",
        "sessions": get_services().get_handler_stats()["active_sessions"],
    }


@app.get("/stats")
async def get_stats():
    """Get service statistics."""
    return {
        "sessions": get_services().get_handler_stats(),
    }


# Include service routers
app.include_router(tracking_router, prefix="/api/tracking", tags=["Tracking Service"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
