"""
LIVECOACH Backend API
Real-time exercise analysis with AI coaching

FastAPI application entry point. Clients stream pose landmarks over a
WebSocket and get per-frame rep counts, hold timers and form feedback.
"""

import logging
import sys
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

# ============================================
# Configure Root Logger First
# ============================================
logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[logging.StreamHandler(sys.stdout)]
)

# Service routers
from coach_service.router import router as coach_router
from coach_service.models import get_session_handler

# Core utilities
from core.config import settings
from shared.utils import setup_logger, success_response, error_response

# Setup logging
logger = setup_logger("livecoach.main", level=logging.DEBUG)
request_logger = setup_logger("livecoach.requests", level=logging.DEBUG)


# ============================================
# Request Logging Middleware
# ============================================

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all incoming requests and responses with timing."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        client_ip = request.client.host if request.client else "unknown"
        query_string = f"?{request.url.query}" if request.url.query else ""

        request_logger.info(f"➡️  {request.method} {request.url.path}{query_string}")
        request_logger.debug(f"    Client: {client_ip}")

        try:
            response = await call_next(request)

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
        except Exception as e:
            process_time = (time.time() - start_time) * 1000
            request_logger.error(f"💥 {request.method} {request.url.path} → ERROR: {type(e).__name__}: {str(e)} ({process_time:.1f}ms)")
            raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown."""
    # ===== STARTUP =====
    logger.info("🚀 LIVECOACH API starting up...")

    if not settings.MISTRAL_API_KEY:
        logger.warning("⚠️ MISTRAL_API_KEY not set, AI coaching tips will be empty")

    get_session_handler()

    logger.info("✅ LIVECOACH API ready!")

    yield  # Application runs here

    # ===== SHUTDOWN =====
    logger.info("👋 LIVECOACH API shutting down...")

    handler = get_session_handler()
    for session_id in list(handler.active_sessions):
        handler.cleanup_session(session_id)

    logger.info("✅ Shutdown complete")


app = FastAPI(
    title="LIVECOACH API",
    description="Real-time exercise analysis with AI coaching",
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


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=500,
        content=error_response("Internal server error", error_code=type(exc).__name__)
    )


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "service": "livecoach-api",
        "coaching": "configured" if settings.MISTRAL_API_KEY else "unconfigured",
        "active_sessions": len(get_session_handler().active_sessions)
    }


@app.get("/stats")
async def get_stats():
    """Get service statistics."""
    handler = get_session_handler()
    return success_response({
        "sessions": handler.list_sessions(),
        "coaching": {
            session_id: session.coaching.get_stats()
            for session_id, session in handler.active_sessions.items()
        }
    })


# Include service routers
app.include_router(coach_router, prefix="/api/coach", tags=["Coach Service"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
