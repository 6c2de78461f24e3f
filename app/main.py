"""
VF4 Bet Main Application Entry Point
FastAPI app exposing the wager engine to the browser front end.
"""

import sys
from pathlib import Path

# Add parent directory to path so imports work when running directly
if __name__ == "__main__":
    sys.path.insert(0, str(Path(__file__).parent.parent))

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import AppConfig, SecurityConfig, settings
from app.core.database import Database
from app.core.exceptions import WagerError
from app.core.logger import get_logger, init_logging
from app.core.rng import rng as default_rng
from app.core.security import SessionSigner, new_secret_key
from app.routers import api, auth
from app.routers.limits import limiter

logger = get_logger("main")


# ==================== Security Headers Middleware ====================


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'self'; frame-ancestors 'none'"

        return response


# ==================== Application Setup ====================


def create_app(config: AppConfig = None, database: Database = None, rng=None) -> FastAPI:
    """
    Create and configure the FastAPI application.
    The database and RNG are scoped to the app instance, never to the process.
    """
    config = config or settings

    init_logging(
        level=config.logging.level,
        log_to_file=config.logging.log_to_file,
        formatter=config.logging.formatter,
        log_file_path=config.paths.get_log_path(),
    )

    app = FastAPI(
        title=config.server.name,
        docs_url="/docs" if config.server.debug else None,
        redoc_url=None,
    )

    secret_key = config.security.secret_key
    if secret_key == SecurityConfig().secret_key and not config.server.debug:
        logger.warning("Default SECRET_KEY in production; sessions will not survive a restart")
        secret_key = new_secret_key()

    app.state.config = config
    app.state.db = database or Database(config.paths.get_db_path())
    app.state.rng = rng or default_rng
    app.state.signer = SessionSigner(
        secret_key, max_age_seconds=config.security.session_max_age_days * 24 * 3600
    )

    limiter.enabled = config.rate_limit.enabled
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(SecurityHeadersMiddleware)

    # CORS middleware (for development)
    if config.server.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(auth.router)
    app.include_router(api.router, prefix="/api")

    @app.exception_handler(WagerError)
    async def wager_error_handler(request: Request, exc: WagerError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle unhandled exceptions gracefully."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_error",
                "detail": str(exc) if config.server.debug else None,
            },
        )

    @app.on_event("shutdown")
    def shutdown_event():
        app.state.db.close()

    logger.info(f"Application '{config.server.name}' initialized")
    logger.info(f"Debug mode: {config.server.debug}")
    return app


# ==================== Main Entry Point ====================

if __name__ == "__main__":
    logger.info(f"Starting server on {settings.server.host}:{settings.server.port}")
    uvicorn.run(
        "app.main:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.server.debug,
    )
