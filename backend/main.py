"""
FastAPI application factory.

Responsibilities
----------------
* Instantiate the FastAPI app (Swagger UI served at /api-docs).
* Register CORS and request-logging middleware.
* Install the error handlers that produce the uniform JSON envelope.
* Mount the three feature routers (auth, admin, announcements) under
  ``settings.api_prefix``.
* Expose /health for container liveness checks.
"""

import time

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from admin.router import router as admin_router
from announcements.router import router as announcement_router
from auth.router import router as auth_router
from core.config import settings
from core.errors import register_exception_handlers
from core.logger import logger

app = FastAPI(
    title="Cherry Studio API",
    version="1.0.0",
    docs_url="/api-docs",
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)


# ---------------------------------------------------------------------------
# Request-logging middleware
# ---------------------------------------------------------------------------
# Logs every inbound request: method, path, client IP, status, latency.
# Bodies are never echoed; the reset token in the reset-password path is
# masked.


def _loggable_path(path: str) -> str:
    marker = "/auth/reset-password/"
    if marker in path:
        return path.split(marker, 1)[0] + marker + "***"
    return path


class _RequestLogMiddleware(BaseHTTPMiddleware):
    """Log method, path, client IP, response status and latency (ms)."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        client_ip = request.client.host if request.client else "unknown"

        logger.info(
            "%s %s | client=%s status=%d latency=%.1fms",
            request.method,
            _loggable_path(request.url.path),
            client_ip,
            response.status_code,
            elapsed_ms,
        )
        return response


app.add_middleware(_RequestLogMiddleware)

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(auth_router, prefix=settings.api_prefix)
app.include_router(admin_router, prefix=settings.api_prefix)
app.include_router(announcement_router, prefix=settings.api_prefix)


@app.on_event("startup")
async def _on_startup():
    logger.info("Cherry Studio API starting up (prefix=%s)", settings.api_prefix)


@app.on_event("shutdown")
async def _on_shutdown():
    logger.info("Cherry Studio API shutting down")


@app.get("/")
def root():
    return {"message": "Welcome to Cherry Studio API"}


@app.get("/health")
def health():
    return {"status": "ok"}
