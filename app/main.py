# app/main.py
"""
FastAPI application entry point.
Includes security middleware, geo alert error mapping, and all routers.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from app.routers import geo_alerts, health
from app.database import create_tables
from app.config import settings
from app.exceptions import (
    AdminServiceError,
    AlertAlreadyExistsError,
    AuthenticationError,
    GeoAlertError,
    InvalidAlertError,
    PayloadParseError,
    UnrecognizedAlertTypeError,
)
from app.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="Geo Alert Manager API",
    description="Geo-fence alert definitions — registry storage and CEP execution plan deployment.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS ─────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # Restrict to the device management console in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional lightweight API key auth.
    Health check and docs stay open. Set API_KEY in .env. Leave empty to disable auth.
    """
    async def dispatch(self, request: Request, call_next):
        open_paths = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}
        if request.url.path in open_paths or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Exception Handlers ───────────────────────────────────────────────────────
_ERROR_STATUS = (
    ((UnrecognizedAlertTypeError, PayloadParseError, InvalidAlertError), status.HTTP_400_BAD_REQUEST),
    ((AlertAlreadyExistsError,), status.HTTP_409_CONFLICT),
    ((AuthenticationError, AdminServiceError), status.HTTP_502_BAD_GATEWAY),
)


def status_for(exc: GeoAlertError) -> int:
    for kinds, code in _ERROR_STATUS:
        if isinstance(exc, kinds):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(GeoAlertError)
async def geo_alert_exception_handler(request: Request, exc: GeoAlertError):
    code = status_for(exc)
    if code >= 500:
        logger.error(f"Geo alert failure on {request.url.path}: {exc}", exc_info=exc.__cause__ is not None)
    else:
        logger.warning(f"Rejected {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(geo_alerts.router, prefix="/api/v1", tags=["📍 Geo Alerts"])
app.include_router(health.router,     prefix="/api/v1", tags=["💚 Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 Geo Alert Manager starting up...")
    create_tables()
    logger.info("✅ Registry tables ready")
    logger.info(f"🏢 Tenant: {settings.TENANT_DOMAIN} ({settings.TENANT_ID})")
    logger.info(f"📡 CEP admin service: {settings.CEP_ADMIN_URL}")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 Geo Alert Manager shutting down...")
