"""Main FastAPI application for the account gateway."""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from account_gateway import __version__
from account_gateway.config import settings
from account_gateway.api.auth import router as auth_router
from account_gateway.api.metrics import router as metrics_router
from account_gateway.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from account_gateway.models.api_models import HealthResponse
from account_gateway.models.internal_models import ApiError
from account_gateway.observability import setup_observability, instrument_fastapi_app
from account_gateway.services.error_translator import UpstreamError
from account_gateway.services.registration_service import close_registration_service


logging.basicConfig(format="%(message)s", stream=sys.stdout, level=settings.log_level)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

VALIDATION_MESSAGE = "Invalid data."
MALFORMED_JSON_MESSAGE = "Invalid JSON or malformed fields."


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting account gateway", port=settings.port, host=settings.host)

    yield

    await close_registration_service()
    logger.info("Shutting down account gateway")


app = FastAPI(
    title="Account Gateway",
    description="Registration gateway coordinating Supabase Auth signup with profile persistence",
    version=__version__,
    lifespan=lifespan
)

# Add middleware (order matters - last added is executed first)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(metrics_router)

if settings.observability_enabled:
    setup_observability(
        service_name="account-gateway",
        service_version=__version__,
        otlp_endpoint=settings.otlp_endpoint,
        enable_console_export=settings.otel_console_export
    )
    instrument_fastapi_app(app)


def _field_errors(exc: RequestValidationError) -> Dict[str, str]:
    fields: Dict[str, str] = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        name = location[-1] if location else "body"
        message = str(error.get("msg", "")).removeprefix("Value error, ")
        fields.setdefault(name, message)
    return fields


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    if any(error.get("type") == "json_invalid" for error in exc.errors()):
        return JSONResponse(status_code=400, content=ApiError(400, MALFORMED_JSON_MESSAGE).to_dict())

    content = ApiError(400, VALIDATION_MESSAGE).to_dict()
    content["fields"] = _field_errors(exc)
    return JSONResponse(status_code=400, content=content)


@app.exception_handler(UpstreamError)
async def upstream_exception_handler(request: Request, exc: UpstreamError) -> JSONResponse:
    logger.warning("Upstream call failed", status=exc.status, error=exc.error.message, kind=exc.kind.value)
    return JSONResponse(status_code=exc.status, content=exc.error.to_dict())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error", error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(status_code=500, content=ApiError(500, "Internal error.").to_dict())


@app.get("/healthz", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=__version__
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "account_gateway.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False
    )
