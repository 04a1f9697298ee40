"""
Specialist Admin Service: Application Entry Point.

Wires the FastAPI app together: structlog configuration, request-context
middleware, AppException -> ErrorResponse rendering, and a lifespan that
probes the document store on startup and closes the identity client on
shutdown.
"""
from __future__ import annotations

import logging
import sys
import time
import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .api.v1 import router as v1_router
from .core.config import Settings, get_settings
from .core.exceptions import AppException
from .core.responses import ErrorDetail, ErrorResponse, ResponseMeta
from .db.document_store import get_document_store
from .services.identity_service import reset_identity_provider

logger = structlog.get_logger(__name__)

_HARDENING_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cache-Control": "no-store",
}


def configure_logging(settings: Settings) -> None:
    """Route structlog and stdlib logging to stdout at LOG_LEVEL."""
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    renderer: Any = (
        structlog.dev.ConsoleRenderer(colors=False)
        if settings.is_development
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )
    # firebase_admin, httpx and uvicorn log through the stdlib.
    logging.basicConfig(stream=sys.stdout, level=level, format="%(levelname)s %(name)s: %(message)s")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request ID to the log context, time the request, add hardening headers.

    An incoming ``X-Request-ID`` is reused; otherwise one is generated. The
    ID is echoed back and kept on ``request.state`` for error envelopes.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers["X-Request-ID"] = request_id
        for header, value in _HARDENING_HEADERS.items():
            response.headers.setdefault(header, value)
        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    configure_logging(settings)
    logger.info(
        "service_starting",
        version=settings.APP_VERSION,
        environment=settings.APP_ENV,
        document_store=settings.DOCUMENT_STORE_BACKEND,
        identity_backend=settings.IDENTITY_BACKEND,
    )

    probe = await get_document_store().health_check()
    if probe.get("status") != "healthy":
        # Serve anyway; /ready reports the outage.
        logger.warning("document_store_unavailable_at_startup", **probe)

    yield

    try:
        await reset_identity_provider()
    except Exception as exc:
        logger.warning("identity_client_close_failed", error=str(exc))
    logger.info("service_stopped")


def _error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    body = ErrorResponse(
        error=ErrorDetail(code=code, message=message, details=details),
        meta=ResponseMeta(request_id=getattr(request.state, "request_id", None)),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppException)
    async def _app_exception(request: Request, exc: AppException) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log("request_failed", error_code=exc.error_code, message=exc.message, path=request.url.path)
        return _error_response(request, exc.status_code, exc.error_code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = [
            {
                "field": ".".join(str(part) for part in err["loc"]),
                "message": err["msg"],
                "type": err["type"],
            }
            for err in exc.errors()
        ]
        logger.warning("request_invalid", path=request.url.path, problems=problems)
        return _error_response(
            request, 422, "VALIDATION_ERROR", "Request validation failed",
            {"validation_errors": problems},
        )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("request_crashed", path=request.url.path)
        message = str(exc) if get_settings().DEBUG else "An unexpected error occurred"
        return _error_response(request, 500, "INTERNAL_ERROR", message)


def create_application() -> FastAPI:
    """Build the FastAPI app: middleware, handlers and the v1 router."""
    settings = get_settings()
    docs_enabled = settings.is_development

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=(
            "Administrative backend for onboarding specialist doctors from "
            "spreadsheets and reviewing their professional-fee change requests. "
            "All endpoints live under `/api/v1/`."
        ),
        docs_url="/docs" if docs_enabled else None,
        redoc_url=None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Health", "description": "Liveness, readiness and dependency status."},
            {"name": "Specialist Import", "description": "Template, dry-run validation and batched import."},
            {"name": "Fee Requests", "description": "Approve or reject professional-fee changes."},
        ],
    )

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=settings.cors_methods_list,
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    )
    _register_exception_handlers(app)
    app.include_router(v1_router)
    return app


app = create_application()
