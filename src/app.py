"""FastAPI application factory for the order change-control API.

Errors leave the API in one envelope::

    {"error": {"code": ..., "message": ..., "details": [...], "requestId": ...}}

``details`` of a failed multi-store edit carries the saga phases that had
already committed, so a client can tell a partial write from a clean failure.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from src.config import settings
from src.database.engine import document_engine, engine, messaging_engine
from src.exceptions import AppException, PersistenceException
from src.logging_config import configure_logging
from src.modules.lookups.cache import lookup_cache

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, default_limits=["60/minute"])

_ENGINES = {
    "orders": engine,
    "documents": document_engine,
    "messaging": messaging_engine,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    for name, store_engine in _ENGINES.items():
        await store_engine.dispose()
        logger.info("Disposed %s engine", name)
    await lookup_cache.close()
    logger.info("Closed lookup cache")


def _get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def _error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: list | None = None,
) -> JSONResponse:
    request_id = _get_request_id(request)
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "details": details or [],
                "requestId": request_id,
            }
        },
        headers={"X-Request-ID": request_id},
    )


def _register_exception_handlers(application: FastAPI) -> None:
    @application.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        if isinstance(exc, PersistenceException):
            logger.error(
                "%s %s failed writing %s: %s",
                request.method,
                request.url.path,
                exc.entity,
                exc.message,
            )
        return _error_response(request, exc.status_code, exc.code, exc.message, exc.details)

    @application.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = [
            {
                "field": ".".join(str(loc) for loc in err.get("loc", [])),
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        return _error_response(request, 422, "VALIDATION_ERROR", "Validation failed", details)

    @application.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        return _error_response(request, 429, "RATE_LIMITED", str(exc.detail))

    @application.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _error_response(request, 500, "INTERNAL_ERROR", "An unexpected error occurred.")


def create_app() -> FastAPI:
    configure_logging(settings.log_level, json_output=settings.log_json)

    application = FastAPI(
        title="Order Change Control API",
        description="Purchase order edits, change-control approvals and participant management.",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )
    application.state.limiter = limiter

    # Last added is outermost: request ids wrap CORS so every response carries one
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "PATCH", "POST", "PUT"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    from src.middleware.request_id import RequestIdMiddleware

    application.add_middleware(RequestIdMiddleware)

    from src.api.v1 import v1_router

    application.include_router(v1_router)
    _register_exception_handlers(application)

    @application.get("/health")
    async def health_check() -> dict:
        return {"status": "ok", "stores": sorted(_ENGINES)}

    return application


app = create_app()
