"""ASGI entrypoint: routers, request IDs and the single error shape."""

import uuid

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storefront.api.routes import catalog, diamonds, health
from storefront.inventory.errors import InventoryError, ProviderNotConfigured
from storefront.logging import configure_logging
from storefront.models.contracts import ErrorResponse

configure_logging()

logger = structlog.get_logger()

app = FastAPI(
    title="Storefront Inventory API",
    version=health.VERSION,
    docs_url="/docs",
    redoc_url=None,
)


def _error_response(request: Request, status: int, body: ErrorResponse) -> JSONResponse:
    response = JSONResponse(status_code=status, content=body.model_dump())
    # Exception handlers run outside the middleware, so the header is set here too.
    response.headers["X-Request-ID"] = getattr(
        request.state, "request_id", request.headers.get("X-Request-ID", "")
    )
    return response


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Bind a request ID into structlog context and echo it as X-Request-ID."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(InventoryError)
async def inventory_exception_handler(request: Request, exc: InventoryError) -> JSONResponse:
    """Fatal provider failures: 503 when unconfigured, 502 otherwise."""
    status = 503 if isinstance(exc, ProviderNotConfigured) else 502
    detail = getattr(exc, "diagnostic", None)
    logger.warning(
        "inventory_request_failed",
        path=request.url.path,
        error_code=exc.error_code,
        status=status,
    )
    return _error_response(
        request,
        status,
        ErrorResponse(
            error=exc.error_code,
            message=str(exc),
            retryable=exc.retryable,
            detail=detail[:500] if detail else None,
        ),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Pydantic validation errors use ErrorResponse instead of FastAPI's detail list."""
    message = "; ".join(
        f"{' → '.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return _error_response(
        request,
        422,
        ErrorResponse(error="validation_error", message=message, retryable=False),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return _error_response(
        request,
        500,
        ErrorResponse(
            error="internal_error",
            message="An unexpected error occurred",
            retryable=True,
        ),
    )


app.include_router(health.router)
app.include_router(diamonds.router, prefix="/api/v1")
app.include_router(catalog.router, prefix="/api/v1")
