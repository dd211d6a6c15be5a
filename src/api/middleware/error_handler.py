"""Global exception handling."""

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse

from src.shared.errors import FraudMonitorError, RateLimitError

logger = structlog.get_logger()


async def fraud_monitor_error_handler(request: Request, exc: FraudMonitorError) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")
    content = {"error": exc.error, "message": exc.message, "request_id": request_id}
    if exc.details is not None:
        content["details"] = exc.details

    headers = {}
    if isinstance(exc, RateLimitError):
        headers["Retry-After"] = str(exc.retry_after)

    if exc.status_code >= 500:
        logger.exception("request_failed", request_id=request_id, error=exc.error)
    else:
        logger.warning(
            exc.error,
            request_id=request_id,
            path=request.url.path,
            message=exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")

    logger.exception("unhandled_exception", request_id=request_id, error=str(exc))
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred",
            "request_id": request_id,
        },
    )
