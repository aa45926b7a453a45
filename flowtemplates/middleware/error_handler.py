"""
Exception handlers of the FastAPI app.

Engine errors, request validation failures, unknown routes and unexpected
crashes all answer with the body described by ``schemas.error.ErrorResponse``.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from flowtemplates.config import settings
from flowtemplates.exceptions import AppException, ErrorCode
from flowtemplates.middleware.request_id import get_request_id

logger = structlog.get_logger(__name__)

_HTTP_STATUS_CODES = {
    400: ErrorCode.VALIDATION_FAILED,
    403: ErrorCode.AUTH_FORBIDDEN,
    404: ErrorCode.RESOURCE_NOT_FOUND,
    409: ErrorCode.RESOURCE_CONFLICT,
    500: ErrorCode.INTERNAL_ERROR,
}


def _error_json(
    request: Request,
    status_code: int,
    error_code: ErrorCode,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    body = {
        "status": "error",
        "error_code": error_code.value,
        "message": message,
        "details": details or {},
        "path": request.url.path,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    request_id = get_request_id() or getattr(getattr(request, "state", None), "request_id", None)
    if request_id:
        body["request_id"] = request_id
    return JSONResponse(status_code=status_code, content=body)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Engine errors; 5xx ones are logged with their traceback."""
    server_side = exc.status_code >= 500
    log = logger.error if server_side else logger.warning
    log(
        "Request failed",
        path=request.url.path,
        method=request.method,
        status_code=exc.status_code,
        error_code=exc.error_code.value,
        message=exc.message,
        details=exc.details,
        exc_info=server_side,
    )
    return _error_json(request, exc.status_code, exc.error_code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error_code = _HTTP_STATUS_CODES.get(exc.status_code, ErrorCode.UNKNOWN_ERROR)
    logger.warning(
        "HTTP error",
        path=request.url.path,
        method=request.method,
        status_code=exc.status_code,
        detail=exc.detail,
    )
    return _error_json(request, exc.status_code, error_code, str(exc.detail))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request (body, path, query or headers): one entry per failing field."""
    field_errors = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(
        "Request rejected",
        path=request.url.path,
        method=request.method,
        errors=field_errors,
    )
    return _error_json(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        ErrorCode.VALIDATION_FAILED,
        "Request validation failed",
        {"validation_errors": field_errors},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything else; the exception text is only exposed in DEBUG."""
    logger.error(
        "Unhandled error",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        error=str(exc),
        exc_info=True,
    )
    if settings.DEBUG:
        message, details = str(exc), {"type": type(exc).__name__}
    else:
        message, details = "Internal server error", None
    return _error_json(request, status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorCode.INTERNAL_ERROR, message, details)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
