"""Exception handlers mapping platform errors onto JSON error responses."""

# Standard library imports
import traceback
from typing import Any, Dict, List, Union

# Third-party imports
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException

# Local application imports
from ..models.errors import (
    ErrorDetail,
    ErrorResponse,
    ErrorType,
    FunctionPlatformException,
)
from .id_generator import generate_request_id

logger = structlog.get_logger(__name__)

_STATUS_ERROR_TYPES = {
    400: ErrorType.VALIDATION,
    404: ErrorType.RESOURCE_NOT_FOUND,
    405: ErrorType.VALIDATION,
    409: ErrorType.RESOURCE_CONFLICT,
    415: ErrorType.VALIDATION,
    422: ErrorType.VALIDATION,
    503: ErrorType.SERVICE_UNAVAILABLE,
    504: ErrorType.TIMEOUT,
}


def _request_context(request: Request, request_id: str) -> Dict[str, Any]:
    return {
        "request_id": request_id,
        "path": request.url.path,
        "method": request.method,
        "client_ip": request.client.host if request.client else "unknown",
    }


def _respond(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _details_for_log(details: List[ErrorDetail]) -> List[Dict[str, Any]]:
    return [d.model_dump(exclude_none=True) for d in details]


async def platform_exception_handler(
    request: Request, exc: FunctionPlatformException
) -> JSONResponse:
    """Render a FunctionPlatformException with its own status code.

    Server-side failures (5xx) are logged at error level, client errors
    at warning.
    """
    exc.request_id = exc.request_id or generate_request_id()
    context = _request_context(request, exc.request_id)
    context.update(
        error_type=exc.error_type.value,
        status_code=exc.status_code,
        message=exc.message,
    )
    if exc.details:
        context["details"] = _details_for_log(exc.details)

    log = logger.error if exc.status_code >= 500 else logger.warning
    log("Platform error", **context)

    return _respond(exc.status_code, exc.to_response())


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    request_id = generate_request_id()
    logger.warning(
        "HTTP exception",
        status_code=exc.status_code,
        detail=exc.detail,
        **_request_context(request, request_id),
    )
    error_type = _STATUS_ERROR_TYPES.get(exc.status_code, ErrorType.INTERNAL_SERVER)
    return _respond(
        exc.status_code,
        ErrorResponse(error=str(exc.detail), error_type=error_type, request_id=request_id),
    )


async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, PydanticValidationError]
) -> JSONResponse:
    """Request body or parameter validation failures are reported as 400."""
    request_id = generate_request_id()
    details = [
        ErrorDetail(
            field=".".join(str(part) for part in error["loc"]),
            message=error["msg"],
            code=error["type"],
        )
        for error in exc.errors()
    ]
    logger.warning(
        "Request validation failed",
        validation_errors=_details_for_log(details),
        **_request_context(request, request_id),
    )
    return _respond(
        400,
        ErrorResponse(
            error="Request validation failed",
            error_type=ErrorType.VALIDATION,
            details=details,
            request_id=request_id,
        ),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = generate_request_id()
    logger.error(
        "Unhandled exception",
        exception_type=type(exc).__name__,
        exception_message=str(exc),
        traceback=traceback.format_exc(),
        **_request_context(request, request_id),
    )
    # Internal details stay in the log
    return _respond(
        500,
        ErrorResponse(
            error="An unexpected error occurred",
            error_type=ErrorType.INTERNAL_SERVER,
            request_id=request_id,
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers on an application."""
    app.add_exception_handler(FunctionPlatformException, platform_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PydanticValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
