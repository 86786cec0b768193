"""
Centralized API Error Handling
Maps the core error taxonomy onto HTTP responses with a consistent body
"""

import functools
import logging
import uuid
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from dispatch_admin.core.errors import (
    AuthenticationError, CollaboratorUnavailable, ConfigNotFound, DispatchError,
    InternalError, ValidationError
)
from .schemas import APIErrorDetail, APIErrorResponse, ErrorCode

logger = logging.getLogger(__name__)


STATUS_BY_ERROR = (
    (ConfigNotFound, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (CollaboratorUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(exc: DispatchError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_response(message: str, error_code: ErrorCode, status_code: int,
                   details: Optional[List[APIErrorDetail]] = None,
                   request_id: Optional[str] = None) -> JSONResponse:
    """Create the standardized error body"""
    body = APIErrorResponse(
        error=message,
        error_code=error_code,
        details=details,
        request_id=request_id or str(uuid.uuid4()),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode='json'))


async def dispatch_error_handler(request: Request, exc: DispatchError) -> JSONResponse:
    """Handler for every DispatchError raised by the core"""
    request_id = str(uuid.uuid4())
    status_code = status_for(exc)

    if status_code >= 500:
        logger.error(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message} "
            f"(request_id: {request_id})",
            exc_info=exc,
            extra={"request_id": request_id},
        )
        # Collaborator messages are fixed strings; everything else stays in the log
        message = exc.message if isinstance(exc, CollaboratorUnavailable) else "Internal server error"
    else:
        logger.warning(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message} "
            f"(request_id: {request_id})",
            extra={"request_id": request_id},
        )
        message = exc.message

    details = None
    if isinstance(exc, ValidationError) and exc.field:
        details = [APIErrorDetail(field=exc.field, message=exc.message, code=exc.error_code)]

    try:
        error_code = ErrorCode(exc.error_code)
    except ValueError:
        error_code = ErrorCode.INTERNAL_ERROR

    return error_response(message, error_code, status_code, details, request_id)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """HTTP exceptions in the standardized format"""
    error_code_mapping = {
        400: ErrorCode.VALIDATION_ERROR,
        401: ErrorCode.UNAUTHORIZED,
        404: ErrorCode.NOT_FOUND,
        503: ErrorCode.EXTERNAL_SERVICE_ERROR,
    }
    error_code = error_code_mapping.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    request_id = str(uuid.uuid4())

    logger.warning(
        f"HTTP Exception: {exc.detail} (status: {exc.status_code}, request_id: {request_id})",
        extra={"request_id": request_id},
    )
    return error_response(str(exc.detail), error_code, exc.status_code, request_id=request_id)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are a plain bad request"""
    field_errors = []
    for error in exc.errors():
        field_path = " -> ".join(str(loc) for loc in error["loc"])
        field_errors.append(APIErrorDetail(field=field_path, message=error["msg"], code=error["type"]))

    request_id = str(uuid.uuid4())
    logger.warning(
        f"Validation Error: {len(field_errors)} field errors (request_id: {request_id})",
        extra={"request_id": request_id},
    )
    return error_response("Validation failed", ErrorCode.VALIDATION_ERROR,
                          status.HTTP_400_BAD_REQUEST, field_errors, request_id)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all; details go to the log only"""
    request_id = str(uuid.uuid4())
    logger.error(
        f"Unhandled exception: {exc} (request_id: {request_id})",
        exc_info=exc,
        extra={"request_id": request_id},
    )
    return error_response("Internal server error", ErrorCode.INTERNAL_ERROR,
                          status.HTTP_500_INTERNAL_SERVER_ERROR, request_id=request_id)


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(DispatchError, dispatch_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)


def handle_api_errors(func):
    """Let core and HTTP errors through; wrap anything else as InternalError"""
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except (HTTPException, DispatchError):
            raise
        except Exception as e:
            logger.error(f"Unexpected error in {func.__name__}: {e}", exc_info=True)
            raise InternalError() from e
    return wrapper
