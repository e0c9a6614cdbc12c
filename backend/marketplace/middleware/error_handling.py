"""
API Error Handling for the Marketplace
Renders every error as a standardized response body and logs it
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..database import utcnow
from ..exceptions import MarketplaceError

logger = logging.getLogger(__name__)


class ErrorDetail(BaseModel):
    """Detailed error information"""

    field: Optional[str] = None
    message: str
    type: Optional[str] = None
    code: Optional[str] = None


class APIErrorResponse(BaseModel):
    """Standardized API error response"""

    success: bool = False
    error: str
    message: str
    details: List[ErrorDetail] = Field(default_factory=list)
    error_id: str = Field(default_factory=lambda: str(uuid.uuid4())[:8])
    timestamp: datetime = Field(default_factory=utcnow)
    path: Optional[str] = None
    method: Optional[str] = None


class ErrorType:
    """Standard error types for consistent handling"""

    VALIDATION_ERROR = "validation_error"
    AUTHENTICATION_ERROR = "authentication_error"
    AUTHORIZATION_ERROR = "authorization_error"
    NOT_FOUND_ERROR = "not_found_error"
    CONFLICT_ERROR = "conflict_error"
    INVALID_STATE_ERROR = "invalid_state_error"
    INTERNAL_ERROR = "internal_error"


# HTTP status codes to error types, for HTTPExceptions raised by the framework
ERROR_MAPPINGS = {
    400: ErrorType.VALIDATION_ERROR,
    401: ErrorType.AUTHENTICATION_ERROR,
    403: ErrorType.AUTHORIZATION_ERROR,
    404: ErrorType.NOT_FOUND_ERROR,
    405: ErrorType.VALIDATION_ERROR,
    409: ErrorType.CONFLICT_ERROR,
    412: ErrorType.INVALID_STATE_ERROR,
    413: ErrorType.VALIDATION_ERROR,
    422: ErrorType.VALIDATION_ERROR,
}


def _render(status_code: int, response: APIErrorResponse, headers: Optional[dict] = None):
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"), headers=headers)


async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    """Render taxonomy errors with their stable status and type"""
    error_response = APIErrorResponse(
        error=exc.error_type,
        message=exc.message,
        path=str(request.url.path),
        method=request.method,
    )

    log = logger.error if exc.status_code >= 500 else logger.info
    log(f"{exc.error_type} ({error_response.error_id}) on {request.method} {request.url.path}: {exc.message}")

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return _render(exc.status_code, error_response, headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body and parameter validation failures"""
    details = []
    for item in exc.errors():
        loc = item.get("loc") or []
        details.append(
            ErrorDetail(
                field=str(loc[-1]) if loc else None,
                message=item.get("msg", "Validation error"),
                type=item.get("type"),
            )
        )

    error_response = APIErrorResponse(
        error=ErrorType.VALIDATION_ERROR,
        message="Invalid request data provided",
        details=details,
        path=str(request.url.path),
        method=request.method,
    )
    logger.info(f"Validation failed ({error_response.error_id}) on {request.method} {request.url.path}")
    return _render(status.HTTP_422_UNPROCESSABLE_ENTITY, error_response)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework HTTPExceptions (unknown routes, wrong methods, ...)"""
    error_type = ERROR_MAPPINGS.get(exc.status_code, ErrorType.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"

    error_response = APIErrorResponse(
        error=error_type,
        message=message,
        path=str(request.url.path),
        method=request.method,
    )
    return _render(exc.status_code, error_response, getattr(exc, "headers", None))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Generic 500; the traceback only goes to the log"""
    error_response = APIErrorResponse(
        error=ErrorType.INTERNAL_ERROR,
        message="Internal server error occurred",
        path=str(request.url.path),
        method=request.method,
    )
    logger.error(
        f"Unexpected error ({error_response.error_id}): {exc}",
        exc_info=True,
        extra={
            "error_id": error_response.error_id,
            "exception_type": type(exc).__name__,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return _render(status.HTTP_500_INTERNAL_SERVER_ERROR, error_response)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the marketplace error handlers on an application"""
    app.add_exception_handler(MarketplaceError, marketplace_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
