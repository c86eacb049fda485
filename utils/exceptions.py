"""
Custom exceptions and error handlers for the application.
Provides structured error responses.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from bson.errors import InvalidId
from pydantic import ValidationError
import logging

logger = logging.getLogger(__name__)


class APIException(Exception):
    """Base API exception class."""
    def __init__(self, message: str, status_code: int = 500, error_code: str = None, reason: str = None):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or f"ERR_{status_code}"
        self.reason = reason
        super().__init__(self.message)


class NotFoundException(APIException):
    """Resource not found exception."""
    def __init__(self, resource: str, resource_id: str = None):
        message = f"{resource} not found"
        if resource_id:
            message += f": {resource_id}"
        super().__init__(message, status_code=404, error_code="NOT_FOUND")


class ValidationException(APIException):
    """Validation exception."""
    def __init__(self, message: str, errors: dict = None):
        super().__init__(message, status_code=400, error_code="VALIDATION_ERROR")
        self.errors = errors or {}

    @classmethod
    def from_pydantic(cls, exc: ValidationError, message: str = "Validation failed"):
        """Build a field-level validation error out of a pydantic ValidationError."""
        errors = {}
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"]) or "__root__"
            # Keep the first message reported for each field
            errors.setdefault(field, error["msg"])
        return cls(message, errors=errors)


class UnauthorizedException(APIException):
    """Unauthorized access exception."""
    def __init__(self, message: str = "Unauthorized access"):
        super().__init__(message, status_code=401, error_code="UNAUTHORIZED")


class ForbiddenException(APIException):
    """Forbidden access exception."""
    def __init__(self, message: str = "Forbidden", reason: str = None):
        super().__init__(message, status_code=403, error_code="FORBIDDEN", reason=reason)


class ConflictException(APIException):
    """State or uniqueness conflict (duplicate review, already joined, ...)."""
    def __init__(self, message: str, reason: str = None):
        super().__init__(message, status_code=409, error_code="CONFLICT", reason=reason)


class InternalException(APIException):
    """Unexpected persistence or storage failure."""
    def __init__(self, message: str = "Internal server error"):
        super().__init__(message, status_code=500, error_code="INTERNAL_ERROR")


async def api_exception_handler(request: Request, exc: APIException):
    """Handle API exceptions."""
    if exc.status_code >= 500:
        logger.error(f"API Exception: {exc.message} (Code: {exc.error_code}, Status: {exc.status_code})")
    else:
        logger.info(f"API Exception: {exc.message} (Code: {exc.error_code}, Status: {exc.status_code})")
    content = {
        "detail": exc.message,
        "error_code": exc.error_code,
        "status_code": exc.status_code
    }
    if exc.reason:
        content["reason"] = exc.reason
    if getattr(exc, "errors", None):
        content["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=content)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors."""
    errors = exc.errors()
    error_details = {}

    for error in errors:
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        error_details[field] = error["msg"]

    logger.warning(f"Validation error: {error_details}")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Validation error",
            "error_code": "VALIDATION_ERROR",
            "errors": error_details
        }
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    logger.warning(f"HTTP Exception: {exc.detail} (Status: {exc.status_code})")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "error_code": f"HTTP_{exc.status_code}",
            "status_code": exc.status_code
        }
    )


async def invalid_id_handler(request: Request, exc: InvalidId):
    """Handle invalid MongoDB ObjectId errors."""
    logger.warning(f"Invalid ObjectId: {exc}")
    return JSONResponse(
        status_code=400,
        content={
            "detail": "Invalid ID format",
            "error_code": "INVALID_ID",
            "status_code": 400
        }
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unhandled exception: {type(exc).__name__}: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_code": "INTERNAL_ERROR",
            "status_code": 500
        }
    )
