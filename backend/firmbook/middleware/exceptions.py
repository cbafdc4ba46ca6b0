"""Custom exception handlers for consistent error responses.

Provides the application exception hierarchy, standardized error
formatting and logging for debugging.
"""

import logging
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class FirmbookException(Exception):
    """Base exception for Firmbook application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: Union[dict, list, None] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class BusinessLogicError(FirmbookException):
    """Exception for business rule violations (illegal transitions etc.)."""

    def __init__(self, message: str, error_code: str = "BUSINESS_LOGIC_ERROR"):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code=error_code,
        )


class BillingValidationError(FirmbookException):
    """Input rejected before anything is written to the store."""

    def __init__(self, message: str, details: Union[dict, list, None] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="BILLING_VALIDATION_ERROR",
            details=details,
        )


class ResourceNotFoundError(FirmbookException):
    """Exception for resources not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND",
        )


class PermissionDeniedError(FirmbookException):
    """Exception for permission denied."""

    def __init__(self, message: str = "Access denied"):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="PERMISSION_DENIED",
        )


class DocumentStoreError(FirmbookException):
    """A read or write against the document store failed.

    Batched writes are all-or-nothing, so when this is raised from a
    commit nothing from the batch has been applied.
    """

    def __init__(self, message: str = "Document store unavailable"):
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="DOCUMENT_STORE_UNAVAILABLE",
        )


class DocumentNotFoundError(DocumentStoreError):
    """An update inside a batch targeted a document that does not exist.

    ``paths`` lists ``collection/id`` of the documents that may be missing;
    Firestore only reports that one of a batch's updates failed.
    """

    def __init__(self, *paths: str):
        if len(paths) == 1:
            message = f"No document to update: {paths[0]}"
        else:
            message = f"One of these documents no longer exists: {', '.join(paths)}"
        super().__init__(message)
        self.paths = list(paths)
        self.details = {"documents": self.paths}
        self.status_code = status.HTTP_409_CONFLICT
        self.error_code = "DOCUMENT_MISSING"


class DocumentSchemaError(FirmbookException):
    """A stored document does not match its schema."""

    def __init__(self, collection: str, doc_id: str, errors: list):
        super().__init__(
            message=f"Malformed document {collection}/{doc_id}",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="DOCUMENT_SCHEMA_ERROR",
            details={"errors": errors},
        )
        self.collection = collection
        self.doc_id = doc_id


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
) -> JSONResponse:
    """Render ``{"error": {"code", "message", "details"?}}``."""
    body: dict = {"code": error_code, "message": message}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content={"error": body})


def _request_context(request: Request) -> dict:
    return {"path": request.url.path, "method": request.method}


async def firmbook_exception_handler(request: Request, exc: FirmbookException) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "%s on %s: %s",
        exc.error_code, request.url.path, exc.message,
        extra={"error_code": exc.error_code, **_request_context(request)},
    )

    # Schema errors carry raw document contents; keep them in the log only
    details = None if isinstance(exc, DocumentSchemaError) else exc.details
    return create_error_response(exc.status_code, exc.message, exc.error_code, details)


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("HTTP %s on %s: %s", exc.status_code, request.url.path, exc.detail,
                     extra=_request_context(request))

    response = create_error_response(exc.status_code, str(exc.detail), f"HTTP_{exc.status_code}")
    if getattr(exc, "headers", None):
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    """Flatten pydantic errors into ``field`` / ``message`` / ``type`` entries."""
    raw = exc.errors()
    logger.warning("Validation error on %s (%d issue(s))", request.url.path, len(raw),
                   extra={**_request_context(request), "errors": raw})

    errors = [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in raw
    ]
    return create_error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        "VALIDATION_ERROR",
        {"errors": errors},
    )


async def integrity_exception_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """Activity-log constraint violations surface as 409."""
    reason = str(getattr(exc, "orig", None) or exc)
    logger.error("Activity log integrity error on %s: %s", request.url.path, reason,
                 extra=_request_context(request))

    lowered = reason.lower()
    if "unique" in lowered:
        message, error_code = "Activity entry already recorded", "DUPLICATE_RECORD"
    elif "not null" in lowered:
        message, error_code = "Activity entry is missing a required field", "NULL_VALUE_NOT_ALLOWED"
    else:
        message, error_code = "Activity log constraint violation", "INTEGRITY_ERROR"
    return create_error_response(status.HTTP_409_CONFLICT, message, error_code)


async def operational_exception_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error("Activity log database unavailable on %s: %s", request.url.path, exc,
                 extra=_request_context(request))
    return create_error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Database temporarily unavailable. Please try again.",
        "DATABASE_UNAVAILABLE",
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception on %s: %s", request.url.path, exc,
                 extra=_request_context(request), exc_info=True)
    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
        "INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    """Register all custom exception handlers with FastAPI app."""
    app.add_exception_handler(FirmbookException, firmbook_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_exception_handler)
    app.add_exception_handler(OperationalError, operational_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
