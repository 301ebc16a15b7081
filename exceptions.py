"""
Typed errors raised by the inventory services and their HTTP mapping.

Services raise these; routes never build error responses by hand. Every
class carries the status code it is surfaced with, and
``register_exception_handlers`` turns them into the standard
``{"success": false, "message": ...}`` body.
"""
import logging
import traceback
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings

logger = logging.getLogger(__name__)


class InventoryError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Inventory operation failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_response(self) -> Dict[str, Any]:
        return {"success": False, "message": self.message}


class ValidationError(InventoryError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid data"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or []

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        if self.errors:
            body["errors"] = self.errors
        return body


class AuthenticationError(InventoryError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class PermissionDeniedError(InventoryError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class NotFoundError(InventoryError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class ConflictError(InventoryError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource already exists"


class InsufficientStockError(InventoryError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(f"Insufficient stock. Available: {available}, requested: {requested}")

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        body["data"] = {"available": self.available, "requested": self.requested}
        return body


class InvalidStateError(InventoryError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Operation not allowed in the current state"


class TransactionError(InventoryError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "The change could not be committed, please retry"


class StaleWriteError(TransactionError):
    """A compare-and-swap write found the row changed since it was read."""


class LedgerImmutableError(InventoryError):
    default_message = "Inventory movements cannot be modified or deleted"


def _envelope(status_code: int, body: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body)


async def inventory_error_handler(request: Request, exc: InventoryError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path,
                    type(exc).__name__, exc.message)
    return _envelope(exc.status_code, exc.to_response())


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        errors.append(f"{location}: {err.get('msg')}" if location else err.get("msg"))
    return _envelope(
        status.HTTP_400_BAD_REQUEST,
        {"success": False, "message": "Invalid data", "errors": errors},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _envelope(exc.status_code, {"success": False, "message": str(exc.detail)})


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    body: Dict[str, Any] = {"success": False, "message": "An internal error occurred"}
    if settings.DEBUG:
        body["error"] = type(exc).__name__
        body["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, body)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InventoryError, inventory_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
