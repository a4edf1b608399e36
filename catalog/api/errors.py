"""
Error classification.

Every failure leaves the API as one JSON envelope:

    {"success": false, "status": <code>, "message": <text>, "stack": <trace>}

``stack`` is only included outside production.
"""
import logging
import re
import traceback
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from catalog.config import get_settings
from catalog.exceptions import CatalogError
from catalog.schemas.product import REQUIRED_MESSAGES

logger = logging.getLogger(__name__)

# SQLite: "UNIQUE constraint failed: products.name"
_SQLITE_DUPLICATE = re.compile(r"UNIQUE constraint failed: \w+\.(\w+)")
# PostgreSQL: "Key (name)=(Widget) already exists."
_POSTGRES_DUPLICATE = re.compile(r"Key \((\w+)[,)]")


def error_response(exc: Exception, status_code: int, message: str) -> JSONResponse:
    """Build the error envelope for a classified failure."""
    body = {"success": False, "status": status_code, "message": message}
    if not get_settings().is_production:
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=status_code, content=body)


def duplicate_field(exc: IntegrityError) -> Optional[str]:
    """Name of the column behind a unique-key violation, or None."""
    text = str(exc.orig)
    for pattern in (_SQLITE_DUPLICATE, _POSTGRES_DUPLICATE):
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def validation_message(exc: RequestValidationError) -> str:
    """Join the message of every failing field with ', '."""
    messages = []
    for error in exc.errors():
        loc = [part for part in error.get("loc", ()) if isinstance(part, str)]
        field = loc[-1] if loc else ""
        if error.get("type") == "missing":
            message = REQUIRED_MESSAGES.get(field, f"{field} is required")
        else:
            message = error.get("msg", "Invalid value").removeprefix("Value error, ")
        if message not in messages:
            messages.append(message)
    return ", ".join(messages)


async def catalog_error_handler(request: Request, exc: CatalogError):
    return error_response(exc, exc.status_code or status.HTTP_500_INTERNAL_SERVER_ERROR, exc.message)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return error_response(exc, status.HTTP_400_BAD_REQUEST, validation_message(exc))


async def integrity_error_handler(request: Request, exc: IntegrityError):
    field = duplicate_field(exc)
    if field is None:
        logger.error(f"Unclassified integrity error on {request.url.path}: {exc.orig}")
        return error_response(exc, status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc.orig))
    return error_response(exc, status.HTTP_400_BAD_REQUEST, f"{field} already exists")


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # An unmatched path, or a known path without a route for the method
    unmatched = (
        (exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found")
        or exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED
    )
    if unmatched:
        url = request.url.path
        if request.url.query:
            url = f"{url}?{request.url.query}"
        return error_response(exc, status.HTTP_404_NOT_FOUND, f"Route not found: {url}")
    return error_response(exc, exc.status_code, str(exc.detail))


async def unhandled_exception_handler(request: Request, exc: Exception):
    # Re-raised after this handler runs; the ASGI server logs the traceback
    return error_response(exc, status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the error envelope handlers to the application."""
    app.add_exception_handler(CatalogError, catalog_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
