from typing import Optional


class CatalogError(Exception):
    """
    Base class for errors raised deliberately by the catalog.

    Each subclass declares the HTTP status it maps to. The error handler
    falls back to 500 for errors that do not set one.
    """
    status_code: Optional[int] = None
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(CatalogError):
    """Exception raised when the requested resource doesn't exist."""
    status_code = 404
    default_message = "Resource not found"


class ConflictError(CatalogError):
    """Exception raised when a write would duplicate existing state."""
    status_code = 400
    default_message = "Resource already exists"


class AuthError(CatalogError):
    """Exception raised when the caller's identity is missing or rejected."""
    status_code = 401
    default_message = "Invalid token"
