"""
Custom exceptions for the formations data-access layer.

Provides a hierarchy of exceptions so callers can tell propagated backend
failures apart from authentication and input errors.
"""

from typing import Any, Dict, Optional


class FormationsError(Exception):
    """Base exception for all formations errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(FormationsError):
    """Invalid caller input (page, page size, sort)."""
    pass


class AuthenticationError(FormationsError):
    """The operation needs a signed-in user and none was resolved."""
    pass


class DataAccessError(FormationsError):
    """Base class for data access errors."""
    pass


class BackendError(DataAccessError):
    """The backend answered with a non-success response."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        hint: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.code = code
        self.hint = hint
        self.status_code = status_code


class RecordNotFoundError(BackendError):
    """A single-row read matched zero rows or more than one."""
    pass
