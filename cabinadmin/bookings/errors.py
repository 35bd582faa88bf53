"""Errors raised by the booking data-access layer."""

from __future__ import annotations


class BookingError(RuntimeError):
    """Base class for errors callers of the repositories should handle."""


class ValidationError(BookingError):
    """Raised when incoming data fails validation."""


class NotFoundError(BookingError):
    """Raised when an identity-scoped operation matched no row, or several."""


class StorageError(BookingError):
    """Raised when the store fails; ``str()`` is safe to show to a user."""

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message)
        self.detail = detail


class ConfigurationError(RuntimeError):
    """Raised when process configuration is missing or malformed."""
