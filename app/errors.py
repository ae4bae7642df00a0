"""
Exception types for the membership API.

ValidationError and StoreError are mapped to HTTP responses by the
handlers registered in main.py. DispatchError never leaves the SMS
dispatcher; it is folded into a failed SendResult.
"""


class AppError(Exception):
    """Base class for application errors."""


class ValidationError(AppError):
    """Request payload failed validation (client error)."""


class MissingFieldError(ValidationError):
    """A required field is absent or empty after trimming."""

    def __init__(self, message: str = "Missing required fields", fields=None):
        super().__init__(message)
        self.fields = list(fields or [])


class StoreError(AppError):
    """Database connection or query failure."""


class DispatchError(AppError):
    """Outbound SMS request could not be completed."""
