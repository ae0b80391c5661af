"""Failure kinds raised by the identity core.

Transport code maps these onto status codes; services never raise HTTP
errors directly.
"""
from typing import Optional


class IdentityError(Exception):
    """Base class for every failure surfaced by the identity services."""

    default_message = "Identity operation failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationError(IdentityError):
    default_message = "Invalid input"


class InvalidCredentialsError(IdentityError):
    default_message = "Invalid credentials"


class InvalidOrExpiredOtpError(IdentityError):
    default_message = "Invalid or expired code"


class AlreadyExistsError(IdentityError):
    default_message = "Resource already exists"


class StorageError(IdentityError):
    default_message = "Storage failure"


class InvalidTokenError(IdentityError):
    """Raised by the token issuer; services translate it to InvalidCredentialsError."""

    default_message = "Invalid or expired token"
