"""
Error taxonomy for the identity core.

Every failure raised by the core is an IdentityError carrying:
- kind: one of the closed ErrorKind values (decides the status class)
- code: a stable machine-readable string (e.g. "TOKEN_EXPIRED")
- message: a human readable, user-safe message
- details: optional field-level details (validation only)

The HTTP layer maps kind -> status; nothing in here knows about Flask.
"""
from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION_ERROR"
    AUTHENTICATION = "AUTHENTICATION_ERROR"
    AUTHORIZATION = "AUTHORIZATION_ERROR"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    DEPENDENCY = "DEPENDENCY_ERROR"

    @property
    def status(self) -> int:
        return STATUS_BY_KIND[self]


STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 422,
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.AUTHORIZATION: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.DEPENDENCY: 502,
}


class IdentityError(Exception):
    kind = ErrorKind.DEPENDENCY
    code = "IDENTITY_ERROR"
    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None, details: dict | None = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    @property
    def status(self) -> int:
        return self.kind.status

    def to_dict(self) -> dict:
        payload = {"error": self.code, "message": self.message, "status": self.status}
        if self.details:
            payload["details"] = self.details
        return payload


# Top-level classes, one per kind

class ValidationError(IdentityError):
    kind = ErrorKind.VALIDATION
    code = "VALIDATION_ERROR"
    default_message = "Invalid input"


class AuthenticationError(IdentityError):
    kind = ErrorKind.AUTHENTICATION
    code = "AUTHENTICATION_ERROR"
    default_message = "Authentication failed"


class AuthorizationError(IdentityError):
    kind = ErrorKind.AUTHORIZATION
    code = "AUTHORIZATION_ERROR"
    default_message = "Action not allowed"


class ConflictError(IdentityError):
    kind = ErrorKind.CONFLICT
    code = "CONFLICT"
    default_message = "Conflict"


class NotFoundError(IdentityError):
    kind = ErrorKind.NOT_FOUND
    code = "NOT_FOUND"
    default_message = "Resource not found"


class DependencyError(IdentityError):
    kind = ErrorKind.DEPENDENCY
    code = "DEPENDENCY_ERROR"
    default_message = "A required service is unavailable"


# Validation

class InvalidInput(ValidationError):
    code = "INVALID_INPUT"


class InvalidSubject(ValidationError):
    code = "INVALID_SUBJECT"
    default_message = "Invalid user ID for token creation"


# Authentication

class InvalidCredentials(AuthenticationError):
    code = "INVALID_CREDENTIALS"
    default_message = "Invalid username/email or password"


class NoToken(AuthenticationError):
    code = "NO_TOKEN"
    default_message = "Authentication required"


class InvalidToken(AuthenticationError):
    code = "INVALID_TOKEN"
    default_message = "Invalid token"


class InvalidSignature(InvalidToken):
    """Signature mismatch; reported with the same message as any bad token."""


class TokenExpired(AuthenticationError):
    code = "TOKEN_EXPIRED"
    default_message = "Token expired"


class InvalidRefreshToken(AuthenticationError):
    code = "INVALID_REFRESH_TOKEN"
    default_message = "Invalid refresh token"


class RefreshExpired(AuthenticationError):
    code = "REFRESH_EXPIRED"
    default_message = "Refresh token expired"


# Authorization

class AccountInactive(AuthorizationError):
    code = "ACCOUNT_INACTIVE"
    default_message = "Account not activated. Please check your email."


# Conflict

class DuplicateEmail(ConflictError):
    code = "DUPLICATE_EMAIL"
    default_message = "Email already exists"


class DuplicateUsername(ConflictError):
    code = "DUPLICATE_USERNAME"
    default_message = "Username already exists"


class AlreadyActivated(ConflictError):
    code = "ALREADY_ACTIVATED"
    default_message = "Account already activated"


# Not found

class AccountNotFound(NotFoundError):
    code = "ACCOUNT_NOT_FOUND"
    default_message = "No account found with this username or email"


class TokenNotFoundOrUsed(NotFoundError):
    code = "TOKEN_NOT_FOUND_OR_USED"
    default_message = "Invalid or already used token"


# Dependency

class NotificationFailed(DependencyError):
    code = "NOTIFICATION_FAILED"
    default_message = "Failed to send notification email"


class StorageError(DependencyError):
    code = "STORAGE_ERROR"
    default_message = "Storage is unavailable"
