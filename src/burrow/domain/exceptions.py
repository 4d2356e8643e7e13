"""
Domain exceptions - Semantic error types for account provisioning.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.

Every domain failure carries an ErrorKind. The kind is the only thing
callers should branch on; mapping kinds to user-facing text happens at
the HTTP boundary.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Discriminant for domain failures."""

    INVALID_INVITATION = "invalid_invitation"
    EMAIL_MISMATCH = "email_mismatch"
    INVITATION_NOT_PERMITTED = "invitation_not_permitted"
    USERNAME_TAKEN = "username_taken"
    EMAIL_TAKEN = "email_taken"
    PASSWORD_MISMATCH = "password_mismatch"
    WEAK_PASSWORD = "weak_password"
    VALIDATION_ERROR = "validation_error"
    INVALID_CREDENTIALS = "invalid_credentials"
    SESSION_EXPIRED = "session_expired"
    SESSION_INVALID = "session_invalid"
    TOKEN_INVALID = "token_invalid"
    TOKEN_EXPIRED = "token_expired"


class AuthError(Exception):
    """Base class for account and authentication domain errors."""

    kind: ErrorKind


class InvalidInvitation(AuthError):
    """Invitation is unknown, consumed, revoked, or expired."""

    kind = ErrorKind.INVALID_INVITATION


class EmailMismatch(AuthError):
    """Invitation targets a different email address."""

    kind = ErrorKind.EMAIL_MISMATCH


class InvitationNotPermitted(AuthError):
    """Inviter may not issue this invitation right now."""

    kind = ErrorKind.INVITATION_NOT_PERMITTED


class UsernameTaken(AuthError):
    kind = ErrorKind.USERNAME_TAKEN


class EmailTaken(AuthError):
    kind = ErrorKind.EMAIL_TAKEN


class PasswordMismatch(AuthError):
    """Password and its confirmation differ."""

    kind = ErrorKind.PASSWORD_MISMATCH


class WeakPassword(AuthError):
    """Password is below the minimum length."""

    kind = ErrorKind.WEAK_PASSWORD


class ValidationError(AuthError):
    """Input is malformed (username pattern, email format, password size)."""

    kind = ErrorKind.VALIDATION_ERROR


class InvalidCredentials(AuthError):
    """Unknown account, wrong password, or banned account. Deliberately generic."""

    kind = ErrorKind.INVALID_CREDENTIALS


class SessionExpired(AuthError):
    kind = ErrorKind.SESSION_EXPIRED


class SessionInvalid(AuthError):
    """Session token is unknown or revoked."""

    kind = ErrorKind.SESSION_INVALID


class TokenInvalid(AuthError):
    """Reset token is unknown or already used."""

    kind = ErrorKind.TOKEN_INVALID


class TokenExpired(AuthError):
    kind = ErrorKind.TOKEN_EXPIRED


class StorageFailure(Exception):
    """
    Persistence layer failed (connectivity, pool exhaustion, unexpected constraint).

    Not an AuthError: callers should show a generic retry message rather
    than a domain error.
    """

    pass
