"""
Error mapping - Domain failures to HTTP responses.

The domain raises typed errors carrying an ErrorKind; this module is the
only place that turns a kind into a status code and the message the site
shows. Storage failures get a generic retry message so a database outage
is never reported as, say, a bad password.
"""

from fastapi import HTTPException, status

from burrow.domain.exceptions import AuthError, ErrorKind, StorageFailure

RESET_REQUESTED_MESSAGE = (
    "If that email address is registered, we've sent password reset instructions."
)
STORAGE_FAILURE_MESSAGE = "Something went wrong. Please try again."

ERROR_RESPONSES: dict[ErrorKind, tuple[int, str]] = {
    ErrorKind.INVALID_INVITATION: (
        status.HTTP_400_BAD_REQUEST,
        "This invitation link is invalid or has already been used.",
    ),
    ErrorKind.EMAIL_MISMATCH: (
        status.HTTP_400_BAD_REQUEST,
        "This invitation was sent to a different email address.",
    ),
    ErrorKind.INVITATION_NOT_PERMITTED: (
        status.HTTP_403_FORBIDDEN,
        "You cannot send invitations at this time.",
    ),
    ErrorKind.USERNAME_TAKEN: (status.HTTP_409_CONFLICT, "Username already taken"),
    ErrorKind.EMAIL_TAKEN: (status.HTTP_409_CONFLICT, "Email already registered"),
    ErrorKind.PASSWORD_MISMATCH: (status.HTTP_400_BAD_REQUEST, "Passwords do not match"),
    ErrorKind.WEAK_PASSWORD: (
        status.HTTP_400_BAD_REQUEST,
        "Password must be at least 8 characters long",
    ),
    ErrorKind.VALIDATION_ERROR: (status.HTTP_400_BAD_REQUEST, "Invalid input"),
    ErrorKind.INVALID_CREDENTIALS: (
        status.HTTP_401_UNAUTHORIZED,
        "Invalid username or password",
    ),
    ErrorKind.SESSION_EXPIRED: (
        status.HTTP_401_UNAUTHORIZED,
        "Your session has expired. Please log in again.",
    ),
    ErrorKind.SESSION_INVALID: (status.HTTP_401_UNAUTHORIZED, "Please log in to continue."),
    ErrorKind.TOKEN_INVALID: (
        status.HTTP_400_BAD_REQUEST,
        "This password reset link is invalid or has already been used.",
    ),
    ErrorKind.TOKEN_EXPIRED: (
        status.HTTP_400_BAD_REQUEST,
        "This password reset link has expired. Please request a new one.",
    ),
}

# Kinds whose exception text is written for users and may be shown as-is
_USER_FACING_DETAIL = {
    ErrorKind.VALIDATION_ERROR,
    ErrorKind.WEAK_PASSWORD,
    ErrorKind.INVITATION_NOT_PERMITTED,
}


def http_error(error: AuthError | StorageFailure) -> HTTPException:
    """Build the HTTPException for a domain or storage failure."""
    if isinstance(error, StorageFailure):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=STORAGE_FAILURE_MESSAGE,
        )

    status_code, message = ERROR_RESPONSES[error.kind]
    if error.kind in _USER_FACING_DETAIL and str(error):
        message = str(error)

    headers = None
    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Cookie"}
    return HTTPException(status_code=status_code, detail=message, headers=headers)
