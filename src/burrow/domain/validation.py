"""
Input normalization and validation shared by the domain services.
"""

import re

from email_validator import EmailNotValidError, validate_email

from .exceptions import ValidationError

# 3-50 chars, letters, digits, underscore and dash
USERNAME_PATTERN = re.compile(r"[a-zA-Z0-9_-]{3,50}")

MAX_EMAIL_LENGTH = 255


def is_encodable(text: str) -> bool:
    """False for strings with no UTF-8 form, such as lone surrogates."""
    try:
        text.encode()
    except UnicodeEncodeError:
        return False
    return True


def normalize_email(email: str) -> str:
    """
    Normalize email address for consistent storage and lookup.

    Applies: strip whitespace + lowercase
    """
    return email.strip().lower()


def check_username(username: str) -> str:
    """Return the stripped username or raise ValidationError."""
    username = username.strip()
    if not USERNAME_PATTERN.fullmatch(username):
        raise ValidationError(
            "Username must be 3-50 characters and contain only letters, "
            "numbers, underscores, and dashes"
        )
    return username


def check_email(email: str) -> str:
    """Return the normalized email or raise ValidationError."""
    email = normalize_email(email)
    if not email or len(email) > MAX_EMAIL_LENGTH or not is_encodable(email):
        raise ValidationError("Invalid email address")
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        raise ValidationError("Invalid email address") from None
    return email
