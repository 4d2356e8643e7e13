"""
Domain layer - Pure business logic with zero framework imports.

This package contains the core business logic for invitation-gated
account provisioning and authentication. It defines its own port
interfaces for infrastructure abstraction, ensuring true hexagonal
architecture decoupling.
"""

from .credentials import CredentialStore, hash_token
from .exceptions import (
    AuthError,
    EmailMismatch,
    EmailTaken,
    ErrorKind,
    InvalidCredentials,
    InvalidInvitation,
    InvitationNotPermitted,
    PasswordMismatch,
    SessionExpired,
    SessionInvalid,
    StorageFailure,
    TokenExpired,
    TokenInvalid,
    UsernameTaken,
    ValidationError,
    WeakPassword,
)
from .invitations import InvitationLedger
from .models import (
    Account,
    Credential,
    Invitation,
    InvitationStats,
    InvitationStatus,
    IssuedResetToken,
    IssuedSession,
    ResetToken,
    ResetTokenStatus,
    Session,
)
from .password_reset import PasswordResetFlow
from .ports import (
    AccountRepository,
    Clock,
    ConsumeResult,
    CreateResult,
    EmailSender,
    InvitationRepository,
    RedeemResult,
    ResetTokenRepository,
    SessionRepository,
    Storage,
    TokenSource,
)
from .registration import RegistrationCoordinator
from .sessions import SessionAuthenticator

__all__ = [
    "Account",
    "AccountRepository",
    "AuthError",
    "Clock",
    "ConsumeResult",
    "CreateResult",
    "Credential",
    "CredentialStore",
    "EmailMismatch",
    "EmailSender",
    "EmailTaken",
    "ErrorKind",
    "InvalidCredentials",
    "InvalidInvitation",
    "Invitation",
    "InvitationLedger",
    "InvitationNotPermitted",
    "InvitationRepository",
    "InvitationStats",
    "InvitationStatus",
    "IssuedResetToken",
    "IssuedSession",
    "PasswordMismatch",
    "PasswordResetFlow",
    "RedeemResult",
    "RegistrationCoordinator",
    "ResetToken",
    "ResetTokenRepository",
    "ResetTokenStatus",
    "Session",
    "SessionAuthenticator",
    "SessionExpired",
    "SessionInvalid",
    "SessionRepository",
    "Storage",
    "StorageFailure",
    "TokenExpired",
    "TokenInvalid",
    "TokenSource",
    "UsernameTaken",
    "ValidationError",
    "WeakPassword",
    "hash_token",
]
