"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from datetime import timedelta
from functools import lru_cache

from fastapi import Depends, Request

from burrow.adapters.smtp.console import ConsoleEmailSender
from burrow.adapters.system import SecretsTokenSource, SystemClock
from burrow.api.errors import http_error
from burrow.config.settings import Settings, get_settings
from burrow.domain.credentials import CredentialStore
from burrow.domain.exceptions import AuthError, StorageFailure
from burrow.domain.invitations import InvitationLedger
from burrow.domain.models import Account
from burrow.domain.password_reset import PasswordResetFlow
from burrow.domain.ports import Clock, EmailSender, Storage, TokenSource
from burrow.domain.registration import RegistrationCoordinator
from burrow.domain.sessions import SessionAuthenticator

# Module-level singletons - both are stateless
_clock = SystemClock()
_token_source = SecretsTokenSource()


def get_store(request: Request) -> Storage:
    """
    Get storage from app state.

    The store is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.store


def get_clock() -> Clock:
    return _clock


def get_token_source() -> TokenSource:
    return _token_source


@lru_cache
def get_credential_store() -> CredentialStore:
    """Credential store (singleton; building it hashes the dummy credential)."""
    settings = get_settings()
    return CredentialStore(rounds=settings.bcrypt_cost, min_length=settings.password_min_length)


@lru_cache
def get_email_sender() -> EmailSender:
    """Get console email sender (singleton)."""
    return ConsoleEmailSender(base_url=get_settings().app_url)


def get_invitation_ledger(
    store: Storage = Depends(get_store),
    clock: Clock = Depends(get_clock),
    tokens: TokenSource = Depends(get_token_source),
    email_sender: EmailSender = Depends(get_email_sender),
    settings: Settings = Depends(get_settings),
) -> InvitationLedger:
    ttl = timedelta(days=settings.invitation_ttl_days) if settings.invitation_ttl_days else None
    return InvitationLedger(
        invitations=store.invitations,
        accounts=store.accounts,
        clock=clock,
        tokens=tokens,
        email_sender=email_sender,
        ttl=ttl,
        min_karma=settings.invite_min_karma,
        weekly_limit=settings.invite_weekly_limit,
    )


def get_registration_coordinator(
    store: Storage = Depends(get_store),
    ledger: InvitationLedger = Depends(get_invitation_ledger),
    credentials: CredentialStore = Depends(get_credential_store),
    clock: Clock = Depends(get_clock),
    email_sender: EmailSender = Depends(get_email_sender),
) -> RegistrationCoordinator:
    """
    Create registration coordinator with injected dependencies.

    Wires together the account repository, invitation ledger and
    credential store for the domain service.
    """
    return RegistrationCoordinator(
        accounts=store.accounts,
        ledger=ledger,
        credentials=credentials,
        clock=clock,
        email_sender=email_sender,
    )


def get_session_authenticator(
    store: Storage = Depends(get_store),
    credentials: CredentialStore = Depends(get_credential_store),
    clock: Clock = Depends(get_clock),
    tokens: TokenSource = Depends(get_token_source),
    settings: Settings = Depends(get_settings),
) -> SessionAuthenticator:
    return SessionAuthenticator(
        accounts=store.accounts,
        sessions=store.sessions,
        credentials=credentials,
        clock=clock,
        tokens=tokens,
        ttl=timedelta(days=settings.session_ttl_days),
        remember_me_ttl=timedelta(days=settings.remember_me_ttl_days),
        sliding_expiration=settings.session_sliding_expiration,
    )


def get_password_reset_flow(
    store: Storage = Depends(get_store),
    credentials: CredentialStore = Depends(get_credential_store),
    clock: Clock = Depends(get_clock),
    tokens: TokenSource = Depends(get_token_source),
    email_sender: EmailSender = Depends(get_email_sender),
    settings: Settings = Depends(get_settings),
) -> PasswordResetFlow:
    return PasswordResetFlow(
        accounts=store.accounts,
        reset_tokens=store.reset_tokens,
        credentials=credentials,
        clock=clock,
        tokens=tokens,
        email_sender=email_sender,
        ttl=timedelta(minutes=settings.reset_token_ttl_minutes),
    )


def get_session_token(request: Request, settings: Settings = Depends(get_settings)) -> str:
    """Session token from the session cookie, or an empty string."""
    return request.cookies.get(settings.session_cookie_name, "")


def get_current_account(
    token: str = Depends(get_session_token),
    authenticator: SessionAuthenticator = Depends(get_session_authenticator),
) -> Account:
    """
    Resolve the session cookie to an account.

    Raises:
        HTTPException: 401 if the session is missing, invalid or expired
    """
    try:
        return authenticator.authenticate(token)
    except (AuthError, StorageFailure) as e:
        raise http_error(e) from None
