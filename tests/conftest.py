"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- A controllable clock and an in-memory store
- A cheap credential store (bcrypt cost 4)
- The domain services wired to those, with a Mock email sender
- Helpers to seed accounts and invitations
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock
from uuid import uuid4

import pytest

from burrow.adapters.repository.memory import InMemoryStore
from burrow.adapters.system import SecretsTokenSource
from burrow.domain.credentials import CredentialStore
from burrow.domain.invitations import InvitationLedger
from burrow.domain.models import Account, Invitation
from burrow.domain.password_reset import PasswordResetFlow
from burrow.domain.registration import RegistrationCoordinator
from burrow.domain.sessions import SessionAuthenticator

START = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
PASSWORD = "password123"


class FrozenClock:
    """Implements Clock protocol; time moves only when told to."""

    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current += delta


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture(scope="session")
def credentials() -> CredentialStore:
    """Low-cost credential store so tests don't spend seconds in bcrypt."""
    return CredentialStore(rounds=4)


@pytest.fixture
def email_sender() -> Mock:
    return Mock()


@pytest.fixture
def ledger(store: InMemoryStore, clock: FrozenClock, email_sender: Mock) -> InvitationLedger:
    return InvitationLedger(
        invitations=store.invitations,
        accounts=store.accounts,
        clock=clock,
        tokens=SecretsTokenSource(),
        email_sender=email_sender,
    )


@pytest.fixture
def coordinator(
    store: InMemoryStore,
    ledger: InvitationLedger,
    credentials: CredentialStore,
    clock: FrozenClock,
    email_sender: Mock,
) -> RegistrationCoordinator:
    return RegistrationCoordinator(
        accounts=store.accounts,
        ledger=ledger,
        credentials=credentials,
        clock=clock,
        email_sender=email_sender,
    )


@pytest.fixture
def authenticator(
    store: InMemoryStore, credentials: CredentialStore, clock: FrozenClock
) -> SessionAuthenticator:
    return SessionAuthenticator(
        accounts=store.accounts,
        sessions=store.sessions,
        credentials=credentials,
        clock=clock,
        tokens=SecretsTokenSource(),
    )


@pytest.fixture
def reset_flow(
    store: InMemoryStore, credentials: CredentialStore, clock: FrozenClock, email_sender: Mock
) -> PasswordResetFlow:
    return PasswordResetFlow(
        accounts=store.accounts,
        reset_tokens=store.reset_tokens,
        credentials=credentials,
        clock=clock,
        tokens=SecretsTokenSource(),
        email_sender=email_sender,
    )


@pytest.fixture
def make_account(
    store: InMemoryStore, credentials: CredentialStore, clock: FrozenClock
) -> Callable[..., Account]:
    """Factory that stores an account directly, bypassing registration."""

    def _make(
        username: str = "bob",
        email: str = "bob@example.com",
        password: str = PASSWORD,
        **fields,
    ) -> Account:
        account = Account(
            id=uuid4(),
            username=username,
            email=email,
            credential=credentials.hash(password),
            created_at=clock.now(),
            **fields,
        )
        store.accounts.create(account)
        return account

    return _make


@pytest.fixture
def inviter(make_account: Callable[..., Account]) -> Account:
    """An account allowed to send invitations."""
    return make_account("carol", "carol@example.com", karma=10)


@pytest.fixture
def make_invitation(
    store: InMemoryStore, inviter: Account, clock: FrozenClock
) -> Callable[..., Invitation]:
    """Factory that stores a PENDING invitation from ``inviter``."""

    def _make(code: str = "abc123", target_email: str | None = None, **fields) -> Invitation:
        invitation = Invitation(
            code=code,
            inviter_id=inviter.id,
            created_at=clock.now(),
            target_email=target_email,
            **fields,
        )
        store.invitations.add(invitation)
        return invitation

    return _make
