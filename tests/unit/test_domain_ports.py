"""
Unit tests for domain ports and exceptions.

Tests verify:
- Repository result enums carry their wire values
- In-memory repositories share one set of tables
- Every domain failure carries its ErrorKind
- Domain purity (zero framework imports)
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from uuid import uuid4

import pytest

import burrow.domain
from burrow.adapters.repository.memory import InMemoryStore
from burrow.adapters.smtp.console import ConsoleEmailSender
from burrow.adapters.system import SecretsTokenSource, SystemClock
from burrow.domain.exceptions import (
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
from burrow.domain.models import Account, Credential, ResetToken, Session
from burrow.domain.ports import (
    Clock,
    ConsumeResult,
    CreateResult,
    EmailSender,
    RedeemResult,
    Storage,
    TokenSource,
)

DOMAIN_DIR = Path(burrow.domain.__file__).parent
NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class TestResultEnums:
    """Repository outcomes are plain enums, not exceptions."""

    def test_consume_result_values(self) -> None:
        assert {r.value for r in ConsumeResult} == {"success", "invalid", "email_mismatch"}

    def test_create_result_values(self) -> None:
        assert {r.value for r in CreateResult} == {
            "created",
            "invalid_invitation",
            "email_mismatch",
            "username_taken",
            "email_taken",
        }

    def test_redeem_result_values(self) -> None:
        assert {r.value for r in RedeemResult} == {"success", "invalid", "expired"}


class TestProtocols:
    """Adapters implement ports through structural subtyping."""

    def test_in_memory_store_repositories_share_state(self) -> None:
        """A reset redeemed through one repository revokes sessions held by another."""
        store: Storage = InMemoryStore()
        account = Account(
            id=uuid4(),
            username="bob",
            email="bob@example.com",
            credential=Credential("old"),
            created_at=NOW,
        )
        store.accounts.create(account)
        store.sessions.add(
            Session(
                token_hash="s" * 64,
                account_id=account.id,
                created_at=NOW,
                expires_at=NOW + timedelta(days=1),
            )
        )
        store.reset_tokens.issue(
            ResetToken(
                token_hash="r" * 64,
                account_id=account.id,
                created_at=NOW,
                expires_at=NOW + timedelta(hours=1),
            ),
            NOW,
        )

        assert store.reset_tokens.redeem("r" * 64, Credential("new"), NOW) == (
            RedeemResult.SUCCESS,
            account.id,
        )
        assert store.accounts.find_by_id(account.id).credential == Credential("new")
        assert store.sessions.get("s" * 64).revoked_at == NOW

    def test_system_adapters(self) -> None:
        def accepts(clock: Clock, tokens: TokenSource, sender: EmailSender) -> None:
            pass

        accepts(SystemClock(), SecretsTokenSource(), ConsoleEmailSender())

    def test_system_clock_is_utc_aware(self) -> None:
        now = SystemClock().now()
        assert now.tzinfo is not None
        assert now.utcoffset().total_seconds() == 0

    def test_tokens_are_url_safe_and_unique(self) -> None:
        source = SecretsTokenSource()
        tokens = {source.new_token() for _ in range(100)}
        assert len(tokens) == 100
        assert all(t.replace("-", "").replace("_", "").isalnum() for t in tokens)


class TestDomainExceptions:
    """Tests for the AuthError hierarchy."""

    @pytest.mark.parametrize(
        ("error", "kind"),
        [
            (InvalidInvitation, ErrorKind.INVALID_INVITATION),
            (EmailMismatch, ErrorKind.EMAIL_MISMATCH),
            (InvitationNotPermitted, ErrorKind.INVITATION_NOT_PERMITTED),
            (UsernameTaken, ErrorKind.USERNAME_TAKEN),
            (EmailTaken, ErrorKind.EMAIL_TAKEN),
            (PasswordMismatch, ErrorKind.PASSWORD_MISMATCH),
            (WeakPassword, ErrorKind.WEAK_PASSWORD),
            (ValidationError, ErrorKind.VALIDATION_ERROR),
            (InvalidCredentials, ErrorKind.INVALID_CREDENTIALS),
            (SessionExpired, ErrorKind.SESSION_EXPIRED),
            (SessionInvalid, ErrorKind.SESSION_INVALID),
            (TokenInvalid, ErrorKind.TOKEN_INVALID),
            (TokenExpired, ErrorKind.TOKEN_EXPIRED),
        ],
    )
    def test_error_carries_kind(self, error: type[AuthError], kind: ErrorKind) -> None:
        assert issubclass(error, AuthError)
        assert error().kind == kind

    def test_every_kind_has_an_error(self) -> None:
        kinds = {cls.kind for cls in AuthError.__subclasses__()}
        assert kinds == set(ErrorKind)

    def test_kind_is_string(self) -> None:
        assert ErrorKind.EMAIL_TAKEN == "email_taken"

    def test_storage_failure_is_not_auth_error(self) -> None:
        assert not issubclass(StorageFailure, AuthError)


class TestDomainPurity:
    """Domain layer imports no web or database framework."""

    @pytest.mark.parametrize("framework", ["fastapi", "pydantic", "psycopg", "starlette"])
    def test_no_framework_imports_in_domain(self, framework: str) -> None:
        for source in DOMAIN_DIR.glob("*.py"):
            text = source.read_text()
            assert f"from {framework}" not in text, f"{framework} import in {source.name}"
            assert f"import {framework}" not in text, f"{framework} import in {source.name}"
