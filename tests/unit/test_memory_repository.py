"""
Unit tests for the in-memory repository adapter.

The in-memory store backs local development and the test suite, so it
must honor the same atomicity and isolation contract as PostgreSQL.
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from burrow.adapters.repository.memory import InMemoryStore
from burrow.domain.models import (
    Account,
    Credential,
    Invitation,
    InvitationStatus,
    ResetToken,
    ResetTokenStatus,
    Session,
)
from burrow.domain.ports import ConsumeResult, CreateResult, RedeemResult

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def new_account(username: str = "bob", email: str = "bob@example.com") -> Account:
    return Account(
        id=uuid4(),
        username=username,
        email=email,
        credential=Credential("$2b$04$placeholder"),
        created_at=NOW,
    )


def new_invitation(inviter: Account, code: str = "abc123", **fields) -> Invitation:
    fields.setdefault("created_at", NOW)
    return Invitation(code=code, inviter_id=inviter.id, **fields)


@pytest.fixture
def bob(store: InMemoryStore) -> Account:
    account = new_account()
    store.accounts.create(account)
    return account


class TestAccounts:
    """Tests for InMemoryAccountRepository."""

    def test_create_and_find(self, store: InMemoryStore, bob: Account) -> None:
        assert store.accounts.find_by_id(bob.id) == bob
        assert store.accounts.find_by_username("BOB") == bob
        assert store.accounts.find_by_email("bob@example.com") == bob

    def test_returned_entities_are_copies(self, store: InMemoryStore, bob: Account) -> None:
        found = store.accounts.find_by_id(bob.id)
        found.karma = 999
        assert store.accounts.find_by_id(bob.id).karma == 1

    def test_duplicate_username(self, store: InMemoryStore, bob: Account) -> None:
        result = store.accounts.create(new_account("Bob", "other@example.com"))
        assert result == CreateResult.USERNAME_TAKEN

    def test_duplicate_email(self, store: InMemoryStore, bob: Account) -> None:
        result = store.accounts.create(new_account("robert", "bob@example.com"))
        assert result == CreateResult.EMAIL_TAKEN

    def test_update_credential(self, store: InMemoryStore, bob: Account) -> None:
        store.accounts.update_credential(bob.id, Credential("$2b$04$other"))
        assert store.accounts.find_by_id(bob.id).credential == Credential("$2b$04$other")

    def test_create_with_invitation(self, store: InMemoryStore, bob: Account) -> None:
        store.invitations.add(new_invitation(bob, target_email="alice@example.com"))
        alice = new_account("alice", "alice@example.com")

        assert store.accounts.create_with_invitation(alice, "abc123", NOW) == CreateResult.CREATED

        invitation = store.invitations.get("abc123")
        assert invitation.status == InvitationStatus.CONSUMED
        assert invitation.consumed_by_id == alice.id
        assert store.accounts.find_by_id(alice.id) == alice

    def test_create_with_invitation_conflict_rolls_back(
        self, store: InMemoryStore, bob: Account
    ) -> None:
        store.invitations.add(new_invitation(bob))
        clash = new_account("bob", "new@example.com")

        result = store.accounts.create_with_invitation(clash, "abc123", NOW)

        assert result == CreateResult.USERNAME_TAKEN
        assert store.invitations.get("abc123").status == InvitationStatus.PENDING
        assert store.accounts.find_by_id(clash.id) is None

    def test_create_with_invitation_email_mismatch(
        self, store: InMemoryStore, bob: Account
    ) -> None:
        store.invitations.add(new_invitation(bob, target_email="carol@example.com"))
        result = store.accounts.create_with_invitation(new_account("alice", "alice@example.com"), "abc123", NOW)
        assert result == CreateResult.EMAIL_MISMATCH

    def test_create_with_expired_invitation(self, store: InMemoryStore, bob: Account) -> None:
        store.invitations.add(new_invitation(bob, expires_at=NOW))
        result = store.accounts.create_with_invitation(new_account("alice", "a@example.com"), "abc123", NOW)
        assert result == CreateResult.INVALID_INVITATION


class TestInvitations:
    """Tests for InMemoryInvitationRepository."""

    def test_consume_compare_and_set(self, store: InMemoryStore, bob: Account) -> None:
        store.invitations.add(new_invitation(bob))
        assert store.invitations.consume("abc123", "x@example.com", NOW) == ConsumeResult.SUCCESS
        assert store.invitations.consume("abc123", "x@example.com", NOW) == ConsumeResult.INVALID

    def test_consume_mismatch(self, store: InMemoryStore, bob: Account) -> None:
        store.invitations.add(new_invitation(bob, target_email="carol@example.com"))
        result = store.invitations.consume("abc123", "alice@example.com", NOW)
        assert result == ConsumeResult.EMAIL_MISMATCH
        assert store.invitations.get("abc123").status == InvitationStatus.PENDING

    def test_revoke_only_by_inviter(self, store: InMemoryStore, bob: Account) -> None:
        store.invitations.add(new_invitation(bob))
        assert store.invitations.revoke("abc123", uuid4()) is False
        assert store.invitations.revoke("abc123", bob.id) is True
        assert store.invitations.revoke("abc123", bob.id) is False

    def test_count_issued_since(self, store: InMemoryStore, bob: Account) -> None:
        store.invitations.add(new_invitation(bob, "old", created_at=NOW - timedelta(days=8)))
        store.invitations.add(new_invitation(bob, "new"))
        assert store.invitations.count_issued_since(bob.id, NOW - timedelta(days=7)) == 1

    def test_has_pending_for_email(self, store: InMemoryStore, bob: Account) -> None:
        store.invitations.add(new_invitation(bob, target_email="carol@example.com"))
        assert store.invitations.has_pending_for_email("carol@example.com", NOW) is True
        assert store.invitations.has_pending_for_email("dave@example.com", NOW) is False


class TestSessions:
    """Tests for InMemorySessionRepository."""

    def _session(self, account: Account, token_hash: str = "h1", days: int = 14) -> Session:
        return Session(
            token_hash=token_hash,
            account_id=account.id,
            created_at=NOW,
            expires_at=NOW + timedelta(days=days),
        )

    def test_revoke_once(self, store: InMemoryStore, bob: Account) -> None:
        store.sessions.add(self._session(bob))
        assert store.sessions.revoke("h1", NOW) is True
        assert store.sessions.revoke("h1", NOW) is False
        assert store.sessions.get("h1").revoked_at == NOW

    def test_revoke_all_for_account(self, store: InMemoryStore, bob: Account) -> None:
        store.sessions.add(self._session(bob, "h1"))
        store.sessions.add(self._session(bob, "h2"))
        assert store.sessions.revoke_all_for_account(bob.id, NOW) == 2

    def test_extend(self, store: InMemoryStore, bob: Account) -> None:
        store.sessions.add(self._session(bob))
        store.sessions.extend("h1", NOW + timedelta(days=30))
        assert store.sessions.get("h1").expires_at == NOW + timedelta(days=30)


class TestResetTokens:
    """Tests for InMemoryResetTokenRepository."""

    def _token(self, account: Account, token_hash: str) -> ResetToken:
        return ResetToken(
            token_hash=token_hash,
            account_id=account.id,
            created_at=NOW,
            expires_at=NOW + timedelta(hours=1),
        )

    def test_issue_supersedes_pending(self, store: InMemoryStore, bob: Account) -> None:
        store.reset_tokens.issue(self._token(bob, "t1"), NOW)
        store.reset_tokens.issue(self._token(bob, "t2"), NOW)
        assert store.reset_tokens.get("t1").status == ResetTokenStatus.CONSUMED
        assert store.reset_tokens.get("t2").status == ResetTokenStatus.PENDING

    def test_redeem_is_atomic_unit(self, store: InMemoryStore, bob: Account) -> None:
        store.reset_tokens.issue(self._token(bob, "t1"), NOW)
        store.sessions.add(
            Session(token_hash="s1", account_id=bob.id, created_at=NOW, expires_at=NOW + timedelta(days=1))
        )

        result, account_id = store.reset_tokens.redeem("t1", Credential("$2b$04$new"), NOW)

        assert result == RedeemResult.SUCCESS
        assert account_id == bob.id
        assert store.accounts.find_by_id(bob.id).credential == Credential("$2b$04$new")
        assert store.reset_tokens.get("t1").status == ResetTokenStatus.CONSUMED
        assert store.sessions.get("s1").is_revoked

    def test_redeem_expired(self, store: InMemoryStore, bob: Account) -> None:
        store.reset_tokens.issue(self._token(bob, "t1"), NOW)
        result, account_id = store.reset_tokens.redeem(
            "t1", Credential("$2b$04$new"), NOW + timedelta(hours=1)
        )
        assert result == RedeemResult.EXPIRED
        assert account_id is None

    def test_redeem_unknown(self, store: InMemoryStore) -> None:
        assert store.reset_tokens.redeem("nope", Credential("x"), NOW) == (RedeemResult.INVALID, None)


def test_ping(store: InMemoryStore) -> None:
    store.ping()
