"""
In-memory repository adapter - Implements the repository protocols in process.

Used by the test suite and by ``storage_backend=memory`` for local
development. One store-wide lock plays the role the database transaction
plays in the PostgreSQL adapter, so every operation the ports document as
atomic is atomic here too. Entities are copied on the way in and out,
mirroring the isolation a database gives.
"""

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from uuid import UUID

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


@dataclass
class _Tables:
    lock: threading.RLock = field(default_factory=threading.RLock)
    accounts: dict[UUID, Account] = field(default_factory=dict)
    invitations: dict[str, Invitation] = field(default_factory=dict)
    sessions: dict[str, Session] = field(default_factory=dict)
    reset_tokens: dict[str, ResetToken] = field(default_factory=dict)


class InMemoryAccountRepository:
    """Implements AccountRepository protocol."""

    def __init__(self, tables: _Tables) -> None:
        self._tables = tables

    def find_by_id(self, account_id: UUID) -> Account | None:
        with self._tables.lock:
            account = self._tables.accounts.get(account_id)
            return replace(account) if account else None

    def find_by_username(self, username: str) -> Account | None:
        with self._tables.lock:
            return self._find(lambda a: a.username.lower() == username.strip().lower())

    def find_by_email(self, email: str) -> Account | None:
        with self._tables.lock:
            return self._find(lambda a: a.email == email.strip().lower())

    def create(self, account: Account) -> CreateResult:
        with self._tables.lock:
            conflict = self._conflict(account)
            if conflict is not None:
                return conflict
            self._tables.accounts[account.id] = replace(account)
            return CreateResult.CREATED

    def create_with_invitation(
        self, account: Account, invitation_code: str, now: datetime
    ) -> CreateResult:
        with self._tables.lock:
            invitation = self._tables.invitations.get(invitation_code)
            if invitation is None or not invitation.is_redeemable(now):
                return CreateResult.INVALID_INVITATION
            if not invitation.accepts_email(account.email):
                return CreateResult.EMAIL_MISMATCH

            conflict = self._conflict(account)
            if conflict is not None:
                return conflict

            self._tables.accounts[account.id] = replace(account)
            invitation.status = InvitationStatus.CONSUMED
            invitation.consumed_at = now
            invitation.consumed_by_id = account.id
            return CreateResult.CREATED

    def update_credential(self, account_id: UUID, credential: Credential) -> None:
        with self._tables.lock:
            account = self._tables.accounts.get(account_id)
            if account is not None:
                account.credential = credential

    def _find(self, predicate) -> Account | None:
        for account in self._tables.accounts.values():
            if predicate(account):
                return replace(account)
        return None

    def _conflict(self, account: Account) -> CreateResult | None:
        for existing in self._tables.accounts.values():
            if existing.username.lower() == account.username.lower():
                return CreateResult.USERNAME_TAKEN
            if existing.email == account.email:
                return CreateResult.EMAIL_TAKEN
        return None


class InMemoryInvitationRepository:
    """Implements InvitationRepository protocol."""

    def __init__(self, tables: _Tables) -> None:
        self._tables = tables

    def add(self, invitation: Invitation) -> None:
        with self._tables.lock:
            self._tables.invitations[invitation.code] = replace(invitation)

    def get(self, code: str) -> Invitation | None:
        with self._tables.lock:
            invitation = self._tables.invitations.get(code)
            return replace(invitation) if invitation else None

    def consume(self, code: str, email: str, now: datetime) -> ConsumeResult:
        with self._tables.lock:
            invitation = self._tables.invitations.get(code)
            if invitation is None or not invitation.is_redeemable(now):
                return ConsumeResult.INVALID
            if not invitation.accepts_email(email):
                return ConsumeResult.EMAIL_MISMATCH
            invitation.status = InvitationStatus.CONSUMED
            invitation.consumed_at = now
            return ConsumeResult.SUCCESS

    def revoke(self, code: str, inviter_id: UUID) -> bool:
        with self._tables.lock:
            invitation = self._tables.invitations.get(code)
            if (
                invitation is None
                or invitation.inviter_id != inviter_id
                or invitation.status != InvitationStatus.PENDING
            ):
                return False
            invitation.status = InvitationStatus.REVOKED
            return True

    def list_by_inviter(self, inviter_id: UUID) -> list[Invitation]:
        with self._tables.lock:
            invitations = [
                replace(i) for i in self._tables.invitations.values() if i.inviter_id == inviter_id
            ]
        return sorted(invitations, key=lambda i: i.created_at, reverse=True)

    def count_issued_since(self, inviter_id: UUID, since: datetime) -> int:
        with self._tables.lock:
            return sum(
                1
                for i in self._tables.invitations.values()
                if i.inviter_id == inviter_id and i.created_at >= since
            )

    def has_pending_for_email(self, email: str, now: datetime) -> bool:
        with self._tables.lock:
            return any(
                i.target_email == email and i.is_redeemable(now)
                for i in self._tables.invitations.values()
            )


class InMemorySessionRepository:
    """Implements SessionRepository protocol."""

    def __init__(self, tables: _Tables) -> None:
        self._tables = tables

    def add(self, session: Session) -> None:
        with self._tables.lock:
            self._tables.sessions[session.token_hash] = replace(session)

    def get(self, token_hash: str) -> Session | None:
        with self._tables.lock:
            session = self._tables.sessions.get(token_hash)
            return replace(session) if session else None

    def revoke(self, token_hash: str, now: datetime) -> bool:
        with self._tables.lock:
            session = self._tables.sessions.get(token_hash)
            if session is None or session.is_revoked:
                return False
            session.revoked_at = now
            return True

    def revoke_all_for_account(self, account_id: UUID, now: datetime) -> int:
        with self._tables.lock:
            return _revoke_sessions(self._tables, account_id, now)

    def extend(self, token_hash: str, expires_at: datetime) -> None:
        with self._tables.lock:
            session = self._tables.sessions.get(token_hash)
            if session is not None and not session.is_revoked:
                session.expires_at = expires_at

    def purge_expired(self, now: datetime) -> int:
        with self._tables.lock:
            stale = [
                key
                for key, s in self._tables.sessions.items()
                if s.is_revoked or s.is_expired(now)
            ]
            for key in stale:
                del self._tables.sessions[key]
            return len(stale)


class InMemoryResetTokenRepository:
    """Implements ResetTokenRepository protocol."""

    def __init__(self, tables: _Tables) -> None:
        self._tables = tables

    def issue(self, reset_token: ResetToken, now: datetime) -> None:
        with self._tables.lock:
            _consume_pending_tokens(self._tables, reset_token.account_id, now)
            self._tables.reset_tokens[reset_token.token_hash] = replace(reset_token)

    def get(self, token_hash: str) -> ResetToken | None:
        with self._tables.lock:
            reset_token = self._tables.reset_tokens.get(token_hash)
            return replace(reset_token) if reset_token else None

    def redeem(
        self, token_hash: str, credential: Credential, now: datetime
    ) -> tuple[RedeemResult, UUID | None]:
        with self._tables.lock:
            reset_token = self._tables.reset_tokens.get(token_hash)
            if reset_token is None or reset_token.status != ResetTokenStatus.PENDING:
                return RedeemResult.INVALID, None
            if reset_token.is_expired(now):
                return RedeemResult.EXPIRED, None

            account = self._tables.accounts.get(reset_token.account_id)
            if account is None:
                return RedeemResult.INVALID, None

            account.credential = credential
            _consume_pending_tokens(self._tables, account.id, now)
            _revoke_sessions(self._tables, account.id, now)
            return RedeemResult.SUCCESS, account.id

    def purge_expired(self, now: datetime) -> int:
        with self._tables.lock:
            stale = [
                key
                for key, t in self._tables.reset_tokens.items()
                if t.status != ResetTokenStatus.PENDING or t.is_expired(now)
            ]
            for key in stale:
                del self._tables.reset_tokens[key]
            return len(stale)


def _consume_pending_tokens(tables: _Tables, account_id: UUID, now: datetime) -> None:
    for reset_token in tables.reset_tokens.values():
        if reset_token.account_id == account_id and reset_token.status == ResetTokenStatus.PENDING:
            reset_token.status = ResetTokenStatus.CONSUMED
            reset_token.consumed_at = now


def _revoke_sessions(tables: _Tables, account_id: UUID, now: datetime) -> int:
    revoked = 0
    for session in tables.sessions.values():
        if session.account_id == account_id and not session.is_revoked:
            session.revoked_at = now
            revoked += 1
    return revoked


class InMemoryStore:
    """Implements Storage protocol with process-local tables."""

    def __init__(self) -> None:
        tables = _Tables()
        self.accounts = InMemoryAccountRepository(tables)
        self.invitations = InMemoryInvitationRepository(tables)
        self.sessions = InMemorySessionRepository(tables)
        self.reset_tokens = InMemoryResetTokenRepository(tables)

    def ping(self) -> None:
        pass
