"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols through
structural subtyping.

Atomicity contract: every method documented as atomic must behave as a
single transaction even when several processes share the database.
The domain never takes locks of its own.
"""

from datetime import datetime
from enum import Enum
from typing import Protocol
from uuid import UUID

from .models import Account, Credential, Invitation, ResetToken, Session


class ConsumeResult(Enum):
    """Result of an atomic invitation consumption."""

    SUCCESS = "success"
    INVALID = "invalid"
    EMAIL_MISMATCH = "email_mismatch"


class CreateResult(Enum):
    """Result of an atomic account creation."""

    CREATED = "created"
    INVALID_INVITATION = "invalid_invitation"
    EMAIL_MISMATCH = "email_mismatch"
    USERNAME_TAKEN = "username_taken"
    EMAIL_TAKEN = "email_taken"


class RedeemResult(Enum):
    """Result of an atomic password-reset redemption."""

    SUCCESS = "success"
    INVALID = "invalid"
    EXPIRED = "expired"


class AccountRepository(Protocol):
    """Port interface for account persistence."""

    def find_by_id(self, account_id: UUID) -> Account | None: ...

    def find_by_username(self, username: str) -> Account | None:
        """Case-insensitive lookup."""
        ...

    def find_by_email(self, email: str) -> Account | None:
        """Lookup by normalized (lowercase) email."""
        ...

    def create(self, account: Account) -> CreateResult:
        """
        Insert an account that was not created through an invitation.

        Returns CREATED, USERNAME_TAKEN or EMAIL_TAKEN.
        """
        ...

    def create_with_invitation(
        self, account: Account, invitation_code: str, now: datetime
    ) -> CreateResult:
        """
        Atomically consume an invitation and insert the account.

        The invitation row is locked, re-checked (pending, not expired as of
        ``now``, target email matching ``account.email``) and marked consumed
        in the same transaction as the insert. If the insert violates a
        uniqueness constraint the whole transaction rolls back and the
        invitation stays pending.

        Returns:
            CREATED on success, otherwise the reason nothing was written
        """
        ...

    def update_credential(self, account_id: UUID, credential: Credential) -> None:
        """Replace the stored credential wholesale (used for rehash-on-login)."""
        ...


class InvitationRepository(Protocol):
    """Port interface for invitation persistence."""

    def add(self, invitation: Invitation) -> None: ...

    def get(self, code: str) -> Invitation | None: ...

    def consume(self, code: str, email: str, now: datetime) -> ConsumeResult:
        """
        Atomically transition a PENDING invitation to CONSUMED.

        Of any number of concurrent calls for the same code, at most one
        returns SUCCESS. EMAIL_MISMATCH leaves the invitation untouched.
        """
        ...

    def revoke(self, code: str, inviter_id: UUID) -> bool:
        """
        Atomically transition PENDING to REVOKED if owned by ``inviter_id``.

        Returns:
            True if the invitation was revoked
        """
        ...

    def list_by_inviter(self, inviter_id: UUID) -> list[Invitation]:
        """Invitations issued by ``inviter_id``, newest first."""
        ...

    def count_issued_since(self, inviter_id: UUID, since: datetime) -> int: ...

    def has_pending_for_email(self, email: str, now: datetime) -> bool:
        """True if a redeemable invitation already targets ``email``."""
        ...


class SessionRepository(Protocol):
    """Port interface for session persistence, keyed by token digest."""

    def add(self, session: Session) -> None: ...

    def get(self, token_hash: str) -> Session | None: ...

    def revoke(self, token_hash: str, now: datetime) -> bool:
        """Mark a session revoked. Returns False if unknown or already revoked."""
        ...

    def revoke_all_for_account(self, account_id: UUID, now: datetime) -> int: ...

    def extend(self, token_hash: str, expires_at: datetime) -> None:
        """Move the expiry of a live session (sliding expiration)."""
        ...

    def purge_expired(self, now: datetime) -> int:
        """Delete sessions that are expired or revoked as of ``now``."""
        ...


class ResetTokenRepository(Protocol):
    """Port interface for password-reset token persistence, keyed by token digest."""

    def issue(self, reset_token: ResetToken, now: datetime) -> None:
        """
        Atomically mark the account's PENDING tokens consumed and insert this one.
        """
        ...

    def get(self, token_hash: str) -> ResetToken | None: ...

    def redeem(
        self, token_hash: str, credential: Credential, now: datetime
    ) -> tuple[RedeemResult, UUID | None]:
        """
        Atomically redeem a reset token.

        With the token row locked: fail INVALID if unknown or not PENDING,
        EXPIRED if past expiry. Otherwise, in one transaction, replace the
        account credential, mark this and every other PENDING token of the
        account consumed, and revoke all of the account's live sessions.

        Returns:
            (result, account_id) - account_id is set only on SUCCESS
        """
        ...

    def purge_expired(self, now: datetime) -> int:
        """Delete tokens that are expired or consumed as of ``now``."""
        ...


class Storage(Protocol):
    """Bundle of repositories sharing one backing store."""

    accounts: AccountRepository
    invitations: InvitationRepository
    sessions: SessionRepository
    reset_tokens: ResetTokenRepository

    def ping(self) -> None:
        """Raise StorageFailure if the backing store is unreachable."""
        ...


class EmailSender(Protocol):
    """Port interface for email delivery."""

    def send_invitation(self, invitation: Invitation, inviter: Account) -> None:
        """Send the signup link for ``invitation`` to its target email."""
        ...

    def send_password_reset(self, account: Account, token: str) -> None:
        """Send the reset link carrying the raw ``token``."""
        ...

    def send_welcome(self, account: Account) -> None: ...


class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime:
        """Timezone-aware current time in UTC."""
        ...


class TokenSource(Protocol):
    """Source of unguessable tokens."""

    def new_token(self) -> str:
        """URL-safe token with at least 128 bits of entropy."""
        ...
