"""
Domain models - Entities and value types.

Plain dataclasses with no persistence concerns. Repositories hand out
copies, so mutating an entity never changes stored state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID


class InvitationStatus(str, Enum):
    """
    Invitation lifecycle states.

    State Transitions (forward-only):
    - PENDING -> CONSUMED (account created with this invitation)
    - PENDING -> REVOKED (withdrawn by the inviter)

    Expiry is not a stored state: a PENDING invitation past its
    expires_at is treated as unusable when read.
    """

    PENDING = "pending"
    CONSUMED = "consumed"
    REVOKED = "revoked"


class ResetTokenStatus(str, Enum):
    """Reset token lifecycle states. Superseded tokens are marked CONSUMED."""

    PENDING = "pending"
    CONSUMED = "consumed"


@dataclass(frozen=True)
class Credential:
    """Salted one-way password digest. Never holds plaintext."""

    digest: str

    def __repr__(self) -> str:
        return "Credential(digest=<redacted>)"


@dataclass
class Account:
    id: UUID
    username: str
    email: str
    credential: Credential
    created_at: datetime
    about: str = ""
    invited_by_id: UUID | None = None
    karma: int = 1
    banned_at: datetime | None = None
    disabled_invites: bool = False

    @property
    def is_banned(self) -> bool:
        return self.banned_at is not None


@dataclass
class Invitation:
    code: str
    inviter_id: UUID
    created_at: datetime
    target_email: str | None = None
    memo: str = ""
    status: InvitationStatus = InvitationStatus.PENDING
    expires_at: datetime | None = None
    consumed_at: datetime | None = None
    consumed_by_id: UUID | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    def is_redeemable(self, now: datetime) -> bool:
        return self.status == InvitationStatus.PENDING and not self.is_expired(now)

    def accepts_email(self, email: str) -> bool:
        """True if the invitation is open to anyone or targets this email."""
        if self.target_email is None:
            return True
        return self.target_email.strip().lower() == email.strip().lower()


@dataclass
class Session:
    token_hash: str
    account_id: UUID
    created_at: datetime
    expires_at: datetime
    remember_me: bool = False
    revoked_at: datetime | None = None

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass
class ResetToken:
    token_hash: str
    account_id: UUID
    created_at: datetime
    expires_at: datetime
    status: ResetTokenStatus = ResetTokenStatus.PENDING
    consumed_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class IssuedSession:
    """A freshly issued session. The raw token is only ever available here."""

    token: str = field(repr=False)
    session: Session
    account: Account

    @property
    def expires_at(self) -> datetime:
        return self.session.expires_at


@dataclass(frozen=True)
class IssuedResetToken:
    """A freshly issued reset token. The raw token is only ever available here."""

    token: str = field(repr=False)
    reset_token: ResetToken

    @property
    def expires_at(self) -> datetime:
        return self.reset_token.expires_at


@dataclass(frozen=True)
class InvitationStats:
    total: int
    used: int
    pending: int
    can_invite: bool
    remaining_this_week: int
