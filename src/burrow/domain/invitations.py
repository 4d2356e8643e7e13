"""
Invitation ledger - Issuing, validating and consuming invitation codes.

Invitation Lifecycle (Forward-Only Transitions)
===============================================

    PENDING -> CONSUMED  (exactly once, together with account creation)
    PENDING -> REVOKED   (by the inviter)

A consumed, revoked or expired invitation can never be redeemed. The
PENDING -> CONSUMED transition is a compare-and-set performed by the
repository, so concurrent redemptions of one code resolve to a single
winner across processes.

Inviter Policy
==============
An account may invite when it is not banned, has invites enabled, holds
at least ``min_karma`` karma, and has issued fewer than ``weekly_limit``
invitations in the trailing seven days.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

from .exceptions import EmailMismatch, EmailTaken, InvalidInvitation, InvitationNotPermitted
from .models import Account, Invitation, InvitationStats, InvitationStatus
from .ports import (
    AccountRepository,
    Clock,
    ConsumeResult,
    EmailSender,
    InvitationRepository,
    TokenSource,
)
from .validation import check_email, is_encodable, normalize_email

logger = logging.getLogger(__name__)

INVITE_WINDOW = timedelta(days=7)


@dataclass
class InvitationLedger:
    """Domain service owning the invitation lifecycle."""

    invitations: InvitationRepository
    accounts: AccountRepository
    clock: Clock
    tokens: TokenSource
    email_sender: EmailSender
    ttl: timedelta | None = timedelta(days=30)
    min_karma: int = 5
    weekly_limit: int = 5

    def validate(self, code: str, email: str | None = None) -> Invitation:
        """
        Return a redeemable invitation without changing it.

        Args:
            code: Invitation code
            email: If given, must be accepted by the invitation's target email

        Raises:
            InvalidInvitation: Unknown, consumed, revoked or expired
            EmailMismatch: Invitation targets a different email
        """
        invitation = self.invitations.get(self._clean_code(code))
        if invitation is None or not invitation.is_redeemable(self.clock.now()):
            raise InvalidInvitation(code)
        if email is not None and not invitation.accepts_email(email):
            raise EmailMismatch(code)
        return invitation

    def consume(self, code: str, email: str) -> Invitation:
        """
        Atomically mark an invitation consumed for ``email``.

        Raises:
            InvalidInvitation: Not redeemable, including lost races
            EmailMismatch: Invitation targets a different email (left PENDING)
        """
        code = self._clean_code(code)
        result = self.invitations.consume(code, normalize_email(email), self.clock.now())
        if result == ConsumeResult.EMAIL_MISMATCH:
            raise EmailMismatch(code)
        if result != ConsumeResult.SUCCESS:
            raise InvalidInvitation(code)

        invitation = self.invitations.get(code)
        if invitation is None:
            raise InvalidInvitation(code)
        return invitation

    def issue(self, inviter: Account, target_email: str | None = None, memo: str = "") -> Invitation:
        """
        Create a PENDING invitation with an unguessable code.

        Raises:
            InvitationNotPermitted: Inviter policy fails, or the email already
                has a pending invitation
            EmailTaken: An account already uses the target email
            ValidationError: Target email is malformed
        """
        if not self.can_invite(inviter):
            raise InvitationNotPermitted(
                "You cannot send invitations at this time. "
                "Check your karma and recent invitation limits."
            )

        now = self.clock.now()
        email = None
        if target_email is not None and target_email.strip():
            email = check_email(target_email)
            if self.accounts.find_by_email(email) is not None:
                raise EmailTaken(email)
            if self.invitations.has_pending_for_email(email, now):
                raise InvitationNotPermitted("Email already has a pending invitation")

        invitation = Invitation(
            code=self.tokens.new_token(),
            inviter_id=inviter.id,
            created_at=now,
            target_email=email,
            memo=(memo or "").strip(),
            expires_at=now + self.ttl if self.ttl else None,
        )
        self.invitations.add(invitation)
        logger.info("Invitation issued by %s", inviter.username)

        if email is not None:
            self.email_sender.send_invitation(invitation, inviter)
        return invitation

    def revoke(self, code: str, inviter: Account) -> Invitation:
        """
        Withdraw a PENDING invitation. Only its inviter may do so.

        Raises:
            InvalidInvitation: Unknown, not owned by inviter, or no longer pending
        """
        code = self._clean_code(code)
        if not self.invitations.revoke(code, inviter.id):
            raise InvalidInvitation(code)
        logger.info("Invitation revoked by %s", inviter.username)
        invitation = self.invitations.get(code)
        if invitation is None:
            raise InvalidInvitation(code)
        return invitation

    def can_invite(self, inviter: Account) -> bool:
        if inviter.is_banned or inviter.disabled_invites:
            return False
        if inviter.karma < self.min_karma:
            return False
        return self._issued_this_week(inviter) < self.weekly_limit

    def invitations_for(self, inviter: Account) -> list[Invitation]:
        return self.invitations.list_by_inviter(inviter.id)

    def stats(self, inviter: Account) -> InvitationStats:
        invitations = self.invitations_for(inviter)
        used = sum(1 for i in invitations if i.status == InvitationStatus.CONSUMED)
        pending = sum(1 for i in invitations if i.status == InvitationStatus.PENDING)
        issued_this_week = self._issued_this_week(inviter)
        return InvitationStats(
            total=len(invitations),
            used=used,
            pending=pending,
            can_invite=self.can_invite(inviter),
            remaining_this_week=max(0, self.weekly_limit - issued_this_week),
        )

    def inviter_of(self, invitation: Invitation) -> Account | None:
        return self.accounts.find_by_id(invitation.inviter_id)

    def _issued_this_week(self, inviter: Account) -> int:
        since = self.clock.now() - INVITE_WINDOW
        return self.invitations.count_issued_since(inviter.id, since)

    def _clean_code(self, code: str) -> str:
        code = code.strip() if code else ""
        if not code or not is_encodable(code):
            raise InvalidInvitation()
        return code
