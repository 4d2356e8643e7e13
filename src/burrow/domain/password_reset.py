"""
Password reset flow - Time-boxed, single-use reset tokens.

Requesting a reset never reveals whether the email belongs to an
account: request_reset() returns None for unknown emails and the HTTP
layer answers identically in both cases.

Redemption is one atomic repository operation that replaces the
credential, consumes the token (and any other pending token of the
account), and revokes every live session so the account must log in
again with the new password.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

from .credentials import CredentialStore, hash_token
from .exceptions import PasswordMismatch, TokenExpired, TokenInvalid
from .models import Account, IssuedResetToken, ResetToken, ResetTokenStatus
from .ports import (
    AccountRepository,
    Clock,
    EmailSender,
    RedeemResult,
    ResetTokenRepository,
    TokenSource,
)
from .validation import is_encodable, normalize_email

logger = logging.getLogger(__name__)


@dataclass
class PasswordResetFlow:
    """Domain service for password reset."""

    accounts: AccountRepository
    reset_tokens: ResetTokenRepository
    credentials: CredentialStore
    clock: Clock
    tokens: TokenSource
    email_sender: EmailSender
    ttl: timedelta = timedelta(hours=1)

    def request_reset(self, email: str) -> IssuedResetToken | None:
        """
        Issue a reset token for the account owning ``email``, if any.

        Prior pending tokens of the account are invalidated. The raw token
        is mailed to the account and also returned to the caller, which
        must not expose it.

        Returns:
            The issued token, or None if no account uses the email
        """
        if not is_encodable(email):
            return None
        account = self.accounts.find_by_email(normalize_email(email))
        if account is None:
            return None

        now = self.clock.now()
        token = self.tokens.new_token()
        reset_token = ResetToken(
            token_hash=hash_token(token),
            account_id=account.id,
            created_at=now,
            expires_at=now + self.ttl,
        )
        self.reset_tokens.issue(reset_token, now)
        logger.info("Password reset requested for %s", account.username)

        self.email_sender.send_password_reset(account, token)
        return IssuedResetToken(token=token, reset_token=reset_token)

    def check(self, token: str) -> ResetToken:
        """
        Return the pending, unexpired reset token without changing it.

        Raises:
            TokenInvalid: Unknown or already used
            TokenExpired: Past its expiry
        """
        reset_token = self.reset_tokens.get(hash_token(token)) if token else None
        if reset_token is None or reset_token.status != ResetTokenStatus.PENDING:
            raise TokenInvalid()
        if reset_token.is_expired(self.clock.now()):
            raise TokenExpired()
        return reset_token

    def redeem(self, token: str, new_password: str, new_password_confirm: str) -> Account:
        """
        Replace the account password using a reset token.

        Raises:
            TokenInvalid, TokenExpired, PasswordMismatch, WeakPassword
        """
        self.check(token)
        if new_password != new_password_confirm:
            raise PasswordMismatch()
        credential = self.credentials.hash(new_password)

        result, account_id = self.reset_tokens.redeem(hash_token(token), credential, self.clock.now())
        if result == RedeemResult.EXPIRED:
            raise TokenExpired()
        if result != RedeemResult.SUCCESS or account_id is None:
            logger.warning("Reset token lost a redemption race")
            raise TokenInvalid()

        account = self.accounts.find_by_id(account_id)
        if account is None:
            raise TokenInvalid()
        logger.info("Password reset completed for %s", account.username)
        return account

    def purge_expired(self) -> int:
        """Delete expired and consumed tokens. Returns the number removed."""
        return self.reset_tokens.purge_expired(self.clock.now())
