"""
Session authenticator - Login, session validation and logout.

Only the SHA-256 digest of a session token is persisted; the raw token
exists in the IssuedSession returned by login() and in the client's
cookie.

Expiry is checked lazily against the injected clock on every
authenticate(). Sliding expiration (renewing on use) is a policy switch
and is off unless configured.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

from .credentials import CredentialStore, hash_token
from .exceptions import InvalidCredentials, SessionExpired, SessionInvalid
from .models import Account, IssuedSession, Session
from .ports import AccountRepository, Clock, SessionRepository, TokenSource
from .validation import is_encodable, normalize_email

logger = logging.getLogger(__name__)


@dataclass
class SessionAuthenticator:
    """Domain service for credential checks and session lifecycle."""

    accounts: AccountRepository
    sessions: SessionRepository
    credentials: CredentialStore
    clock: Clock
    tokens: TokenSource
    ttl: timedelta = timedelta(days=14)
    remember_me_ttl: timedelta = timedelta(days=365)
    sliding_expiration: bool = False

    def login(self, username_or_email: str, password: str, remember_me: bool = False) -> IssuedSession:
        """
        Verify credentials and open a session.

        Identifiers containing "@" are looked up as emails, anything else as
        a username; both lookups are case-insensitive. When no account
        matches, a dummy verification still runs so the failure takes as
        long as a wrong password would.

        Raises:
            InvalidCredentials: Unknown identifier, wrong password, or banned account
        """
        account = self._find_account(username_or_email)

        if account is None:
            self.credentials.dummy_verify(password)
            logger.warning("Login failed: unknown account")
            raise InvalidCredentials()

        if not self.credentials.verify(password, account.credential):
            logger.warning("Login failed for %s: wrong password", account.username)
            raise InvalidCredentials()

        if account.is_banned:
            logger.warning("Login refused for banned account %s", account.username)
            raise InvalidCredentials()

        if self.credentials.needs_rehash(account.credential):
            self.accounts.update_credential(account.id, self.credentials.rehash(password))

        return self.open_session(account, remember_me)

    def open_session(self, account: Account, remember_me: bool = False) -> IssuedSession:
        """Issue a session for an already-verified account."""
        now = self.clock.now()
        token = self.tokens.new_token()
        session = Session(
            token_hash=hash_token(token),
            account_id=account.id,
            created_at=now,
            expires_at=now + self._lifetime(remember_me),
            remember_me=remember_me,
        )
        self.sessions.add(session)
        logger.info("Session opened for %s", account.username)
        return IssuedSession(token=token, session=session, account=account)

    def authenticate(self, token: str) -> Account:
        """
        Resolve a session token to its account.

        Raises:
            SessionInvalid: Unknown or revoked token, or owner missing or banned
            SessionExpired: Token past its expiry
        """
        if not token:
            raise SessionInvalid()

        token_hash = hash_token(token)
        session = self.sessions.get(token_hash)
        if session is None or session.is_revoked:
            raise SessionInvalid()

        now = self.clock.now()
        if session.is_expired(now):
            raise SessionExpired()

        account = self.accounts.find_by_id(session.account_id)
        if account is None or account.is_banned:
            raise SessionInvalid()

        if self.sliding_expiration:
            self.sessions.extend(token_hash, now + self._lifetime(session.remember_me))
        return account

    def logout(self, token: str) -> None:
        """Revoke a session. Unknown or already revoked tokens are ignored."""
        if not token:
            return
        if self.sessions.revoke(hash_token(token), self.clock.now()):
            logger.info("Session revoked")

    def purge_expired(self) -> int:
        """Delete expired and revoked sessions. Returns the number removed."""
        removed = self.sessions.purge_expired(self.clock.now())
        if removed:
            logger.info("Purged %d stale session(s)", removed)
        return removed

    def _find_account(self, identifier: str) -> Account | None:
        identifier = identifier.strip()
        if not identifier or not is_encodable(identifier):
            return None
        if "@" in identifier:
            return self.accounts.find_by_email(normalize_email(identifier))
        return self.accounts.find_by_username(identifier)

    def _lifetime(self, remember_me: bool) -> timedelta:
        return self.remember_me_ttl if remember_me else self.ttl
