"""
Registration coordinator - Invitation-gated account creation.

Validation Order (first violation wins)
======================================
1. password confirmation matches          -> PasswordMismatch
2. invitation is redeemable for the email -> InvalidInvitation / EmailMismatch
3. username pattern, email format         -> ValidationError
4. username, then email, are free         -> UsernameTaken / EmailTaken
5. password strength                      -> WeakPassword

Steps 1-5 are read-only. Only when all pass does the repository create the
account and consume the invitation in one transaction, re-checking the
invitation and uniqueness under lock. A failed registration therefore
never burns an invitation.
"""

import logging
from dataclasses import dataclass
from uuid import uuid4

from .credentials import CredentialStore
from .exceptions import (
    EmailMismatch,
    EmailTaken,
    InvalidInvitation,
    PasswordMismatch,
    UsernameTaken,
)
from .invitations import InvitationLedger
from .models import Account
from .ports import AccountRepository, Clock, CreateResult, EmailSender
from .validation import check_email, check_username

logger = logging.getLogger(__name__)


@dataclass
class RegistrationCoordinator:
    """
    Domain service for user registration.

    Orchestrates the registration flow: input validation, invitation
    checks, password hashing, and the atomic create-and-consume.
    """

    accounts: AccountRepository
    ledger: InvitationLedger
    credentials: CredentialStore
    clock: Clock
    email_sender: EmailSender

    def register(
        self,
        invitation_code: str,
        username: str,
        email: str,
        password: str,
        password_confirm: str,
        about: str | None = None,
    ) -> Account:
        """
        Create an account with a single-use invitation.

        Args:
            invitation_code: Code from the invitation link
            username: Desired username (3-50 chars of [a-zA-Z0-9_-])
            email: Email address (will be normalized)
            password: Plaintext password
            password_confirm: Must equal password
            about: Optional profile text

        Returns:
            The created account

        Raises:
            PasswordMismatch, InvalidInvitation, EmailMismatch, ValidationError,
            UsernameTaken, EmailTaken, WeakPassword
        """
        if password != password_confirm:
            raise PasswordMismatch()

        invitation = self.ledger.validate(invitation_code, email)

        username, email = self._check_identity(username, email)
        credential = self.credentials.hash(password)

        account = Account(
            id=uuid4(),
            username=username,
            email=email,
            credential=credential,
            created_at=self.clock.now(),
            about=(about or "").strip(),
            invited_by_id=invitation.inviter_id,
        )

        result = self.accounts.create_with_invitation(account, invitation.code, account.created_at)
        self._raise_for(result, account)

        logger.info("Account created: %s", account.username)
        self.email_sender.send_welcome(account)
        return account

    def bootstrap(self, username: str, email: str, password: str, karma: int = 1) -> Account:
        """
        Create a founding account without an invitation.

        Used to seed an empty site; every other account comes from register().
        """
        username, email = self._check_identity(username, email)
        credential = self.credentials.hash(password)

        account = Account(
            id=uuid4(),
            username=username,
            email=email,
            credential=credential,
            created_at=self.clock.now(),
            karma=karma,
        )
        self._raise_for(self.accounts.create(account), account)

        logger.info("Founding account created: %s", account.username)
        return account

    def _check_identity(self, username: str, email: str) -> tuple[str, str]:
        username = check_username(username)
        email = check_email(email)
        if self.accounts.find_by_username(username) is not None:
            raise UsernameTaken(username)
        if self.accounts.find_by_email(email) is not None:
            raise EmailTaken(email)
        return username, email

    def _raise_for(self, result: CreateResult, account: Account) -> None:
        if result == CreateResult.CREATED:
            return
        if result == CreateResult.USERNAME_TAKEN:
            raise UsernameTaken(account.username)
        if result == CreateResult.EMAIL_TAKEN:
            raise EmailTaken(account.email)
        if result == CreateResult.EMAIL_MISMATCH:
            raise EmailMismatch(account.email)
        raise InvalidInvitation()
