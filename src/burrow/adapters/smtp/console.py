"""
Console email sender adapter - Implements EmailSender protocol.

This module provides a console-based implementation of the domain's
email sender port, logging outgoing links to stdout for development.
"""

import logging
from urllib.parse import urlencode

from burrow.domain.models import Account, Invitation

logger = logging.getLogger(__name__)


class ConsoleEmailSender:
    """
    Implements EmailSender protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - logs the links a real mailer would send.
    """

    def __init__(self, base_url: str = "http://localhost:8000") -> None:
        """
        Args:
            base_url: Public site URL used to build links
        """
        self._base_url = base_url.rstrip("/")

    def invitation_url(self, invitation: Invitation) -> str:
        return f"{self._base_url}/auth/signup/invited?{urlencode({'code': invitation.code})}"

    def reset_url(self, token: str) -> str:
        return f"{self._base_url}/auth/reset-password?{urlencode({'token': token})}"

    def send_invitation(self, invitation: Invitation, inviter: Account) -> None:
        """Log the invitation link for the invitation's target email."""
        logger.info(
            "[INVITATION] Email: %s From: %s Link: %s",
            invitation.target_email,
            inviter.username,
            self.invitation_url(invitation),
        )

    def send_password_reset(self, account: Account, token: str) -> None:
        """Log the password reset link for the account's email."""
        logger.info("[PASSWORD RESET] Email: %s Link: %s", account.email, self.reset_url(token))

    def send_welcome(self, account: Account) -> None:
        logger.info("[WELCOME] Email: %s Username: %s", account.email, account.username)
