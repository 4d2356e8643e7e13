"""
System adapters - Implements Clock and TokenSource protocols.
"""

import secrets
from datetime import datetime, timezone

# 32 random bytes = 256 bits of entropy
TOKEN_BYTES = 32


class SystemClock:
    """Implements Clock protocol with the wall clock (UTC)."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class SecretsTokenSource:
    """
    Implements TokenSource protocol via the secrets module.

    Tokens are URL-safe base64 so they can travel in links and cookies.
    """

    def __init__(self, nbytes: int = TOKEN_BYTES) -> None:
        self._nbytes = nbytes

    def new_token(self) -> str:
        return secrets.token_urlsafe(self._nbytes)
