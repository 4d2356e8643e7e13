"""
Credential store - Password hashing and verification.

Timing Oracle Prevention
========================
bcrypt.checkpw() is constant-time for a given work factor, and its cost
dominates response time. Callers that fail to find an account must still
spend that time: dummy_verify() checks the supplied password against a
dummy credential hashed with the same work factor, so "unknown account"
and "wrong password" are indistinguishable by timing.
"""

import hashlib
from dataclasses import dataclass, field

import bcrypt

from .exceptions import ValidationError, WeakPassword
from .models import Credential

# bcrypt only reads the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72

_DUMMY_PASSWORD = b"dummy_password_for_timing_safety"


def hash_token(token: str) -> str:
    """SHA-256 hex digest of a bearer token, as stored by repositories."""
    # Lone surrogates still digest; the result matches no issued token
    return hashlib.sha256(token.encode(errors="surrogatepass")).hexdigest()


def _encode(password: str) -> bytes | None:
    """UTF-8 bytes of a password, or None if it has no UTF-8 form."""
    try:
        return password.encode()
    except UnicodeEncodeError:
        return None


@dataclass
class CredentialStore:
    """
    Hashes, verifies and rotates passwords with bcrypt.

    Each hash call draws a fresh salt, so identical passwords never
    produce identical credentials.
    """

    rounds: int = 12
    min_length: int = 8
    _dummy: Credential = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._dummy = Credential(
            bcrypt.hashpw(_DUMMY_PASSWORD, bcrypt.gensalt(self.rounds)).decode()
        )

    def hash(self, password: str) -> Credential:
        """
        Derive a credential from a plaintext password.

        Raises:
            WeakPassword: If the password is shorter than min_length
            ValidationError: If the password exceeds bcrypt's 72-byte input
                or has no UTF-8 encoding
        """
        if len(password) < self.min_length:
            raise WeakPassword(f"Password must be at least {self.min_length} characters long")
        return self.rehash(password)

    def rehash(self, password: str) -> Credential:
        """
        Re-derive the credential of an already verified password.

        Skips the strength rule, so raising min_length never locks out
        an account whose password predates it.
        """
        encoded = _encode(password)
        if encoded is None:
            raise ValidationError("Password contains invalid characters")
        if len(encoded) > BCRYPT_MAX_BYTES:
            raise ValidationError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes long")
        return Credential(bcrypt.hashpw(encoded, bcrypt.gensalt(self.rounds)).decode())

    def verify(self, password: str, credential: Credential) -> bool:
        """Constant-time check of a password against a credential."""
        encoded = _encode(password)
        if encoded is None or len(encoded) > BCRYPT_MAX_BYTES:
            # hash() never accepts such a password; burn the same time and fail
            bcrypt.checkpw(_DUMMY_PASSWORD, self._dummy.digest.encode())
            return False
        return bcrypt.checkpw(encoded, credential.digest.encode())

    def dummy_verify(self, password: str) -> bool:
        """Spend one verification's worth of time. Always returns False."""
        self.verify(password, self._dummy)
        return False

    def needs_rehash(self, credential: Credential) -> bool:
        """True if the credential was hashed with a lower work factor."""
        # bcrypt format: $2b$XX$... where XX is the cost factor
        try:
            cost = int(credential.digest.split("$")[2])
        except (IndexError, ValueError):
            return True
        return cost < self.rounds
