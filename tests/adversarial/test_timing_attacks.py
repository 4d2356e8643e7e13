"""
Adversarial tests for timing oracle attack prevention.

Verifies that login failures for unknown accounts and for wrong passwords
have statistically similar response times, so an attacker cannot learn
which usernames exist by timing the login form.

Security rationale:
- bcrypt verification dominates the cost of a login
- Skipping it for unknown accounts would make them answer much faster
- Our defense: dummy_verify() spends one verification at the same work
  factor when no account matches
"""

import statistics
import time
from unittest.mock import Mock
from uuid import uuid4

import pytest

from burrow.adapters.repository.memory import InMemoryStore
from burrow.domain.credentials import CredentialStore
from burrow.domain.exceptions import InvalidCredentials
from burrow.domain.models import Account
from burrow.domain.sessions import SessionAuthenticator

pytestmark = pytest.mark.adversarial


@pytest.fixture(scope="module")
def timing_credentials() -> CredentialStore:
    """Cost high enough that bcrypt dominates, low enough to keep the test quick."""
    return CredentialStore(rounds=10)


@pytest.fixture
def timing_authenticator(
    store: InMemoryStore, timing_credentials: CredentialStore, clock
) -> SessionAuthenticator:
    return SessionAuthenticator(
        accounts=store.accounts,
        sessions=store.sessions,
        credentials=timing_credentials,
        clock=clock,
        tokens=Mock(),
    )


class TestTimingAttacks:
    """
    Verify constant-time behavior prevents timing oracle attacks.

    Measures login failures for each scenario and verifies the mean times
    are within MAX_VARIANCE_RATIO of each other.
    """

    ITERATIONS = 10

    MAX_VARIANCE_RATIO = 0.25

    def measure_failures(
        self, authenticator: SessionAuthenticator, identifier: str, password: str
    ) -> list[float]:
        times = []
        for _ in range(self.ITERATIONS):
            start = time.perf_counter()
            with pytest.raises(InvalidCredentials):
                authenticator.login(identifier, password)
            times.append(time.perf_counter() - start)
        return times

    def assert_timing_similar(
        self, times1: list[float], times2: list[float], label1: str, label2: str
    ) -> None:
        """Assert two timing distributions are statistically similar."""
        mean1 = statistics.mean(times1)
        mean2 = statistics.mean(times2)
        ratio = abs(mean1 - mean2) / max(mean1, mean2)

        assert ratio < self.MAX_VARIANCE_RATIO, (
            f"Timing difference too large between {label1} and {label2}: "
            f"{ratio:.1%} (threshold: {self.MAX_VARIANCE_RATIO:.0%})\n"
            f"  {label1}: mean={mean1:.4f}s\n"
            f"  {label2}: mean={mean2:.4f}s"
        )

    def test_unknown_user_vs_wrong_password(
        self,
        timing_authenticator: SessionAuthenticator,
        store: InMemoryStore,
        timing_credentials: CredentialStore,
        clock,
    ) -> None:
        store.accounts.create(
            Account(
                id=uuid4(),
                username="bob",
                email="bob@example.com",
                credential=timing_credentials.hash("password123"),
                created_at=clock.now(),
            )
        )

        wrong_password = self.measure_failures(timing_authenticator, "bob", "wrong-password")
        unknown_user = self.measure_failures(timing_authenticator, "nobody", "wrong-password")
        unknown_email = self.measure_failures(
            timing_authenticator, "nobody@example.com", "wrong-password"
        )

        self.assert_timing_similar(wrong_password, unknown_user, "wrong password", "unknown user")
        self.assert_timing_similar(
            wrong_password, unknown_email, "wrong password", "unknown email"
        )

    def test_overlong_password_still_costs_a_verification(
        self, timing_authenticator: SessionAuthenticator
    ) -> None:
        """Passwords bcrypt cannot hash fail in about the same time as others."""
        normal = self.measure_failures(timing_authenticator, "nobody", "wrong-password")
        overlong = self.measure_failures(timing_authenticator, "nobody", "x" * 500)

        self.assert_timing_similar(normal, overlong, "normal password", "overlong password")


def test_dummy_verify_is_called_for_unknown_accounts(store: InMemoryStore, clock) -> None:
    credentials = Mock(spec=CredentialStore)
    authenticator = SessionAuthenticator(
        accounts=store.accounts,
        sessions=store.sessions,
        credentials=credentials,
        clock=clock,
        tokens=Mock(),
    )

    with pytest.raises(InvalidCredentials):
        authenticator.login("ghost@example.com", "password123")

    credentials.dummy_verify.assert_called_once()
    credentials.verify.assert_not_called()
