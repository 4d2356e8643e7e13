"""
Shared fixtures for adversarial tests.

Provides common test infrastructure for race condition and brute force tests.
"""

import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import pytest


@pytest.fixture
def race() -> Callable[[Callable[[int], Any], int], list[Any]]:
    """
    Run ``attack(i)`` for i in range(n) on n threads released together.

    Returns each call's result, or the exception it raised, in call order.
    """

    def _race(attack: Callable[[int], Any], n: int) -> list[Any]:
        barrier = threading.Barrier(n)

        def attempt(i: int) -> Any:
            barrier.wait()
            try:
                return attack(i)
            except Exception as e:
                return e

        with ThreadPoolExecutor(max_workers=n) as executor:
            futures = [executor.submit(attempt, i) for i in range(n)]
            return [f.result() for f in futures]

    return _race
