"""
Circuit breaker guarding the Redis leg of EventBus.publish.

Local subscribers are served regardless of the breaker; only the Redis
publish is skipped while the circuit is open.
"""

from __future__ import annotations

import random
import threading
import time
from enum import Enum
from typing import Any

from factory_shared.config.logging import get_logger

logger = get_logger(__name__)

MAX_RETRY_DELAY = 10.0


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class EventCircuitBreaker:
    """
    CLOSED -> OPEN after failure_threshold consecutive failed publishes.
    OPEN -> HALF_OPEN once recovery_timeout seconds have passed.
    HALF_OPEN admits half_open_max_calls trial calls; a success closes the
    circuit, a failure reopens it.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        half_open_max_calls: int = 3,
    ):
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._half_open_max_calls = half_open_max_calls

        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at = 0.0
        self._trial_calls = 0
        self._rejected = 0
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    def _move_to(self, state: CircuitState, **context: Any) -> None:
        # Caller holds the lock
        previous, self._state = self._state, state
        if previous is state:
            return
        log = logger.warning if state is CircuitState.OPEN else logger.info
        log(f"Event bus circuit {previous.value} -> {state.value}", **context)

    def can_execute(self) -> bool:
        with self._lock:
            if self._state is CircuitState.OPEN:
                if time.monotonic() - self._opened_at < self._recovery_timeout:
                    self._rejected += 1
                    return False
                self._trial_calls = 0
                self._move_to(CircuitState.HALF_OPEN)
                return True

            if self._state is CircuitState.HALF_OPEN:
                if self._trial_calls >= self._half_open_max_calls:
                    return False
                self._trial_calls += 1
            return True

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            if self._state is CircuitState.HALF_OPEN or self._failures >= self._failure_threshold:
                self._opened_at = time.monotonic()
                self._move_to(CircuitState.OPEN, failures=self._failures)

    def record_success(self) -> None:
        with self._lock:
            self._failures = 0
            self._move_to(CircuitState.CLOSED)

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "state": self._state.value,
                "failure_count": self._failures,
                "rejected_count": self._rejected,
            }


def calculate_retry_delay_with_jitter(attempt: int, base_delay: float = 0.1) -> float:
    """Delay before retry number attempt (0-based): jittered exponential, capped."""
    ceiling = min(base_delay * (2 ** attempt), MAX_RETRY_DELAY)
    return random.uniform(base_delay, max(base_delay, ceiling))
