"""In-memory circuit breaker for the downstream call.

States:
  - CLOSED     normal operation, consecutive failures count up
  - OPEN       fail fast until the cooldown elapses
  - HALF_OPEN  recovery window; the next recorded result decides

Transitions:
  - CLOSED -> OPEN        failure count reaches the threshold (3)
  - OPEN -> HALF_OPEN     lazily, inside can_execute(), once cooldown (30s) passed
  - HALF_OPEN -> CLOSED   recorded success (failure count reset)
  - HALF_OPEN -> OPEN     recorded failure (fresh cooldown)

While HALF_OPEN every caller is let through as a probe; concurrent
probes are not serialized.
"""

from __future__ import annotations
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from .types import BreakerPhase, BreakerSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BreakerConfig:
    """Breaker thresholds.

    Attributes:
        failure_threshold: Consecutive failures that trip the breaker.
        cooldown_seconds: Time spent OPEN before a probe is allowed.
    """

    failure_threshold: int = 3
    cooldown_seconds: float = 30.0


class CircuitBreaker:
    """Failure-aware gate in front of the downstream call.

    One instance per process, passed to the pipeline by reference.
    Every operation holds the same lock, so concurrent requests can't
    lose a transition or corrupt the failure count.

    Usage:
        breaker = CircuitBreaker()
        if breaker.can_execute():
            try:
                call()
            except Exception:
                breaker.record_failure()
            else:
                breaker.record_success()
    """

    def __init__(
        self,
        config: BreakerConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or BreakerConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._phase = BreakerPhase.CLOSED
        self._failures = 0
        self._reopen_at: float | None = None

    def can_execute(self) -> bool:
        """Decide whether the downstream call may run.

        An OPEN breaker whose cooldown has elapsed flips to HALF_OPEN here
        and lets this caller through as the probe.
        """
        with self._lock:
            if self._phase is BreakerPhase.CLOSED:
                return True
            if self._phase is BreakerPhase.OPEN:
                if self._clock() >= self._reopen_at:
                    self._phase = BreakerPhase.HALF_OPEN
                    self._reopen_at = None
                    logger.info("Circuit half-open: allowing probe request")
                    return True
                return False
            return True

    def record_success(self) -> None:
        """Record a successful downstream attempt."""
        with self._lock:
            if self._phase is BreakerPhase.OPEN:
                # A straggler that started before the trip; only a probe closes
                return
            if self._phase is BreakerPhase.HALF_OPEN:
                logger.info("Circuit closed: probe succeeded")
            self._phase = BreakerPhase.CLOSED
            self._failures = 0
            self._reopen_at = None

    def record_failure(self) -> None:
        """Record a failed downstream attempt."""
        with self._lock:
            if self._phase is BreakerPhase.HALF_OPEN:
                self._trip()
                logger.warning("Circuit re-opened: probe failed")
                return

            self._failures += 1
            if self._failures >= self.config.failure_threshold:
                was_open = self._phase is BreakerPhase.OPEN
                self._trip()
                if not was_open:
                    logger.warning(
                        "Circuit opened after %d consecutive failures", self._failures
                    )

    def get_state(self) -> BreakerSnapshot:
        """Pure read. Never triggers the OPEN -> HALF_OPEN transition."""
        with self._lock:
            return BreakerSnapshot(phase=self._phase, consecutive_failures=self._failures)

    @property
    def reopen_at(self) -> float | None:
        with self._lock:
            return self._reopen_at

    def _trip(self) -> None:
        self._phase = BreakerPhase.OPEN
        self._reopen_at = self._clock() + self.config.cooldown_seconds
