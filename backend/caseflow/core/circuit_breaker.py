"""
Circuit breaker for the LLM provider.

- CLOSED: calls pass through; outcomes are kept in a sliding time window.
  When the window holds at least ``min_requests`` outcomes and the failure
  rate reaches ``failure_threshold``, the breaker opens.
- OPEN: calls are rejected with CircuitBreakerOpenError until
  ``open_duration_seconds`` have elapsed.
- HALF_OPEN: up to ``half_open_max_probes`` trial calls are let through.
  ``half_open_success_threshold`` successes close the breaker; any failure
  reopens it.
"""
import time
from collections import deque
from enum import Enum
from threading import Lock
from typing import Any, Awaitable, Callable, Deque, Optional, Tuple

from caseflow.core.logging import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpenError(Exception):
    """Raised when the breaker rejects a call without attempting it."""


class CircuitBreaker:
    def __init__(
        self,
        name: str,
        failure_threshold: float = 0.5,
        time_window_seconds: float = 60.0,
        open_duration_seconds: float = 30.0,
        min_requests: int = 10,
        half_open_max_probes: int = 1,
        half_open_success_threshold: int = 2,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.time_window_seconds = time_window_seconds
        self.open_duration_seconds = open_duration_seconds
        self.min_requests = min_requests
        self.half_open_max_probes = half_open_max_probes
        self.half_open_success_threshold = half_open_success_threshold
        self._clock = clock

        self._lock = Lock()
        self._state = CircuitState.CLOSED
        self._outcomes: Deque[Tuple[float, bool]] = deque()
        self._opened_at: Optional[float] = None
        self._probes_in_flight = 0
        self._probe_successes = 0

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._refresh(self._clock())
            return self._state

    def _refresh(self, now: float) -> None:
        cutoff = now - self.time_window_seconds
        while self._outcomes and self._outcomes[0][0] < cutoff:
            self._outcomes.popleft()

        if (
            self._state == CircuitState.OPEN
            and self._opened_at is not None
            and now - self._opened_at >= self.open_duration_seconds
        ):
            self._state = CircuitState.HALF_OPEN
            self._probes_in_flight = 0
            self._probe_successes = 0
            logger.info("circuit_breaker_half_open", circuit_breaker=self.name)

    def _failure_rate(self) -> float:
        if not self._outcomes:
            return 0.0
        failures = sum(1 for _, ok in self._outcomes if not ok)
        return failures / len(self._outcomes)

    def _trip(self, now: float, reason: str) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = now
        self._outcomes.clear()
        logger.warning("circuit_breaker_opened", circuit_breaker=self.name, reason=reason)

    def _admit(self) -> bool:
        """Decide whether a call may proceed; returns True for half-open probes."""
        with self._lock:
            self._refresh(self._clock())
            if self._state == CircuitState.OPEN:
                raise CircuitBreakerOpenError(f"Circuit breaker {self.name} is open")
            if self._state == CircuitState.HALF_OPEN:
                if self._probes_in_flight >= self.half_open_max_probes:
                    raise CircuitBreakerOpenError(
                        f"Circuit breaker {self.name} is half-open and probing"
                    )
                self._probes_in_flight += 1
                return True
            return False

    def _record(self, success: bool, probe: bool) -> None:
        with self._lock:
            now = self._clock()
            if probe:
                self._probes_in_flight = max(0, self._probes_in_flight - 1)
                if self._state != CircuitState.HALF_OPEN:
                    return
                if not success:
                    self._trip(now, reason="probe_failed")
                    return
                self._probe_successes += 1
                if self._probe_successes >= self.half_open_success_threshold:
                    self._state = CircuitState.CLOSED
                    self._opened_at = None
                    logger.info("circuit_breaker_closed", circuit_breaker=self.name)
                return

            self._outcomes.append((now, success))
            self._refresh(now)
            if (
                self._state == CircuitState.CLOSED
                and len(self._outcomes) >= self.min_requests
                and self._failure_rate() >= self.failure_threshold
            ):
                self._trip(now, reason="failure_rate")

    def _release(self, probe: bool) -> None:
        """Free a probe slot without counting an outcome (cancelled calls)."""
        if not probe:
            return
        with self._lock:
            self._probes_in_flight = max(0, self._probes_in_flight - 1)

    async def call_async(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """Run ``func`` under breaker protection, re-raising its exceptions."""
        probe = self._admit()
        try:
            result = await func(*args, **kwargs)
        except Exception:
            self._record(False, probe)
            raise
        except BaseException:
            self._release(probe)
            raise
        self._record(True, probe)
        return result

    def get_metrics(self) -> dict:
        with self._lock:
            self._refresh(self._clock())
            return {
                "name": self.name,
                "state": self._state.value,
                "recent_requests": len(self._outcomes),
                "failure_rate": self._failure_rate(),
                "opened_at": self._opened_at,
                "probe_successes": self._probe_successes,
            }
