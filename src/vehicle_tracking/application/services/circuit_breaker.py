"""Circuit breaker guarding configuration updates."""

import logging
from datetime import timedelta

from vehicle_tracking.domain.contracts.clock import Clock
from vehicle_tracking.domain.models.configuration_update import CircuitBreakerState

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_THRESHOLD = 3
DEFAULT_RECOVERY_TIMEOUT = timedelta(seconds=30)


class CircuitBreaker:
    """Stops configuration updates after repeated failures.

    Closed: updates run normally. After failure_threshold consecutive failures the
    breaker opens and rejects updates. Once recovery_timeout has passed, a single
    update is let through as a trial; its outcome closes or re-opens the breaker.
    reset() closes it unconditionally.

    The breaker is not locked itself; callers serialize state changes. The state is
    replaced as a whole so reads never see a partial update.
    """

    def __init__(
        self,
        clock: Clock,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        recovery_timeout: timedelta | None = DEFAULT_RECOVERY_TIMEOUT,
    ) -> None:
        """Initialize the breaker.

        Args:
            clock: Source of the current time.
            failure_threshold: Consecutive failures that open the breaker.
            recovery_timeout: Time after opening before a trial update is allowed. None
                disables half-open attempts, so only reset() closes an open breaker.
        """
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self._clock = clock
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitBreakerState()
        self._half_open = False

    @property
    def state(self) -> CircuitBreakerState:
        """Current state snapshot."""
        return self._state

    @property
    def is_half_open(self) -> bool:
        """Whether a trial update is currently let through."""
        return self._half_open

    def allow_request(self) -> bool:
        """Check whether an update may run now.

        Switches an open breaker to half-open when its retry time has come.
        """
        state = self._state
        if not state.is_open:
            return True
        if self._half_open:
            return True
        if state.next_retry_time is not None and self._clock.now() >= state.next_retry_time:
            self._half_open = True
            logger.info("Circuit breaker half-open, letting a trial update through")
            return True
        return False

    def record_success(self) -> None:
        """Record a successful update and close the breaker."""
        if self._state.is_open:
            logger.info("Circuit breaker closed after successful trial update")
        self._half_open = False
        self._state = CircuitBreakerState(
            is_open=False,
            failure_count=0,
            consecutive_successes=self._state.consecutive_successes + 1,
            last_failure_time=self._state.last_failure_time,
            next_retry_time=None,
        )

    def record_failure(self) -> None:
        """Record a failed update, opening the breaker when the threshold is reached."""
        now = self._clock.now()
        failure_count = self._state.failure_count + 1
        should_open = self._half_open or failure_count >= self.failure_threshold
        next_retry_time = None
        if should_open and self.recovery_timeout is not None:
            next_retry_time = now + self.recovery_timeout

        if should_open and not self._state.is_open:
            logger.warning(
                f"Circuit breaker opened after {failure_count} consecutive failures"
                + (f", next retry at {next_retry_time.isoformat()}" if next_retry_time else "")
            )
        elif self._half_open:
            logger.warning("Trial update failed, circuit breaker re-opened")

        self._half_open = False
        self._state = CircuitBreakerState(
            is_open=should_open,
            failure_count=failure_count,
            consecutive_successes=0,
            last_failure_time=now,
            next_retry_time=next_retry_time,
        )

    def reset(self) -> None:
        """Close the breaker and clear the failure count."""
        self._half_open = False
        self._state = CircuitBreakerState(
            consecutive_successes=self._state.consecutive_successes,
            last_failure_time=self._state.last_failure_time,
        )
        logger.info("Circuit breaker reset")
