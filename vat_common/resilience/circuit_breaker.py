# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Circuit breaker for calls to a fallible remote resource.

The breaker stops calling a failing dependency for a cooldown period, then
probes it cautiously before resuming normal traffic. State is guarded by a
single lock that is never held while the protected operation runs.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

MonitorHook = Callable[[str, Dict[str, Any]], None]


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Resource considered down, calls rejected
    HALF_OPEN = "half-open"  # Probing whether the resource recovered


class CircuitOpenError(Exception):
    """Raised instead of calling the operation while the circuit is open."""

    def __init__(self, name: str, retry_after: float, failure_count: int):
        self.name = name
        self.retry_after = retry_after
        self.failure_count = failure_count
        super().__init__(
            f"Circuit breaker '{name}' is OPEN - service unavailable "
            f"(retry in {retry_after:.2f}s)"
        )


def log_circuit_event(event: str, data: Dict[str, Any]) -> None:
    """Monitor hook that writes circuit events to the log."""
    logger.info(f"Circuit event {event}: {data}")


class CircuitBreaker:
    """
    Circuit breaker state machine around zero-argument operations.

    CLOSED counts consecutive failures and opens at failure_threshold. OPEN
    rejects calls with CircuitOpenError until the timeout elapses, then the
    next call moves to HALF_OPEN and is attempted. HALF_OPEN closes after
    success_threshold successes and reopens on any failure.
    """

    def __init__(
        self,
        name: str = "default",
        failure_threshold: int = 5,
        success_threshold: int = 1,
        timeout: float = 5.0,
        monitor: Optional[MonitorHook] = None,
        clock: Callable[[], float] = time.monotonic,
        call_timeout: Optional[float] = None,
        excluded_exceptions: Tuple[Type[BaseException], ...] = (),
        max_workers: int = 4,
    ):
        """
        Initialize the circuit breaker.

        Args:
            name: Name of the protected resource, used in logs and errors
            failure_threshold: Consecutive failures that open the circuit
            success_threshold: Successes in HALF_OPEN needed to close it
            timeout: Seconds to stay OPEN before probing
            monitor: Optional hook receiving (event, data) for every transition
            clock: Monotonic time source
            call_timeout: Default per-call deadline in seconds, None for no deadline
            excluded_exceptions: Exceptions raised by the operation that are
                passed through without counting as a failure
            max_workers: Worker threads used to enforce call deadlines
        """
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if success_threshold < 1:
            raise ValueError("success_threshold must be at least 1")
        if timeout < 0:
            raise ValueError("timeout must not be negative")

        self.name = name
        self.failure_threshold = failure_threshold
        self.success_threshold = success_threshold
        self.timeout = timeout
        self.monitor = monitor
        self.clock = clock
        self.call_timeout = call_timeout
        self.excluded_exceptions = tuple(excluded_exceptions)
        self.max_workers = max_workers

        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._next_attempt_at = 0.0
        self._executor: Optional[ThreadPoolExecutor] = None

    @classmethod
    def from_config(
        cls,
        name: str,
        config: Dict[str, Any],
        monitor: Optional[MonitorHook] = None,
        **kwargs: Any,
    ) -> "CircuitBreaker":
        """
        Create a breaker from the 'circuit_breaker' section of a configuration.

        Args:
            name: Name of the protected resource
            config: Full configuration dictionary
            monitor: Optional monitor hook
            **kwargs: Extra constructor arguments

        Returns:
            Configured CircuitBreaker
        """
        settings = config.get("circuit_breaker", {})
        return cls(
            name=name,
            failure_threshold=int(settings.get("failure_threshold", 5)),
            success_threshold=int(settings.get("success_threshold", 1)),
            timeout=float(settings.get("timeout", 5.0)),
            call_timeout=settings.get("call_timeout"),
            monitor=monitor,
            **kwargs,
        )

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    def execute(self, operation: Callable[[], T], timeout: Optional[float] = None) -> T:
        """
        Run an operation under the protection of the breaker.

        Args:
            operation: Zero-argument callable to run
            timeout: Optional deadline in seconds overriding call_timeout

        Returns:
            The operation's result

        Raises:
            CircuitOpenError: If the circuit is open and the cooldown has not elapsed
            TimeoutError: If the operation exceeded its deadline
            Exception: Whatever the operation raised
        """
        events: List[Tuple[str, Dict[str, Any]]] = []
        with self._lock:
            rejection = self._before_call(events)
        self._emit(events)
        if rejection is not None:
            raise rejection

        deadline = timeout if timeout is not None else self.call_timeout
        try:
            result = self._run(operation, deadline)
        except self.excluded_exceptions:
            self._record(self._on_success)
            raise
        except Exception:
            self._record(self._on_failure)
            raise

        self._record(self._on_success)
        return result

    def reset(self) -> None:
        """Force the circuit CLOSED with zeroed counters."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._success_count = 0
            self._next_attempt_at = 0.0
        logger.info(f"Circuit '{self.name}' reset to CLOSED")
        self._emit([("circuit_reset", {})])

    def get_stats(self) -> Dict[str, Any]:
        """Snapshot of the breaker state."""
        with self._lock:
            retry_after = None
            if self._state == CircuitState.OPEN:
                retry_after = max(0.0, self._next_attempt_at - self.clock())
            return {
                "name": self.name,
                "state": self._state.value,
                "failure_count": self._failure_count,
                "success_count": self._success_count,
                "retry_after": retry_after,
            }

    def close(self) -> None:
        """Release the deadline worker threads."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False)

    def _before_call(self, events) -> Optional[CircuitOpenError]:
        if self._state != CircuitState.OPEN:
            return None

        now = self.clock()
        if now < self._next_attempt_at:
            retry_after = self._next_attempt_at - now
            events.append(
                (
                    "circuit_open_reject",
                    {"retry_after": retry_after, "failure_count": self._failure_count},
                )
            )
            return CircuitOpenError(self.name, retry_after, self._failure_count)

        self._state = CircuitState.HALF_OPEN
        self._success_count = 0
        logger.info(f"Circuit '{self.name}' HALF_OPEN, probing resource")
        events.append(("circuit_half_open", {"previous_failures": self._failure_count}))
        return None

    def _on_success(self, events) -> None:
        self._failure_count = 0
        if self._state != CircuitState.HALF_OPEN:
            return

        self._success_count += 1
        if self._success_count >= self.success_threshold:
            self._state = CircuitState.CLOSED
            logger.info(f"Circuit '{self.name}' CLOSED after {self._success_count} successful probe(s)")
            events.append(("circuit_closed", {"success_count": self._success_count}))

    def _on_failure(self, events) -> None:
        self._failure_count += 1

        if self._state == CircuitState.HALF_OPEN:
            self._open()
            events.append(
                (
                    "circuit_open_from_half_open",
                    {"failure_count": self._failure_count, "timeout": self.timeout},
                )
            )
        elif self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
            self._open()
            events.append(
                (
                    "circuit_opened",
                    {"failure_count": self._failure_count, "timeout": self.timeout},
                )
            )
        # a late failure from a call started before the circuit opened keeps
        # the current cooldown

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self._next_attempt_at = self.clock() + self.timeout
        logger.warning(
            f"Circuit '{self.name}' OPEN after {self._failure_count} failure(s), "
            f"next attempt in {self.timeout}s"
        )

    def _record(self, transition) -> None:
        events: List[Tuple[str, Dict[str, Any]]] = []
        with self._lock:
            transition(events)
        self._emit(events)

    def _run(self, operation: Callable[[], T], deadline: Optional[float]) -> T:
        if deadline is None:
            return operation()

        future = self._get_executor().submit(operation)
        try:
            return future.result(timeout=deadline)
        except FutureTimeoutError as e:
            future.cancel()
            raise TimeoutError(
                f"Operation protected by '{self.name}' exceeded {deadline}s deadline"
            ) from e

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix=f"circuit-{self.name}",
                )
            return self._executor

    def _emit(self, events) -> None:
        if not self.monitor:
            return
        for event, data in events:
            try:
                self.monitor(event, {"circuit": self.name, **data})
            except Exception as e:
                logger.warning(f"Circuit monitor hook failed for {event}: {e}")
