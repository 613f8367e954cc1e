# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

import logging
import time
from typing import Callable, Optional, TypeVar

from vat_common.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
)
from vat_common.utils import (
    INITIAL_BACKOFF,
    MAX_BACKOFF,
    MAX_RETRIES,
    calculate_backoff,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def call_with_retry(
    breaker: CircuitBreaker,
    operation: Callable[[], T],
    max_retries: int = MAX_RETRIES,
    initial_backoff: float = INITIAL_BACKOFF,
    max_backoff: float = MAX_BACKOFF,
    sleep: Callable[[float], None] = time.sleep,
    timeout: Optional[float] = None,
) -> T:
    """
    Run an operation through a circuit breaker, retrying failures with backoff.

    Retries stop as soon as the breaker rejects a call or opens. Exceptions the
    breaker excludes from failure counting are never retried.

    Args:
        breaker: Circuit breaker protecting the resource
        operation: Zero-argument callable to run
        max_retries: Maximum number of retries after the first attempt
        initial_backoff: Starting backoff in seconds
        max_backoff: Maximum backoff in seconds
        sleep: Sleep function, replaceable in tests
        timeout: Optional per-attempt deadline in seconds

    Returns:
        The operation's result

    Raises:
        CircuitOpenError: If the circuit is open
        Exception: The last error raised by the operation
    """
    attempt = 0
    while True:
        try:
            return breaker.execute(operation, timeout=timeout)
        except CircuitOpenError:
            raise
        except breaker.excluded_exceptions:
            raise
        except Exception as e:
            if attempt >= max_retries:
                logger.error(
                    f"Operation on '{breaker.name}' failed after {attempt + 1} attempt(s): {e}"
                )
                raise
            if breaker.state == CircuitState.OPEN:
                logger.warning(
                    f"Circuit '{breaker.name}' opened, not retrying: {e}"
                )
                raise

            backoff = calculate_backoff(attempt, initial_backoff, max_backoff)
            logger.warning(
                f"Operation on '{breaker.name}' failed (attempt {attempt + 1}/{max_retries + 1}): {e}. "
                f"Retrying in {backoff:.2f}s"
            )
            sleep(backoff)
            attempt += 1
