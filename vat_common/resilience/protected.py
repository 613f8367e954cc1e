# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

import functools
import logging
import time
from typing import Any, Callable, Dict, Optional

from vat_common.resilience.circuit_breaker import CircuitBreaker
from vat_common.resilience.retry import call_with_retry
from vat_common.utils import INITIAL_BACKOFF, MAX_BACKOFF, MAX_RETRIES

logger = logging.getLogger(__name__)


class ProtectedResource:
    """
    Proxy that routes every public method call of a resource through a
    circuit breaker, with bounded retries.

    Attributes that are not callable are returned unchanged.
    """

    def __init__(
        self,
        resource: Any,
        breaker: CircuitBreaker,
        max_retries: int = MAX_RETRIES,
        initial_backoff: float = INITIAL_BACKOFF,
        max_backoff: float = MAX_BACKOFF,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.resource = resource
        self.breaker = breaker
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.sleep = sleep

    @classmethod
    def from_config(
        cls,
        resource: Any,
        breaker: CircuitBreaker,
        config: Optional[Dict[str, Any]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "ProtectedResource":
        """Create a proxy using the 'retry' section of a configuration."""
        settings = (config or {}).get("retry", {})
        return cls(
            resource,
            breaker,
            max_retries=int(settings.get("max_retries", MAX_RETRIES)),
            initial_backoff=float(settings.get("initial_backoff", INITIAL_BACKOFF)),
            max_backoff=float(settings.get("max_backoff", MAX_BACKOFF)),
            sleep=sleep,
        )

    def __getattr__(self, name: str) -> Any:
        if name == "resource":
            raise AttributeError(name)
        attribute = getattr(self.resource, name)
        if name.startswith("_") or not callable(attribute):
            return attribute

        @functools.wraps(attribute)
        def protected(*args, **kwargs):
            return call_with_retry(
                self.breaker,
                lambda: attribute(*args, **kwargs),
                max_retries=self.max_retries,
                initial_backoff=self.initial_backoff,
                max_backoff=self.max_backoff,
                sleep=self.sleep,
            )

        return protected

    def __repr__(self) -> str:
        return f"ProtectedResource({self.resource!r}, breaker={self.breaker.name!r})"
