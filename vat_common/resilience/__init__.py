# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Resilience helpers for calls to remote resources.
"""

from vat_common.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
    log_circuit_event,
)
from vat_common.resilience.protected import ProtectedResource
from vat_common.resilience.retry import call_with_retry

__all__ = [
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
    "ProtectedResource",
    "call_with_retry",
    "log_circuit_event",
]
