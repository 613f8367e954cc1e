# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

import logging
import os
import random
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, List, Optional

logger = logging.getLogger(__name__)

# Common backoff constants
MAX_RETRIES = 2
INITIAL_BACKOFF = 0.2  # seconds
MAX_BACKOFF = 2.0  # seconds


def calculate_backoff(
    attempt: int,
    initial_backoff: float = INITIAL_BACKOFF,
    max_backoff: float = MAX_BACKOFF,
) -> float:
    """
    Calculate exponential backoff with jitter

    Args:
        attempt: The current retry attempt number (0-based)
        initial_backoff: Starting backoff in seconds
        max_backoff: Maximum backoff cap in seconds

    Returns:
        Backoff time in seconds
    """
    backoff = min(max_backoff, initial_backoff * (2**attempt))
    jitter = random.uniform(0, 0.1 * backoff)  # 10% jitter
    return backoff + jitter


def round_currency(value: float) -> float:
    """Round a monetary value to cents."""
    # adding 0.0 turns -0.0 into 0.0
    return round(float(value), 2) + 0.0


def sum_amounts(amounts: Optional[Iterable[float]]) -> float:
    """
    Sum monetary amounts and round the total to cents.

    Args:
        amounts: Iterable of amounts, None is treated as empty

    Returns:
        Rounded total
    """
    return round_currency(sum(float(a) for a in (amounts or [])))


def dedupe(items: Iterable[Any]) -> List[Any]:
    """Remove duplicates while keeping first-seen order."""
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def utc_now_iso() -> str:
    """Current UTC time in ISO-8601 format with a trailing Z."""
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z"


def convert_floats_to_decimal(obj: Any) -> Any:
    """
    Recursively convert float values to Decimal for DynamoDB compatibility
    """
    if isinstance(obj, float):
        return Decimal(str(obj))
    elif isinstance(obj, dict):
        return {k: convert_floats_to_decimal(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [convert_floats_to_decimal(item) for item in obj]
    return obj


def convert_decimals(obj: Any) -> Any:
    """
    Recursively convert Decimal values returned by DynamoDB back to int/float
    """
    if isinstance(obj, Decimal):
        return int(obj) if obj == obj.to_integral_value() else float(obj)
    elif isinstance(obj, dict):
        return {k: convert_decimals(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [convert_decimals(item) for item in obj]
    return obj


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging for scripts and local runs.

    The library itself never installs handlers; this helper honours the
    LOG_LEVEL environment variable the same way the processing functions do.

    Args:
        level: Optional level name overriding LOG_LEVEL
    """
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    logger.debug(f"Logging configured at level {level_name}")
