"""
Metrics calculation for VAT extraction validation.

This module provides functions to calculate accuracy metrics for extracted
VAT totals.
"""

from typing import Iterable

# Difference below which an extracted total counts as correct (one cent)
PASS_TOLERANCE = 0.01


def amount_difference(extracted: float, expected: float) -> float:
    """
    Calculate the absolute difference between extracted and expected totals.

    Args:
        extracted: Extracted total
        expected: Expected total

    Returns:
        Non-negative difference rounded to cents
    """
    return round(abs(float(extracted) - float(expected)), 2) + 0.0


def accuracy_percentage(extracted: float, expected: float) -> float:
    """
    Calculate accuracy as 100 minus the relative error, floored at 0.

    An expected total of zero has no relative error: the accuracy is 100
    when nothing was extracted either and 0 otherwise.

    Args:
        extracted: Extracted total
        expected: Expected total

    Returns:
        Accuracy between 0.0 and 100.0
    """
    difference = abs(float(extracted) - float(expected))
    if expected == 0:
        return 100.0 if float(extracted) == 0 else 0.0
    accuracy = 100.0 - (difference / abs(float(expected))) * 100.0
    return round(min(100.0, max(0.0, accuracy)), 4)


def is_within_tolerance(
    extracted: float, expected: float, tolerance: float = PASS_TOLERANCE
) -> bool:
    """
    Check whether an extracted total matches the expected one.

    Args:
        extracted: Extracted total
        expected: Expected total
        tolerance: Largest difference that still fails, exclusive

    Returns:
        True if the difference is below the tolerance
    """
    return round(abs(float(extracted) - float(expected)), 6) < tolerance


def mean(values: Iterable[float]) -> float:
    """Arithmetic mean, 0.0 for no values."""
    values = list(values)
    return sum(values) / len(values) if values else 0.0


def overall_score(average_accuracy: float, average_confidence: float) -> float:
    """
    Equal-weighted blend of mean accuracy and mean confidence.

    Args:
        average_accuracy: Mean accuracy percentage (0-100)
        average_confidence: Mean confidence (0-1)

    Returns:
        Score between 0.0 and 100.0
    """
    return (average_accuracy + average_confidence * 100.0) / 2.0
