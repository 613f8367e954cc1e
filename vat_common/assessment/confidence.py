# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Confidence estimation for VAT extractions.

A document may state its own confidence (exports from other tools often do).
Otherwise the estimate falls back to a prior that depends on whether any
amount was found. Learned patterns showing repeated large corrections for the
same business and category pull the estimate down.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

HIGH_PRIOR = 0.85
LOW_PRIOR = 0.3
MAX_LEARNING_PENALTY = 0.2
USABILITY_FLOOR = 0.5

# Tried in order, the first match wins
DECLARATION_PATTERNS = (
    re.compile(r"([0-9]+(?:\.[0-9]+)?)%\s*confidence", re.IGNORECASE),
    re.compile(r"confidence[:\s]*([0-9]+(?:\.[0-9]+)?)%", re.IGNORECASE),
    re.compile(r'"confidence"[:\s]*([0-9]*\.?[0-9]+)', re.IGNORECASE),
    re.compile(r"confidence[:\s]*([0-9]*\.?[0-9]+)", re.IGNORECASE),
)

SOURCE_DECLARED = "declared"
SOURCE_PRIOR = "prior"


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class ConfidenceAssessment:
    """A confidence estimate and how it was reached"""

    value: float
    source: str  # SOURCE_DECLARED or SOURCE_PRIOR
    declared: Optional[float] = None
    learning_penalty: float = 0.0


def find_declared_confidence(text: Optional[str]) -> Optional[float]:
    """
    Find a confidence the document states about itself.

    Values above 1 are read as percentages; values above 100 are ignored.

    Args:
        text: Document text

    Returns:
        Confidence between 0 and 1, or None when nothing usable is declared
    """
    if not text:
        return None
    for pattern in DECLARATION_PATTERNS:
        for match in pattern.finditer(text):
            try:
                value = float(match.group(1))
            except ValueError:
                continue
            if value > 100:
                continue
            if value > 1:
                value = value / 100
            return value
    return None


class ConfidenceEstimator:
    """Estimates the reliability of an extraction as a value between 0 and 1."""

    def __init__(self, config: Dict[str, Any] = None):
        """
        Initialize the estimator.

        Args:
            config: Configuration dictionary, reads the 'confidence' and
                'learning' sections
        """
        self.config = config or {}
        settings = self.config.get("confidence", {})
        self.high_prior = float(settings.get("high_prior", HIGH_PRIOR))
        self.low_prior = float(settings.get("low_prior", LOW_PRIOR))
        self.max_learning_penalty = float(
            settings.get("max_learning_penalty", MAX_LEARNING_PENALTY)
        )
        self.usability_floor = float(
            self.config.get("learning", {}).get("usability_floor", USABILITY_FLOOR)
        )

    def learning_penalty(self, patterns: Optional[Sequence[Any]]) -> float:
        """
        Penalty derived from learned patterns.

        Each usable pattern contributes its confidence times the share of its
        remembered corrections that were common mistakes; the strongest
        contribution is scaled to max_learning_penalty.

        Args:
            patterns: Learned patterns (objects with confidence and mistake_rate())

        Returns:
            Penalty between 0 and max_learning_penalty
        """
        strongest = 0.0
        for pattern in patterns or []:
            if pattern.confidence < self.usability_floor:
                continue
            strongest = max(strongest, clamp(pattern.confidence) * clamp(pattern.mistake_rate()))
        return round(strongest * self.max_learning_penalty, 4)

    def assess(
        self,
        text: Optional[str],
        amounts_found: Any,
        patterns: Optional[Sequence[Any]] = None,
    ) -> ConfidenceAssessment:
        """
        Estimate confidence and report how the estimate was reached.

        Args:
            text: Document text
            amounts_found: Number of amounts extracted, or a truthy flag
            patterns: Optional learned patterns for the document's business and category

        Returns:
            ConfidenceAssessment
        """
        declared = find_declared_confidence(text)
        if declared is not None:
            base, source = declared, SOURCE_DECLARED
        else:
            base = self.high_prior if amounts_found else self.low_prior
            source = SOURCE_PRIOR

        penalty = self.learning_penalty(patterns)
        value = clamp(base - penalty)
        if penalty:
            logger.debug(f"Learned patterns lowered confidence from {base} to {value}")
        return ConfidenceAssessment(
            value=value, source=source, declared=declared, learning_penalty=penalty
        )

    def estimate(
        self,
        text: Optional[str],
        amounts_found: Any,
        patterns: Optional[Sequence[Any]] = None,
    ) -> float:
        """Confidence between 0 and 1 for an extraction of text."""
        return self.assess(text, amounts_found, patterns).value


def aggregate_confidence(items: Iterable[Tuple[float, float]]) -> float:
    """
    Amount-weighted average confidence over several documents.

    Documents with larger VAT totals dominate the aggregate. When the total
    weight is zero the simple mean is used instead.

    Args:
        items: (confidence, total) pairs

    Returns:
        Aggregate confidence, 0.0 for no items
    """
    pairs = [(float(c), max(0.0, float(t))) for c, t in items]
    if not pairs:
        return 0.0

    total_weight = sum(weight for _, weight in pairs)
    if total_weight <= 0:
        return clamp(sum(c for c, _ in pairs) / len(pairs))
    return clamp(sum(c * weight for c, weight in pairs) / total_weight)
