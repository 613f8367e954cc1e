# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Unit tests for confidence estimation.
"""

import pytest

from vat_common.assessment import (
    ConfidenceEstimator,
    aggregate_confidence,
    find_declared_confidence,
)
from vat_common.assessment.confidence import SOURCE_DECLARED, SOURCE_PRIOR


class _Pattern:
    def __init__(self, confidence, mistake_rate):
        self.confidence = confidence
        self._mistake_rate = mistake_rate

    def mistake_rate(self):
        return self._mistake_rate


@pytest.mark.unit
class TestFindDeclaredConfidence:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Extraction 92% confidence", 0.92),
            ("Confidence: 88%", 0.88),
            ('{"confidence": 0.75}', 0.75),
            ("confidence 0.6", 0.6),
            ("confidence: 45", 0.45),
        ],
    )
    def test_declared_values(self, text, expected):
        assert find_declared_confidence(text) == pytest.approx(expected)

    def test_values_above_100_are_ignored(self):
        assert find_declared_confidence("confidence: 250") is None

    def test_no_declaration(self):
        assert find_declared_confidence("Total VAT: €10.00") is None
        assert find_declared_confidence(None) is None


@pytest.mark.unit
class TestConfidenceEstimator:
    @pytest.fixture
    def estimator(self):
        return ConfidenceEstimator()

    def test_prior_when_amounts_found(self, estimator):
        assessment = estimator.assess("VAT: €10.00", 1)

        assert assessment.value == pytest.approx(0.85)
        assert assessment.source == SOURCE_PRIOR
        assert assessment.declared is None

    def test_prior_when_nothing_found(self, estimator):
        assert estimator.estimate("nothing here", 0) == pytest.approx(0.3)

    def test_declared_overrides_prior(self, estimator):
        assessment = estimator.assess("Confidence: 40%", 3)

        assert assessment.value == pytest.approx(0.4)
        assert assessment.source == SOURCE_DECLARED

    def test_configured_priors(self):
        estimator = ConfidenceEstimator({"confidence": {"high_prior": 0.9, "low_prior": 0.1}})
        assert estimator.estimate("", 1) == pytest.approx(0.9)
        assert estimator.estimate("", 0) == pytest.approx(0.1)

    def test_learning_penalty_uses_strongest_usable_pattern(self, estimator):
        patterns = [
            _Pattern(confidence=0.4, mistake_rate=1.0),  # below usability floor
            _Pattern(confidence=0.8, mistake_rate=0.5),
            _Pattern(confidence=1.0, mistake_rate=0.2),
        ]
        assert estimator.learning_penalty(patterns) == pytest.approx(0.08)

    def test_learning_penalty_is_bounded(self, estimator):
        assert estimator.learning_penalty([_Pattern(1.0, 1.0)]) == pytest.approx(0.2)
        assert estimator.learning_penalty(None) == 0.0

    def test_result_stays_within_bounds(self, estimator):
        assessment = estimator.assess("confidence 0.1", 1, [_Pattern(1.0, 1.0)])
        assert assessment.value == 0.0
        assert assessment.learning_penalty == pytest.approx(0.2)


@pytest.mark.unit
class TestAggregateConfidence:
    def test_weighted_by_amount(self):
        result = aggregate_confidence([(0.9, 1000), (0.5, 10)])
        assert result == pytest.approx(0.896, abs=1e-3)

    def test_zero_weight_uses_mean(self):
        assert aggregate_confidence([(0.9, 0), (0.5, 0)]) == pytest.approx(0.7)

    def test_negative_totals_count_as_zero(self):
        assert aggregate_confidence([(0.9, -50), (0.5, 10)]) == pytest.approx(0.5)

    def test_empty(self):
        assert aggregate_confidence([]) == 0.0
