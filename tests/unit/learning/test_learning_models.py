# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Unit tests for the learning models and insight helpers.
"""

from collections import deque

import pytest

from vat_common.learning import (
    CorrectionRecord,
    FeedbackKind,
    FeedbackRecord,
    LearningPattern,
)
from vat_common.learning.insights import (
    apply_pattern,
    build_recommendations,
    correction_insights,
)
from vat_common.models import DocumentCategory


def _correction(original, corrected, kind=FeedbackKind.INCORRECT):
    return CorrectionRecord(
        document_id="doc-1",
        kind=kind,
        original_amounts=[original],
        corrected_amounts=[corrected],
    )


@pytest.mark.unit
class TestCorrectionRecord:
    def test_difference_and_error(self):
        correction = _correction(200.0, 150.0)

        assert correction.difference == -50.0
        assert correction.percentage_error == -25.0
        assert correction.is_common_mistake is True

    def test_zero_original_total(self):
        correction = _correction(0.0, 40.0)

        assert correction.percentage_error == 0.0
        assert correction.is_common_mistake is False

    def test_small_error_is_not_a_mistake(self):
        assert _correction(100.0, 110.0).is_common_mistake is False


@pytest.mark.unit
class TestLearningPattern:
    def test_round_trip_keeps_window_size(self):
        pattern = LearningPattern(
            business_id="biz-1",
            category=DocumentCategory.PURCHASE_RECEIPT,
            frequency=3,
            confidence=0.7,
            recent_corrections=deque([_correction(10.0, 20.0)], maxlen=3),
            document_types=["PURCHASE_RECEIPT"],
            categories=["PURCHASES"],
            version=3,
        )

        restored = LearningPattern.from_dict(pattern.to_dict())

        assert restored.window_size == 3
        assert restored.category == DocumentCategory.PURCHASE_RECEIPT
        assert restored.recent_corrections[0].corrected_total == 20.0
        assert restored.version == 3

    def test_mistake_rate(self):
        pattern = LearningPattern(
            business_id="biz-1",
            category=DocumentCategory.SALES_INVOICE,
            recent_corrections=deque([_correction(100.0, 150.0), _correction(100.0, 101.0)]),
        )
        assert pattern.mistake_rate() == 0.5
        assert LearningPattern("biz-1", DocumentCategory.OTHER).mistake_rate() == 0.0

    def test_from_dict_requires_data(self):
        with pytest.raises(ValueError):
            LearningPattern.from_dict({})


@pytest.mark.unit
class TestFeedbackRecord:
    def test_round_trip(self, original_snapshot, corrected_snapshot):
        record = FeedbackRecord(
            document_id="doc-1",
            submitter_id="user-1",
            business_id="biz-1",
            original=original_snapshot,
            corrected=corrected_snapshot,
            kind=FeedbackKind.PARTIALLY_CORRECT,
            document_category=DocumentCategory.SALES_INVOICE,
        )

        restored = FeedbackRecord.from_dict(record.to_dict())

        assert restored.key == ("doc-1", "user-1")
        assert restored.kind == FeedbackKind.PARTIALLY_CORRECT
        assert restored.corrected.total == 123.45
        assert restored.original.confidence == 0.85


@pytest.mark.unit
class TestInsights:
    def test_equal_totals_give_no_insight(self):
        assert correction_insights(_correction(10.0, 10.0)) is None

    def test_overestimation(self):
        pattern = LearningPattern(
            business_id="biz-1",
            category=DocumentCategory.SALES_INVOICE,
            recent_corrections=deque([_correction(200.0, 150.0)]),
        )

        applied = apply_pattern(pattern)

        assert applied.insights[0].direction == "overestimation"
        assert applied.common_mistakes == ["AI overestimated VAT by 25.0%"]

    def test_strong_patterns(self):
        pattern = LearningPattern(
            business_id="biz-1", category=DocumentCategory.SALES_REPORT, confidence=0.9
        )

        recommendations = build_recommendations(
            [pattern], [], DocumentCategory.SALES_REPORT, "woocommerce_tax_report.csv"
        )

        assert recommendations == [
            "Strong learning patterns detected. AI should perform well on similar documents.",
            "WooCommerce reports detected. Specialized processing should handle VAT extraction accurately.",
        ]

    def test_moderate_patterns(self):
        pattern = LearningPattern(
            business_id="biz-1", category=DocumentCategory.PURCHASE_INVOICE, confidence=0.7
        )
        recommendations = build_recommendations(
            [pattern], [], DocumentCategory.PURCHASE_INVOICE, "supplier_invoice.pdf"
        )
        assert recommendations == [
            "Moderate learning patterns available. Continue providing feedback to improve accuracy."
        ]
