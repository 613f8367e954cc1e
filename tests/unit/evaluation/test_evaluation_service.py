# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Unit tests for the EvaluationService class.
"""

from unittest.mock import MagicMock

import pytest

from vat_common.evaluation import (
    EvaluationService,
    ExpectedTotals,
    LabeledCase,
    ValidationResult,
    accuracy_percentage,
    amount_difference,
    is_within_tolerance,
    overall_score,
)
from vat_common.extraction import (
    COUNTRY_SUMMARY_REPORT,
    ORDER_DETAIL_REPORT,
    ExtractionResult,
)
from vat_common.models import DocumentCategory


def _result(
    sales=(),
    purchase=(),
    confidence=0.9,
    method="currency_prefix",
    category=DocumentCategory.SALES_INVOICE,
    **kwargs,
):
    found = bool(sales or purchase)
    return ExtractionResult(
        sales_amounts=tuple(sales),
        purchase_amounts=tuple(purchase),
        confidence=confidence,
        method=method if found else "none",
        methods=(method,) if found else (),
        document_category=category,
        **kwargs,
    )


@pytest.mark.unit
class TestMetrics:
    def test_accuracy_percentage(self):
        assert accuracy_percentage(100, 100) == 100.0
        assert accuracy_percentage(90, 100) == pytest.approx(90.0)
        assert accuracy_percentage(110, 100) == pytest.approx(90.0)
        assert accuracy_percentage(300, 100) == 0.0

    def test_accuracy_for_zero_expected(self):
        assert accuracy_percentage(0, 0) == 100.0
        assert accuracy_percentage(5, 0) == 0.0

    def test_tolerance_is_exclusive(self):
        assert is_within_tolerance(100.005, 100)
        assert not is_within_tolerance(100.01, 100)

    def test_difference_and_score(self):
        assert amount_difference(90, 100) == 10.0
        assert overall_score(90.0, 0.8) == pytest.approx(85.0)


@pytest.mark.unit
class TestEvaluationService:
    """Tests for validation of single extractions."""

    @pytest.fixture
    def service(self):
        return EvaluationService()

    def test_exact_match_passes(self, service):
        result = service.validate(_result(sales=[100.0]), 100.0, file_name="invoice.pdf")

        assert result.passed is True
        assert result.accuracy_percentage == 100.0
        assert result.difference == 0.0
        assert result.issues == ()
        assert result.warnings == ()
        assert result.file_name == "invoice.pdf"
        assert result.timestamp is not None

    def test_ten_percent_short_fails(self, service):
        result = service.validate(_result(sales=[90.0]), 100.0)

        assert result.passed is False
        assert result.accuracy_percentage == pytest.approx(90.0)
        assert result.difference == 10.0
        assert "High confidence (90%) for inaccurate extraction" in result.issues
        assert "Moderate accuracy: 90.0%" in result.warnings

    def test_low_accuracy_is_an_issue(self, service):
        result = service.validate(_result(sales=[85.0], confidence=0.6), 100.0)

        assert "Low accuracy: 85.0%" in result.issues
        assert not any(i.startswith("High confidence") for i in result.issues)

    def test_low_confidence_on_accurate_extraction(self, service):
        result = service.validate(_result(sales=[50.0], confidence=0.4), 50.0)

        assert result.passed is True
        assert "Low confidence (40%) for accurate extraction" in result.warnings
        assert "Low confidence: 40%" in result.warnings

    def test_split_totals_checked_per_direction(self, service):
        extraction = _result(
            sales=[100.0], purchase=[15.0], category=DocumentCategory.OTHER
        )

        result = service.validate(extraction, ExpectedTotals(sales=100.0, purchase=20.0))

        assert result.expected_total == 120.0
        assert "Purchase VAT mismatch: expected €20.00, got €15.00" in result.issues
        assert not any(i.startswith("Sales VAT mismatch") for i in result.issues)
        assert "Document type not classified but VAT amounts found" in result.warnings

    def test_country_report_shape_warnings(self, service):
        expected = ExpectedTotals(total=10.0, report_type=COUNTRY_SUMMARY_REPORT)

        result = service.validate(_result(sales=[10.0]), expected)

        assert result.passed is True
        assert (
            f"Report type mismatch: expected {COUNTRY_SUMMARY_REPORT}, got standard"
            in result.warnings
        )
        assert (
            "Expected country-based extraction method for country summary report"
            in result.warnings
        )
        assert "Country summary report should have country breakdown" in result.warnings

    def test_order_report_with_order_method(self, service):
        extraction = _result(
            sales=[17.5], method="order_columns", report_type=ORDER_DETAIL_REPORT
        )
        expected = ExpectedTotals(total=17.5, report_type=ORDER_DETAIL_REPORT)

        result = service.validate(extraction, expected)

        assert result.warnings == ()

    def test_validation_result_rejects_bad_accuracy(self):
        with pytest.raises(ValueError):
            ValidationResult(
                expected_total=1.0,
                extracted_total=1.0,
                difference=0.0,
                accuracy_percentage=101.0,
                passed=True,
                confidence=1.0,
                report_type="standard",
                extraction_method="currency_prefix",
            )


@pytest.mark.unit
class TestValidationSuite:
    """Tests for suites of labeled documents."""

    @pytest.fixture
    def cases(self):
        return [
            LabeledCase("good.txt", "Total VAT: €100.00", DocumentCategory.SALES_INVOICE, 100.0),
            LabeledCase("broken.pdf", b"%PDF", DocumentCategory.PURCHASE_INVOICE, 50.0),
        ]

    def test_requires_an_extractor(self, cases):
        with pytest.raises(ValueError):
            EvaluationService().run_validation_suite(cases)

    def test_extraction_errors_become_failed_results(self, cases):
        extractor = MagicMock(side_effect=[_result(sales=[100.0]), RuntimeError("boom")])
        service = EvaluationService(extractor=extractor)

        summary = service.run_validation_suite(cases)

        assert summary.total_tests == 2
        assert summary.passed_tests == 1
        assert summary.failed_tests == 1
        failed = summary.results[1]
        assert failed.file_name == "broken.pdf"
        assert failed.issues == ("Extraction failed: boom",)
        assert failed.accuracy_percentage == 0.0
        assert summary.issues == ["Extraction failed: boom"]

    def test_summary_figures_and_recommendations(self, cases):
        extractor = MagicMock(side_effect=[_result(sales=[100.0]), RuntimeError("boom")])
        summary = EvaluationService(extractor=extractor).run_validation_suite(cases)

        assert summary.average_accuracy == pytest.approx(50.0)
        assert summary.average_confidence == pytest.approx(0.45)
        assert summary.overall_score == pytest.approx(47.5)
        assert summary.recommendations == [
            "1 of 2 tests failed - review extraction logic",
            "Average accuracy 50.0% is below 95% target",
            "Average confidence 45% is below 85% target - improve pattern detection",
        ]

    def test_training_data(self, cases):
        extractor = MagicMock(side_effect=[_result(sales=[100.0]), RuntimeError("boom")])
        summary = EvaluationService(extractor=extractor).run_validation_suite(cases)
        training = summary.training_data

        assert [p.method for p in training.successful_patterns] == ["currency_prefix"]
        assert training.failed_patterns[0].issues == ["Extraction failed: boom"]
        assert (
            "More than 30% of extractions have low confidence - improve pattern detection"
            in training.recommended_improvements
        )

    def test_majority_failure_recommendation(self):
        service = EvaluationService()
        results = [
            service.validate(_result(sales=[50.0]), 100.0),
            service.validate(_result(sales=[60.0]), 100.0),
            service.validate(_result(sales=[100.0]), 100.0),
        ]

        summary = service.summarize(results)

        assert "More than 50% of tests failed - review core extraction logic" in summary.recommendations
        assert (
            "More than 50% of tests failed - review core extraction logic"
            in summary.training_data.recommended_improvements
        )

    def test_failed_country_report_flags_improvement(self):
        service = EvaluationService()
        extraction = _result(
            sales=[10.0], method="country_breakdown", report_type=COUNTRY_SUMMARY_REPORT
        )

        training = service.generate_training_data([service.validate(extraction, 20.0)])

        assert "Country summary report extraction needs improvement" in training.recommended_improvements

    def test_duplicate_patterns_are_collapsed(self):
        service = EvaluationService()
        results = [service.validate(_result(sales=[100.0]), 100.0) for _ in range(3)]

        training = service.generate_training_data(results)

        assert len(training.successful_patterns) == 1

    def test_empty_summary(self):
        summary = EvaluationService().summarize([])

        assert summary.total_tests == 0
        assert summary.recommendations == []
        assert summary.overall_score == 0.0
