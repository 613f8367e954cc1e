# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Validation service for VAT extraction results.

This module compares extraction results against known totals, runs suites
of labeled documents and derives training data from the outcomes.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from vat_common.evaluation.metrics import (
    PASS_TOLERANCE,
    accuracy_percentage,
    amount_difference,
    is_within_tolerance,
    mean,
    overall_score,
)
from vat_common.evaluation.models import (
    ExpectedTotals,
    LabeledCase,
    TrainingData,
    TrainingPattern,
    ValidationResult,
    ValidationSummary,
)
from vat_common.extraction.models import (
    COUNTRY_SUMMARY_REPORT,
    NO_METHOD,
    ORDER_DETAIL_REPORT,
    STANDARD_REPORT,
    ExtractionResult,
)
from vat_common.models import DocumentCategory
from vat_common.utils import dedupe, utc_now_iso

logger = logging.getLogger(__name__)

Extractor = Callable[[LabeledCase], ExtractionResult]


class EvaluationService:
    """Service for validating VAT extraction accuracy."""

    def __init__(self, config: Dict[str, Any] = None, extractor: Optional[Extractor] = None):
        """
        Initialize the evaluation service.

        Args:
            config: Configuration dictionary, reads the 'validation' section
            extractor: Callable extracting a LabeledCase, required for run_validation_suite
        """
        self.config = config or {}
        settings = self.config.get("validation", {})
        self.tolerance = float(settings.get("tolerance", PASS_TOLERANCE))
        self.high_confidence = float(settings.get("high_confidence", 0.8))
        self.low_confidence = float(settings.get("low_confidence", 0.5))
        self.warning_accuracy = float(settings.get("warning_accuracy", 95.0))
        self.issue_accuracy = float(settings.get("issue_accuracy", 90.0))
        self.extractor = extractor

        logger.info(
            f"Initialized evaluation service with tolerance {self.tolerance} "
            f"and accuracy bands {self.issue_accuracy}/{self.warning_accuracy}"
        )

    def validate(
        self,
        extraction: ExtractionResult,
        expected: Union[float, int, ExpectedTotals],
        file_name: Optional[str] = None,
    ) -> ValidationResult:
        """
        Compare an extraction result with its expected total.

        Args:
            extraction: Result of extracting the document
            expected: Expected total, or ExpectedTotals with a sales/purchase split
            file_name: Optional file name recorded in the result

        Returns:
            A fresh ValidationResult
        """
        if not isinstance(expected, ExpectedTotals):
            expected = ExpectedTotals(total=float(expected))

        expected_total = expected.expected_total
        extracted_total = extraction.total
        difference = amount_difference(extracted_total, expected_total)
        accuracy = accuracy_percentage(extracted_total, expected_total)
        passed = is_within_tolerance(extracted_total, expected_total, self.tolerance)
        confidence = extraction.confidence

        issues: List[str] = []
        warnings: List[str] = []

        self._check_report_shape(extraction, expected, warnings)

        # Confidence validation
        if passed and confidence < self.high_confidence:
            warnings.append(
                f"Low confidence ({round(confidence * 100)}%) for accurate extraction"
            )
        if not passed and confidence > self.high_confidence:
            issues.append(
                f"High confidence ({round(confidence * 100)}%) for inaccurate extraction"
            )

        # Accuracy thresholds
        if self.issue_accuracy <= accuracy < self.warning_accuracy:
            warnings.append(f"Moderate accuracy: {accuracy:.1f}%")
        elif accuracy < self.issue_accuracy:
            issues.append(f"Low accuracy: {accuracy:.1f}%")

        # Per-direction checks when the expected totals are split
        if expected.has_split:
            if expected.sales is not None and not is_within_tolerance(
                extraction.sales_total, expected.sales, self.tolerance
            ):
                issues.append(
                    f"Sales VAT mismatch: expected €{expected.sales:.2f}, got €{extraction.sales_total:.2f}"
                )
            if expected.purchase is not None and not is_within_tolerance(
                extraction.purchase_total, expected.purchase, self.tolerance
            ):
                issues.append(
                    f"Purchase VAT mismatch: expected €{expected.purchase:.2f}, "
                    f"got €{extraction.purchase_total:.2f}"
                )

        if confidence < self.low_confidence:
            warnings.append(f"Low confidence: {round(confidence * 100)}%")

        if extraction.document_category == DocumentCategory.OTHER and extracted_total > 0:
            warnings.append("Document type not classified but VAT amounts found")

        result = ValidationResult(
            file_name=file_name,
            expected_total=expected_total,
            extracted_total=extracted_total,
            difference=difference,
            accuracy_percentage=accuracy,
            passed=passed,
            confidence=confidence,
            report_type=extraction.report_type,
            extraction_method=extraction.method,
            issues=tuple(issues),
            warnings=tuple(warnings),
            timestamp=utc_now_iso(),
        )
        logger.info(
            f"Validated {file_name or 'extraction'}: expected {expected_total}, "
            f"extracted {extracted_total}, accuracy {accuracy:.1f}%, "
            f"{'PASSED' if passed else 'FAILED'} "
            f"({len(issues)} issue(s), {len(warnings)} warning(s))"
        )
        return result

    @staticmethod
    def _check_report_shape(
        extraction: ExtractionResult, expected: ExpectedTotals, warnings: List[str]
    ) -> None:
        report_type = expected.report_type
        if not report_type or report_type == STANDARD_REPORT:
            return

        if extraction.report_type != report_type:
            warnings.append(
                f"Report type mismatch: expected {report_type}, got {extraction.report_type}"
            )

        if report_type == COUNTRY_SUMMARY_REPORT:
            if not any("country" in method for method in extraction.methods):
                warnings.append(
                    "Expected country-based extraction method for country summary report"
                )
            if not extraction.country_breakdown:
                warnings.append("Country summary report should have country breakdown")

        if report_type == ORDER_DETAIL_REPORT and not any(
            "order" in method for method in extraction.methods
        ):
            warnings.append(
                "Expected order tax column extraction method for order detail report"
            )

    def _failed_result(
        self, case: LabeledCase, expected: ExpectedTotals, error: Exception
    ) -> ValidationResult:
        expected_total = expected.expected_total
        return ValidationResult(
            file_name=case.name,
            expected_total=expected_total,
            extracted_total=0.0,
            difference=amount_difference(0.0, expected_total),
            accuracy_percentage=accuracy_percentage(0.0, expected_total),
            passed=False,
            confidence=0.0,
            report_type=STANDARD_REPORT,
            extraction_method=NO_METHOD,
            issues=(f"Extraction failed: {error}",),
            timestamp=utc_now_iso(),
        )

    def run_validation_suite(self, cases: Sequence[LabeledCase]) -> ValidationSummary:
        """
        Extract and validate every labeled case and summarise the results.

        A case whose extraction raises becomes a failed result carrying an
        "Extraction failed" issue; the suite carries on with the next case.

        Args:
            cases: Labeled documents

        Returns:
            ValidationSummary including the derived training data

        Raises:
            ValueError: If the service was created without an extractor
        """
        if self.extractor is None:
            raise ValueError("An extractor is required to run a validation suite")

        start_time = time.time()
        logger.info(f"Running validation suite with {len(cases)} case(s)")

        results: List[ValidationResult] = []
        for case in cases:
            expected = case.expected
            if not isinstance(expected, ExpectedTotals):
                expected = ExpectedTotals(total=float(expected))
            try:
                extraction = self.extractor(case)
            except Exception as e:
                logger.error(f"Extraction failed for {case.name}: {e}")
                results.append(self._failed_result(case, expected, e))
                continue
            results.append(self.validate(extraction, expected, file_name=case.name))

        summary = self.summarize(results)
        logger.info(
            f"Validation suite finished in {time.time() - start_time:.2f}s: "
            f"{summary.passed_tests}/{summary.total_tests} passed, "
            f"overall score {summary.overall_score:.1f}"
        )
        return summary

    def summarize(self, results: Sequence[ValidationResult]) -> ValidationSummary:
        """
        Aggregate validation results into a summary.

        Args:
            results: Validation results

        Returns:
            ValidationSummary
        """
        total = len(results)
        passed = sum(1 for r in results if r.passed)
        failed = total - passed
        average_accuracy = mean(r.accuracy_percentage for r in results)
        average_confidence = mean(r.confidence for r in results)

        recommendations: List[str] = []
        if failed > 0:
            recommendations.append(f"{failed} of {total} tests failed - review extraction logic")
        if failed > passed:
            recommendations.append("More than 50% of tests failed - review core extraction logic")
        if total and average_accuracy < self.warning_accuracy:
            recommendations.append(
                f"Average accuracy {average_accuracy:.1f}% is below {self.warning_accuracy:.0f}% target"
            )
        if total and average_confidence < 0.85:
            recommendations.append(
                f"Average confidence {round(average_confidence * 100)}% is below 85% target "
                f"- improve pattern detection"
            )

        return ValidationSummary(
            total_tests=total,
            passed_tests=passed,
            failed_tests=failed,
            average_accuracy=average_accuracy,
            average_confidence=average_confidence,
            overall_score=overall_score(average_accuracy, average_confidence),
            issues=dedupe(issue for r in results for issue in r.issues),
            recommendations=recommendations,
            results=list(results),
            training_data=self.generate_training_data(results),
        )

    def generate_training_data(self, results: Sequence[ValidationResult]) -> TrainingData:
        """
        Partition validation results into successful and failed patterns.

        Args:
            results: Validation results

        Returns:
            TrainingData with improvement recommendations
        """
        passed = [r for r in results if r.passed]
        failed = [r for r in results if not r.passed]

        successful_patterns = [
            TrainingPattern(r.extraction_method, r.report_type, r.accuracy_percentage)
            for r in passed
            if r.extraction_method != NO_METHOD and r.confidence > self.high_confidence
        ]
        failed_patterns = [
            TrainingPattern(
                r.extraction_method, r.report_type, r.accuracy_percentage, list(r.issues)
            )
            for r in failed
        ]

        improvements: List[str] = []
        if len(failed) > len(passed):
            improvements.append("More than 50% of tests failed - review core extraction logic")

        low_confidence = [r for r in results if r.confidence < 0.7]
        if results and len(low_confidence) > len(results) * 0.3:
            improvements.append(
                "More than 30% of extractions have low confidence - improve pattern detection"
            )

        if any("country" in r.report_type and not r.passed for r in results):
            improvements.append("Country summary report extraction needs improvement")
        if any("order" in r.report_type and not r.passed for r in results):
            improvements.append("Order detail report extraction needs improvement")

        return TrainingData(
            successful_patterns=_unique_patterns(successful_patterns),
            failed_patterns=_unique_patterns(failed_patterns),
            recommended_improvements=dedupe(improvements),
        )


def _unique_patterns(patterns: List[TrainingPattern]) -> List[TrainingPattern]:
    seen = set()
    unique = []
    for pattern in patterns:
        key = pattern.describe()
        if key not in seen:
            seen.add(key)
            unique.append(pattern)
    return unique
