# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Evaluation module for VAT extractions.

This module validates extraction results against known totals, runs
validation suites over labeled documents and applies rule checks to
extracted amounts.
"""

from vat_common.evaluation.metrics import (
    PASS_TOLERANCE,
    accuracy_percentage,
    amount_difference,
    is_within_tolerance,
    overall_score,
)
from vat_common.evaluation.models import (
    ExpectedTotals,
    LabeledCase,
    RuleCheckResult,
    RuleViolation,
    TrainingData,
    TrainingPattern,
    ValidationResult,
    ValidationSummary,
)
from vat_common.evaluation.rules import check_vat_data
from vat_common.evaluation.service import EvaluationService

__all__ = [
    "EvaluationService",
    "ExpectedTotals",
    "LabeledCase",
    "PASS_TOLERANCE",
    "RuleCheckResult",
    "RuleViolation",
    "TrainingData",
    "TrainingPattern",
    "ValidationResult",
    "ValidationSummary",
    "accuracy_percentage",
    "amount_difference",
    "check_vat_data",
    "is_within_tolerance",
    "overall_score",
]
