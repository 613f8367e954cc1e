# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Models for VAT extraction validation.

This module provides data models for validation results, labeled test cases,
suite summaries and the training data derived from them.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from vat_common.models import DocumentCategory
from vat_common.utils import sum_amounts


@dataclass(frozen=True)
class ExpectedTotals:
    """Known VAT totals for a document, optionally split by direction"""

    sales: Optional[float] = None
    purchase: Optional[float] = None
    total: Optional[float] = None
    report_type: Optional[str] = None  # Expected report type, None to skip the check

    @property
    def has_split(self) -> bool:
        return self.sales is not None or self.purchase is not None

    @property
    def expected_total(self) -> float:
        if self.total is not None:
            return float(self.total)
        return sum_amounts([self.sales or 0.0, self.purchase or 0.0])

    @classmethod
    def from_amounts(
        cls,
        sales_vat: Sequence[float] = (),
        purchase_vat: Sequence[float] = (),
        report_type: Optional[str] = None,
    ) -> "ExpectedTotals":
        return cls(
            sales=sum_amounts(sales_vat),
            purchase=sum_amounts(purchase_vat),
            report_type=report_type,
        )


@dataclass(frozen=True)
class ValidationResult:
    """Comparison of one extraction against its expected total"""

    expected_total: float
    extracted_total: float
    difference: float
    accuracy_percentage: float
    passed: bool
    confidence: float
    report_type: str
    extraction_method: str
    issues: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    file_name: Optional[str] = None
    timestamp: Optional[str] = None

    def __post_init__(self):
        if not 0.0 <= self.accuracy_percentage <= 100.0:
            raise ValueError(
                f"Accuracy must be between 0 and 100, got {self.accuracy_percentage}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_name": self.file_name,
            "expected_total": self.expected_total,
            "extracted_total": self.extracted_total,
            "difference": self.difference,
            "accuracy_percentage": self.accuracy_percentage,
            "passed": self.passed,
            "confidence": self.confidence,
            "report_type": self.report_type,
            "extraction_method": self.extraction_method,
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "timestamp": self.timestamp,
        }


@dataclass
class LabeledCase:
    """A document with known VAT totals, used by the validation suite"""

    name: str
    content: Union[bytes, str]
    category: DocumentCategory
    expected: Union[float, ExpectedTotals]
    mime_type: Optional[str] = None


@dataclass
class TrainingPattern:
    """An extraction method's outcome on one validated document"""

    method: str
    report_type: str
    accuracy: float
    issues: List[str] = field(default_factory=list)

    def describe(self) -> str:
        text = f"{self.method} ({self.report_type}) - {self.accuracy:.1f}% accuracy"
        if self.issues:
            text += f" - {', '.join(self.issues)}"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "report_type": self.report_type,
            "accuracy": self.accuracy,
            "issues": list(self.issues),
        }


@dataclass
class TrainingData:
    """Successful and failed extraction patterns with improvement hints"""

    successful_patterns: List[TrainingPattern] = field(default_factory=list)
    failed_patterns: List[TrainingPattern] = field(default_factory=list)
    recommended_improvements: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "successful_patterns": [p.to_dict() for p in self.successful_patterns],
            "failed_patterns": [p.to_dict() for p in self.failed_patterns],
            "recommended_improvements": list(self.recommended_improvements),
        }


@dataclass
class ValidationSummary:
    """Aggregate of a validation suite run"""

    total_tests: int
    passed_tests: int
    failed_tests: int
    average_accuracy: float
    average_confidence: float
    overall_score: float
    issues: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    results: List[ValidationResult] = field(default_factory=list)
    training_data: Optional[TrainingData] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_tests": self.total_tests,
            "passed_tests": self.passed_tests,
            "failed_tests": self.failed_tests,
            "average_accuracy": self.average_accuracy,
            "average_confidence": self.average_confidence,
            "overall_score": self.overall_score,
            "issues": list(self.issues),
            "recommendations": list(self.recommendations),
            "results": [r.to_dict() for r in self.results],
            "training_data": self.training_data.to_dict() if self.training_data else None,
        }


@dataclass
class RuleViolation:
    """A single rule check finding"""

    code: str
    message: str
    field: str
    severity: str = "MEDIUM"  # HIGH, MEDIUM or LOW
    recommendation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "field": self.field,
            "severity": self.severity,
            "recommendation": self.recommendation,
        }


@dataclass
class RuleCheckResult:
    """Outcome of the rule checks on a set of VAT amounts"""

    is_valid: bool
    confidence: float
    errors: List[RuleViolation] = field(default_factory=list)
    warnings: List[RuleViolation] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    @property
    def codes(self) -> List[str]:
        return [e.code for e in self.errors] + [w.code for w in self.warnings]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "confidence": self.confidence,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "suggestions": list(self.suggestions),
        }
