# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Rule checks for extracted VAT amounts.

These checks need no expected totals: they flag values and rates that are
implausible for an Irish VAT return so a reviewer can look at them before
submission.
"""

import logging
from typing import List, Optional, Sequence

from vat_common.assessment.confidence import clamp
from vat_common.evaluation.models import RuleCheckResult, RuleViolation
from vat_common.models import DocumentCategory

logger = logging.getLogger(__name__)

VALID_IRISH_VAT_RATES = (23.0, 13.5, 9.0, 4.8, 0.0)
UK_STANDARD_RATE = 20.0
NORDIC_STANDARD_RATE = 25.0
LARGE_VAT_VALUE = 100000.0
SMALL_VAT_VALUE = 0.01
ROUND_VALUE_FLOOR = 100.0

BASE_CONFIDENCE = 0.8
HIGH_SEVERITY_PENALTY = 0.3
MEDIUM_SEVERITY_PENALTY = 0.15
WARNING_PENALTY = 0.05
RATES_BONUS = 0.1


def _check_values(values: Sequence[float], label: str, field_name: str, errors, warnings):
    negative = [v for v in values if v < 0]
    if negative:
        errors.append(
            RuleViolation(
                code="NEGATIVE_VAT_VALUES",
                message=f"Negative {label} VAT values found: {', '.join(f'{v:.2f}' for v in negative)}",
                field=field_name,
                severity="HIGH",
                recommendation="VAT amounts should be positive. Check if these are refunds or credit notes.",
            )
        )

    large = [v for v in values if v > LARGE_VAT_VALUE]
    if large:
        warnings.append(
            RuleViolation(
                code="LARGE_VAT_VALUES",
                message=f"Unusually large {label} VAT values: {', '.join(f'{v:.2f}' for v in large)}",
                field=field_name,
                severity="MEDIUM",
                recommendation="Verify these amounts are correct and not total invoice amounts.",
            )
        )

    small = [v for v in values if 0 < v < SMALL_VAT_VALUE]
    if small:
        warnings.append(
            RuleViolation(
                code="SMALL_VAT_VALUES",
                message=f"Very small {label} VAT values: {', '.join(str(v) for v in small)}",
                field=field_name,
                severity="LOW",
                recommendation="Check if these amounts are rounding errors or extraction mistakes.",
            )
        )


def check_vat_data(
    sales_vat: Sequence[float],
    purchase_vat: Sequence[float],
    vat_rates: Optional[Sequence[float]] = None,
    category: Optional[DocumentCategory] = None,
    file_name: Optional[str] = None,
) -> RuleCheckResult:
    """
    Run plausibility rules over extracted VAT amounts.

    Args:
        sales_vat: Sales VAT amounts
        purchase_vat: Purchase VAT amounts
        vat_rates: VAT rate percentages seen in the document
        category: Declared document category
        file_name: Original file name, used for credit note detection

    Returns:
        RuleCheckResult, valid unless a HIGH severity error was found
    """
    sales_vat = list(sales_vat or [])
    purchase_vat = list(purchase_vat or [])
    vat_rates = list(vat_rates or [])
    errors: List[RuleViolation] = []
    warnings: List[RuleViolation] = []
    suggestions: List[str] = []

    if not sales_vat and not purchase_vat:
        errors.append(
            RuleViolation(
                code="NO_VAT_DATA",
                message="No VAT amounts were extracted from the document",
                field="vat_amounts",
                severity="MEDIUM",
                recommendation="Check if document is VAT exempt or if extraction failed",
            )
        )

    _check_values(sales_vat, "sales", "sales_vat", errors, warnings)
    _check_values(purchase_vat, "purchase", "purchase_vat", errors, warnings)

    if not vat_rates:
        warnings.append(
            RuleViolation(
                code="NO_VAT_RATES",
                message="No VAT rates detected in document",
                field="vat_rates",
                severity="LOW",
                recommendation="VAT rates help validate extracted amounts",
            )
        )
    else:
        invalid = [r for r in vat_rates if not any(abs(r - v) < 1e-9 for v in VALID_IRISH_VAT_RATES)]
        if invalid:
            errors.append(
                RuleViolation(
                    code="INVALID_IRISH_VAT_RATES",
                    message=f"Non-standard Irish VAT rates detected: {', '.join(f'{r:g}%' for r in invalid)}",
                    field="vat_rates",
                    severity="MEDIUM",
                    recommendation="Irish VAT rates are 23%, 13.5%, 9%, 4.8% and 0%",
                )
            )
        if UK_STANDARD_RATE in vat_rates:
            warnings.append(
                RuleViolation(
                    code="UK_VAT_RATE_DETECTED",
                    message="UK VAT rate (20%) detected",
                    field="vat_rates",
                    severity="LOW",
                    recommendation="Ensure this is an Irish VAT document",
                )
            )
        if NORDIC_STANDARD_RATE in vat_rates:
            warnings.append(
                RuleViolation(
                    code="NORDIC_VAT_RATE_DETECTED",
                    message="Nordic VAT rate (25%) detected",
                    field="vat_rates",
                    severity="LOW",
                    recommendation="Ensure this is an Irish VAT document",
                )
            )

    all_values = sales_vat + purchase_vat
    duplicates = sorted({v for v in all_values if all_values.count(v) > 1})
    if duplicates:
        warnings.append(
            RuleViolation(
                code="DUPLICATE_VAT_VALUES",
                message=f"Duplicate VAT values found: {', '.join(f'{v:.2f}' for v in duplicates)}",
                field="vat_amounts",
                severity="LOW",
                recommendation="Check if the same amount was extracted twice",
            )
        )

    if sales_vat and purchase_vat:
        warnings.append(
            RuleViolation(
                code="MIXED_VAT_DOCUMENT",
                message="Document contains both sales and purchase VAT",
                field="vat_amounts",
                severity="LOW",
                recommendation="Verify the document type and VAT categorization",
            )
        )

    if all_values and sum(all_values) == 0:
        errors.append(
            RuleViolation(
                code="NO_VAT_DETECTED",
                message="All extracted VAT amounts are zero",
                field="vat_amounts",
                severity="MEDIUM",
                recommendation="Check if document is VAT exempt or if extraction failed",
            )
        )

    round_values = [v for v in all_values if v > ROUND_VALUE_FLOOR and float(v).is_integer()]
    if round_values:
        warnings.append(
            RuleViolation(
                code="ROUND_VAT_VALUES",
                message=f"Round VAT values found: {', '.join(f'{v:.0f}' for v in round_values)}",
                field="vat_amounts",
                severity="LOW",
                recommendation="Round values may be totals or estimates rather than VAT amounts",
            )
        )

    if category is not None:
        category = DocumentCategory.parse(category)
        if category == DocumentCategory.SALES_INVOICE and not sales_vat and purchase_vat:
            warnings.append(
                RuleViolation(
                    code="CATEGORY_VAT_MISMATCH",
                    message="Sales invoice contains only purchase VAT",
                    field="category",
                    severity="MEDIUM",
                    recommendation="Check the document category or the VAT categorization",
                )
            )
        if category == DocumentCategory.PURCHASE_INVOICE and not purchase_vat and sales_vat:
            warnings.append(
                RuleViolation(
                    code="CATEGORY_VAT_MISMATCH",
                    message="Purchase invoice contains only sales VAT",
                    field="category",
                    severity="MEDIUM",
                    recommendation="Check the document category or the VAT categorization",
                )
            )

    if file_name and "credit" in file_name.lower() and any(v > 0 for v in all_values):
        warnings.append(
            RuleViolation(
                code="CREDIT_NOTE_WITH_POSITIVE_VAT",
                message="Credit note contains positive VAT amounts",
                field="vat_amounts",
                severity="MEDIUM",
                recommendation="Credit notes usually reduce VAT. Verify the sign of these amounts.",
            )
        )

    high_errors = sum(1 for e in errors if e.severity == "HIGH")
    medium_errors = sum(1 for e in errors if e.severity == "MEDIUM")
    confidence = (
        BASE_CONFIDENCE
        - HIGH_SEVERITY_PENALTY * high_errors
        - MEDIUM_SEVERITY_PENALTY * medium_errors
        - WARNING_PENALTY * len(warnings)
    )
    if vat_rates:
        confidence += RATES_BONUS

    if errors:
        suggestions.append("Review and correct validation errors before submission")
    if warnings:
        suggestions.append("Consider reviewing warnings to improve accuracy")
    if not all_values:
        suggestions.append("If document should contain VAT, try re-uploading with better quality")

    result = RuleCheckResult(
        is_valid=high_errors == 0,
        confidence=round(clamp(confidence), 4),
        errors=errors,
        warnings=warnings,
        suggestions=suggestions,
    )
    logger.debug(f"VAT rule check for {file_name or 'document'}: {result.codes}")
    return result
