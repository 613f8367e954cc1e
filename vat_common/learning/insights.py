# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Insight and recommendation helpers for applying learned patterns.
"""

from typing import Any, Dict, List, Optional, Sequence

from vat_common.learning.models import (
    AppliedPattern,
    CorrectionRecord,
    FeedbackKind,
    FeedbackRecord,
    LearningPattern,
    PatternInsight,
)
from vat_common.models import DocumentCategory

STRONG_PATTERN_CONFIDENCE = 0.8
MODERATE_PATTERN_CONFIDENCE = 0.6
SPECIALIZED_REPORT_MARKERS = ("woocommerce", "product")

NO_LEARNING_DATA = (
    "No learning data available yet. Upload and correct more documents to improve AI accuracy."
)


def correction_insights(correction: CorrectionRecord) -> Optional[PatternInsight]:
    """Insight for one remembered correction, None when the totals agree."""
    if correction.original_total == correction.corrected_total:
        return None
    difference = correction.difference
    return PatternInsight(
        document_id=correction.document_id,
        original_total=correction.original_total,
        corrected_total=correction.corrected_total,
        difference=difference,
        percentage_error=correction.percentage_error,
        direction="underestimation" if difference > 0 else "overestimation",
    )


def apply_pattern(pattern: LearningPattern) -> AppliedPattern:
    """
    Derive insights and common mistakes from a pattern's correction window.

    A correction is a common mistake when its percentage error exceeds the
    mistake threshold in either direction.
    """
    applied = AppliedPattern(pattern=pattern)
    for correction in pattern.recent_corrections:
        insight = correction_insights(correction)
        if insight is None:
            continue
        applied.insights.append(insight)
        if correction.is_common_mistake:
            verb = "underestimated" if insight.difference > 0 else "overestimated"
            applied.common_mistakes.append(
                f"AI {verb} VAT by {abs(insight.percentage_error):.1f}%"
            )
    return applied


def build_recommendations(
    patterns: Sequence[LearningPattern],
    recent: Sequence[CorrectionRecord],
    category: DocumentCategory,
    file_name: Optional[str] = None,
) -> List[str]:
    """
    Recommendations for a document given the learning data that applies to it.

    Args:
        patterns: Usable learned patterns
        recent: Recent processed corrections for the same business and category
        category: Category of the document
        file_name: File name of the document

    Returns:
        List of recommendation strings
    """
    if not patterns and not recent:
        return [NO_LEARNING_DATA]

    recommendations = []
    if patterns:
        average = sum(p.confidence for p in patterns) / len(patterns)
        if average > STRONG_PATTERN_CONFIDENCE:
            recommendations.append(
                "Strong learning patterns detected. AI should perform well on similar documents."
            )
        elif average > MODERATE_PATTERN_CONFIDENCE:
            recommendations.append(
                "Moderate learning patterns available. Continue providing feedback to improve accuracy."
            )
        else:
            recommendations.append(
                "Learning patterns are still developing. More user corrections needed for better performance."
            )

    if recent:
        incorrect = sum(1 for c in recent if c.kind == FeedbackKind.INCORRECT)
        partial = sum(1 for c in recent if c.kind == FeedbackKind.PARTIALLY_CORRECT)
        if incorrect > partial:
            recommendations.append(
                "Recent feedback shows significant extraction errors. Consider manual review of AI results."
            )
        elif partial > 0:
            recommendations.append(
                "Some partial corrections detected. AI is learning but may need refinement."
            )

    name = (file_name or "").lower()
    if category.is_sales and "invoice" in name:
        recommendations.append(
            "For sales invoices, ensure VAT amounts are categorized as sales rather than purchases."
        )
    if any(marker in name for marker in SPECIALIZED_REPORT_MARKERS):
        recommendations.append(
            "WooCommerce reports detected. Specialized processing should handle VAT extraction accurately."
        )
    return recommendations


def summarize_feedback(records: Sequence[FeedbackRecord], recent_limit: int = 10) -> Dict[str, Any]:
    """Totals, a breakdown by feedback kind and the most recent entries."""
    breakdown: Dict[str, int] = {}
    for record in records:
        breakdown[record.kind.value] = breakdown.get(record.kind.value, 0) + 1

    ordered = sorted(records, key=lambda r: r.created_at or "", reverse=True)
    return {
        "total_feedback": len(records),
        "breakdown": breakdown,
        "recent_feedback": [
            {
                "id": r.id,
                "document_id": r.document_id,
                "document_name": r.file_name,
                "category": r.document_category.value,
                "feedback": r.kind.value,
                "was_processed": r.was_processed,
                "improvement_made": r.improvement_made,
                "created_at": r.created_at,
            }
            for r in ordered[:recent_limit]
        ],
    }
