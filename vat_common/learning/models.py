# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Models for the learning feedback loop.

This module provides data models for user feedback on extractions, the
correction records folded into learned patterns, and the per-business
learned patterns themselves.
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

from vat_common.models import DocumentCategory
from vat_common.utils import round_currency, sum_amounts

# Percentage error above which a correction counts as a common mistake
MISTAKE_THRESHOLD_PERCENT = 10.0

DEFAULT_WINDOW_SIZE = 5


class FeedbackKind(Enum):
    """User verdict on an extraction."""

    CORRECT = "CORRECT"
    PARTIALLY_CORRECT = "PARTIALLY_CORRECT"
    INCORRECT = "INCORRECT"

    @property
    def needs_improvement(self) -> bool:
        return self != FeedbackKind.CORRECT


@dataclass
class ExtractionSnapshot:
    """Sales and purchase VAT amounts as extracted or as corrected by a user"""

    sales_vat: List[float] = field(default_factory=list)
    purchase_vat: List[float] = field(default_factory=list)
    confidence: Optional[float] = None

    @property
    def amounts(self) -> List[float]:
        return list(self.sales_vat) + list(self.purchase_vat)

    @property
    def total(self) -> float:
        return sum_amounts(self.amounts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sales_vat": list(self.sales_vat),
            "purchase_vat": list(self.purchase_vat),
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ExtractionSnapshot":
        data = data or {}
        confidence = data.get("confidence")
        return cls(
            sales_vat=[float(v) for v in data.get("sales_vat") or []],
            purchase_vat=[float(v) for v in data.get("purchase_vat") or []],
            confidence=float(confidence) if confidence is not None else None,
        )

    @classmethod
    def from_extraction(cls, result) -> "ExtractionSnapshot":
        """Snapshot of an ExtractionResult."""
        return cls(
            sales_vat=list(result.sales_amounts),
            purchase_vat=list(result.purchase_amounts),
            confidence=result.confidence,
        )


@dataclass
class FieldCorrection:
    """A single field-level correction made by the user"""

    field: str
    original_value: Any = None
    corrected_value: Any = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "original_value": self.original_value,
            "corrected_value": self.corrected_value,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldCorrection":
        return cls(
            field=data.get("field", ""),
            original_value=data.get("original_value"),
            corrected_value=data.get("corrected_value"),
            reason=data.get("reason"),
        )


@dataclass
class FeedbackRecord:
    """
    Feedback submitted for one document by one submitter.

    There is at most one record per (document_id, submitter_id); a new
    submission overwrites the previous one and makes it unprocessed again.
    """

    document_id: str
    submitter_id: str
    business_id: str
    original: ExtractionSnapshot
    corrected: ExtractionSnapshot
    kind: FeedbackKind
    id: Optional[str] = None
    document_category: DocumentCategory = DocumentCategory.OTHER
    file_name: Optional[str] = None
    corrections: List[FieldCorrection] = field(default_factory=list)
    notes: Optional[str] = None
    was_processed: bool = False
    improvement_made: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    processed_at: Optional[str] = None

    @property
    def key(self):
        return (self.document_id, self.submitter_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "submitter_id": self.submitter_id,
            "business_id": self.business_id,
            "document_category": self.document_category.value,
            "file_name": self.file_name,
            "original": self.original.to_dict(),
            "corrected": self.corrected.to_dict(),
            "kind": self.kind.value,
            "corrections": [c.to_dict() for c in self.corrections],
            "notes": self.notes,
            "was_processed": self.was_processed,
            "improvement_made": self.improvement_made,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "processed_at": self.processed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeedbackRecord":
        if not data:
            raise ValueError("Cannot create FeedbackRecord from empty data")
        return cls(
            id=data.get("id"),
            document_id=data.get("document_id", ""),
            submitter_id=data.get("submitter_id", ""),
            business_id=data.get("business_id", ""),
            document_category=DocumentCategory.parse(data.get("document_category")),
            file_name=data.get("file_name"),
            original=ExtractionSnapshot.from_dict(data.get("original")),
            corrected=ExtractionSnapshot.from_dict(data.get("corrected")),
            kind=FeedbackKind(data.get("kind", FeedbackKind.INCORRECT.value)),
            corrections=[FieldCorrection.from_dict(c) for c in data.get("corrections") or []],
            notes=data.get("notes"),
            was_processed=bool(data.get("was_processed", False)),
            improvement_made=bool(data.get("improvement_made", False)),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            processed_at=data.get("processed_at"),
        )


@dataclass
class CorrectionRecord:
    """One correction as remembered by a learned pattern"""

    document_id: str
    kind: FeedbackKind
    original_amounts: List[float] = field(default_factory=list)
    corrected_amounts: List[float] = field(default_factory=list)
    document_category: DocumentCategory = DocumentCategory.OTHER
    file_name: Optional[str] = None
    corrections: List[FieldCorrection] = field(default_factory=list)
    recorded_at: Optional[str] = None

    @property
    def original_total(self) -> float:
        return sum_amounts(self.original_amounts)

    @property
    def corrected_total(self) -> float:
        return sum_amounts(self.corrected_amounts)

    @property
    def difference(self) -> float:
        """Signed difference, positive when the extraction was too low."""
        return round_currency(self.corrected_total - self.original_total)

    @property
    def percentage_error(self) -> float:
        """Difference relative to the original total, 0 when there was no original total."""
        if self.original_total <= 0:
            return 0.0
        return round(self.difference / self.original_total * 100, 2)

    @property
    def is_common_mistake(self) -> bool:
        return abs(self.percentage_error) > MISTAKE_THRESHOLD_PERCENT

    @classmethod
    def from_feedback(cls, record: FeedbackRecord, recorded_at: Optional[str] = None) -> "CorrectionRecord":
        return cls(
            document_id=record.document_id,
            kind=record.kind,
            original_amounts=record.original.amounts,
            corrected_amounts=record.corrected.amounts,
            document_category=record.document_category,
            file_name=record.file_name,
            corrections=list(record.corrections),
            recorded_at=recorded_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "kind": self.kind.value,
            "original_amounts": list(self.original_amounts),
            "corrected_amounts": list(self.corrected_amounts),
            "document_category": self.document_category.value,
            "file_name": self.file_name,
            "corrections": [c.to_dict() for c in self.corrections],
            "recorded_at": self.recorded_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CorrectionRecord":
        return cls(
            document_id=data.get("document_id", ""),
            kind=FeedbackKind(data.get("kind", FeedbackKind.INCORRECT.value)),
            original_amounts=[float(v) for v in data.get("original_amounts") or []],
            corrected_amounts=[float(v) for v in data.get("corrected_amounts") or []],
            document_category=DocumentCategory.parse(data.get("document_category")),
            file_name=data.get("file_name"),
            corrections=[FieldCorrection.from_dict(c) for c in data.get("corrections") or []],
            recorded_at=data.get("recorded_at"),
        )


def _correction_window(maxlen: int = DEFAULT_WINDOW_SIZE) -> Deque[CorrectionRecord]:
    return deque(maxlen=maxlen)


@dataclass
class LearningPattern:
    """
    Accumulated correction evidence for one (business, category) pair.

    recent_corrections is a bounded deque, appending past its capacity drops
    the oldest correction.
    """

    business_id: str
    category: DocumentCategory
    frequency: int = 0
    confidence: float = 0.5
    recent_corrections: Deque[CorrectionRecord] = field(default_factory=_correction_window)
    document_types: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    version: int = 0
    id: Optional[str] = None
    created_at: Optional[str] = None
    last_seen: Optional[str] = None

    @property
    def key(self):
        return (self.business_id, self.category)

    @property
    def window_size(self) -> int:
        return self.recent_corrections.maxlen or DEFAULT_WINDOW_SIZE

    def mistake_rate(self) -> float:
        """Share of remembered corrections that were common mistakes."""
        if not self.recent_corrections:
            return 0.0
        mistakes = sum(1 for c in self.recent_corrections if c.is_common_mistake)
        return mistakes / len(self.recent_corrections)

    def applies_to(self, category: DocumentCategory) -> bool:
        return category.value in self.document_types

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "category": self.category.value,
            "frequency": self.frequency,
            "confidence": self.confidence,
            "recent_corrections": [c.to_dict() for c in self.recent_corrections],
            "window_size": self.window_size,
            "document_types": list(self.document_types),
            "categories": list(self.categories),
            "version": self.version,
            "created_at": self.created_at,
            "last_seen": self.last_seen,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LearningPattern":
        if not data:
            raise ValueError("Cannot create LearningPattern from empty data")
        window: Deque[CorrectionRecord] = deque(
            (CorrectionRecord.from_dict(c) for c in data.get("recent_corrections") or []),
            maxlen=int(data.get("window_size") or DEFAULT_WINDOW_SIZE),
        )
        return cls(
            id=data.get("id"),
            business_id=data.get("business_id", ""),
            category=DocumentCategory.parse(data.get("category")),
            frequency=int(data.get("frequency", 0)),
            confidence=float(data.get("confidence", 0.5)),
            recent_corrections=window,
            document_types=list(data.get("document_types") or []),
            categories=list(data.get("categories") or []),
            version=int(data.get("version", 0)),
            created_at=data.get("created_at"),
            last_seen=data.get("last_seen"),
        )


@dataclass
class PatternInsight:
    """What one remembered correction says about the extractor"""

    document_id: str
    original_total: float
    corrected_total: float
    difference: float
    percentage_error: float
    direction: str  # "underestimation" or "overestimation"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "original_total": self.original_total,
            "corrected_total": self.corrected_total,
            "difference": self.difference,
            "percentage_error": self.percentage_error,
            "direction": self.direction,
        }


@dataclass
class AppliedPattern:
    """A learned pattern together with the insights derived from it"""

    pattern: LearningPattern
    insights: List[PatternInsight] = field(default_factory=list)
    common_mistakes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.pattern.id,
            "category": self.pattern.category.value,
            "confidence": self.pattern.confidence,
            "frequency": self.pattern.frequency,
            "insights": [i.to_dict() for i in self.insights],
            "common_mistakes": list(self.common_mistakes),
        }


@dataclass
class LearningInsights:
    """Result of applying learning to a document"""

    document_id: str
    patterns: List[AppliedPattern] = field(default_factory=list)
    recent_corrections: List[CorrectionRecord] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    @property
    def has_learning_data(self) -> bool:
        return bool(self.patterns or self.recent_corrections)

    @property
    def learned_patterns(self) -> List[LearningPattern]:
        return [applied.pattern for applied in self.patterns]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "patterns": [p.to_dict() for p in self.patterns],
            "recent_corrections": [c.to_dict() for c in self.recent_corrections],
            "recommendations": list(self.recommendations),
            "has_learning_data": self.has_learning_data,
        }
