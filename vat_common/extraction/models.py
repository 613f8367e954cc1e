"""
Models for VAT amount extraction.

This module provides data models for extraction candidates and results.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from vat_common.models import DocumentCategory, TaxDirection
from vat_common.utils import sum_amounts

# Report types recognised by the extractor
STANDARD_REPORT = "standard"
COUNTRY_SUMMARY_REPORT = "country_summary"
ORDER_DETAIL_REPORT = "order_detail"

NO_METHOD = "none"


@dataclass(frozen=True)
class AmountCandidate:
    """A monetary amount found by one extraction strategy"""
    value: float
    strategy: str
    direction: Optional[TaxDirection] = None  # Hint from nearby words, if any
    context: str = ""
    country: Optional[str] = None


@dataclass(frozen=True)
class ExtractionResult:
    """Immutable result of one extraction pass over a document"""
    sales_amounts: Tuple[float, ...] = ()
    purchase_amounts: Tuple[float, ...] = ()
    confidence: float = 0.0
    method: str = NO_METHOD
    methods: Tuple[str, ...] = ()
    diagnostics: Tuple[str, ...] = ()
    report_type: str = STANDARD_REPORT
    country_breakdown: Dict[str, float] = field(default_factory=dict)
    vat_rates: Tuple[float, ...] = ()
    document_category: DocumentCategory = DocumentCategory.OTHER
    truncated: bool = False

    def __post_init__(self):
        if any(a < 0 for a in self.sales_amounts + self.purchase_amounts):
            raise ValueError("Extracted amounts must be non-negative")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be between 0 and 1, got {self.confidence}")
        if self.amounts and self.method == NO_METHOD:
            raise ValueError("A result with amounts must name the strategy that found them")

    @property
    def amounts(self) -> Tuple[float, ...]:
        return self.sales_amounts + self.purchase_amounts

    @property
    def sales_total(self) -> float:
        return sum_amounts(self.sales_amounts)

    @property
    def purchase_total(self) -> float:
        return sum_amounts(self.purchase_amounts)

    @property
    def total(self) -> float:
        return sum_amounts(self.amounts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "sales_amounts": list(self.sales_amounts),
            "purchase_amounts": list(self.purchase_amounts),
            "confidence": self.confidence,
            "method": self.method,
            "methods": list(self.methods),
            "diagnostics": list(self.diagnostics),
            "report_type": self.report_type,
            "country_breakdown": dict(self.country_breakdown),
            "vat_rates": list(self.vat_rates),
            "document_category": self.document_category.value,
            "truncated": self.truncated,
            "total": self.total,
        }
