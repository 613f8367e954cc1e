"""
Extraction module for VAT documents.

This module provides the strategy chain, models and service for extracting
VAT amounts from uploaded documents.
"""

from vat_common.extraction.loader import load_document_text
from vat_common.extraction.models import (
    COUNTRY_SUMMARY_REPORT,
    NO_METHOD,
    ORDER_DETAIL_REPORT,
    STANDARD_REPORT,
    AmountCandidate,
    ExtractionResult,
)
from vat_common.extraction.service import ExtractionService
from vat_common.extraction.strategies import (
    CountryBreakdownStrategy,
    CurrencyPrefixStrategy,
    ExtractionStrategy,
    LabelAdjacentStrategy,
    OrderColumnStrategy,
    TotalAndRateStrategy,
    default_strategies,
)

__all__ = [
    "AmountCandidate",
    "COUNTRY_SUMMARY_REPORT",
    "CountryBreakdownStrategy",
    "CurrencyPrefixStrategy",
    "ExtractionResult",
    "ExtractionService",
    "ExtractionStrategy",
    "LabelAdjacentStrategy",
    "NO_METHOD",
    "ORDER_DETAIL_REPORT",
    "OrderColumnStrategy",
    "STANDARD_REPORT",
    "TotalAndRateStrategy",
    "default_strategies",
    "load_document_text",
]
