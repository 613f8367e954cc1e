# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Extraction service for VAT amounts.

This module runs the strategy chain over a document's text, merges the
candidates, routes them to the sales or purchase bucket and attaches a
confidence estimate. Extraction is a total function: unreadable or empty
documents produce an empty, low-confidence result with diagnostics.
"""

import logging
import time
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from vat_common.assessment import ConfidenceEstimator
from vat_common.extraction.loader import load_document_text
from vat_common.extraction.models import NO_METHOD, AmountCandidate, ExtractionResult
from vat_common.extraction.strategies import (
    ExtractionStrategy,
    default_strategies,
    detect_report_type,
    find_vat_rates,
)
from vat_common.models import DocumentCategory, TaxDirection
from vat_common.utils import dedupe, round_currency

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 200000
DEFAULT_CEILING = 100000.0
DEFAULT_AMOUNT_CEILINGS = {
    DocumentCategory.SALES_RECEIPT: 10000.0,
    DocumentCategory.PURCHASE_RECEIPT: 10000.0,
}


class ExtractionService:
    """Service for extracting VAT amounts from document text."""

    def __init__(
        self,
        config: Dict[str, Any] = None,
        strategies: Optional[Sequence[ExtractionStrategy]] = None,
        estimator: Optional[ConfidenceEstimator] = None,
    ):
        """
        Initialize the extraction service.

        Args:
            config: Configuration dictionary, reads the 'extraction' section
            strategies: Optional strategy chain replacing the default one
            estimator: Optional confidence estimator
        """
        self.config = config or {}
        settings = self.config.get("extraction", {})

        self.max_text_length = int(settings.get("max_text_length", MAX_TEXT_LENGTH))
        self.default_ceiling = float(settings.get("default_ceiling", DEFAULT_CEILING))
        self.amount_ceilings = dict(DEFAULT_AMOUNT_CEILINGS)
        for category, ceiling in (settings.get("amount_ceilings") or {}).items():
            self.amount_ceilings[DocumentCategory.parse(category)] = float(ceiling)

        if strategies is None:
            strategies = default_strategies(int(settings.get("label_window", 4)))
        self.strategies = list(strategies)
        self.estimator = estimator or ConfidenceEstimator(self.config)

        logger.info(
            f"Initialized extraction service with strategies "
            f"{[s.name for s in self.strategies]}"
        )

    def ceiling_for(self, category: DocumentCategory) -> float:
        """Largest plausible single VAT amount for a document category."""
        return self.amount_ceilings.get(category, self.default_ceiling)

    def extract(
        self,
        content: Union[bytes, str, None],
        category: Union[DocumentCategory, str, None],
        mime_type: Optional[str] = None,
        file_name: Optional[str] = None,
        patterns: Optional[Sequence[Any]] = None,
    ) -> ExtractionResult:
        """
        Extract VAT amounts from raw document content.

        Args:
            content: Raw bytes or text of the document
            category: Declared document category
            mime_type: Optional MIME type declared at upload
            file_name: Optional file name, used in log messages
            patterns: Optional learned patterns for the document's business and category

        Returns:
            ExtractionResult, never raises for bad content
        """
        text, diagnostics = load_document_text(content, mime_type)
        if file_name:
            logger.info(f"Extracting VAT from {file_name} ({len(text)} characters)")
        return self.extract_text(text, category, patterns=patterns, diagnostics=diagnostics)

    def extract_text(
        self,
        text: Optional[str],
        category: Union[DocumentCategory, str, None],
        patterns: Optional[Sequence[Any]] = None,
        diagnostics: Optional[List[str]] = None,
    ) -> ExtractionResult:
        """
        Extract VAT amounts from already decoded text.

        Args:
            text: Document text
            category: Declared document category
            patterns: Optional learned patterns for the document's business and category
            diagnostics: Diagnostics gathered before extraction, e.g. while decoding

        Returns:
            ExtractionResult
        """
        start_time = time.time()
        category = DocumentCategory.parse(category)
        diagnostics = list(diagnostics or [])
        text = text or ""

        truncated = len(text) > self.max_text_length
        if truncated:
            diagnostics.append(
                f"Text truncated from {len(text)} to {self.max_text_length} characters"
            )
            text = text[: self.max_text_length]

        if not text.strip():
            diagnostics.append("No readable text in document")
            candidates = []
        else:
            candidates = self._run_strategies(text, diagnostics)

        kept = self.merge_candidates(candidates, category, diagnostics)
        if not kept and text.strip():
            fallback = self._run_strategies(text, diagnostics, fallback=True)
            kept = self.merge_candidates(fallback, category, diagnostics)
        sales, purchase = self.categorize(kept, category)
        methods = tuple(dedupe(c.strategy for c in kept))
        if not kept:
            diagnostics.append("No VAT amounts detected")

        assessment = self.estimator.assess(text, len(kept), patterns)
        if assessment.learning_penalty:
            diagnostics.append(
                f"Confidence lowered by {assessment.learning_penalty:.2f} from learned corrections"
            )

        result = ExtractionResult(
            sales_amounts=tuple(sales),
            purchase_amounts=tuple(purchase),
            confidence=assessment.value,
            method=methods[0] if methods else NO_METHOD,
            methods=methods,
            diagnostics=tuple(diagnostics),
            report_type=detect_report_type(text),
            country_breakdown={c.country: c.value for c in kept if c.country},
            vat_rates=tuple(find_vat_rates(text)),
            document_category=category,
            truncated=truncated,
        )

        logger.info(
            f"Extraction found {len(result.amounts)} amount(s) totalling {result.total} "
            f"for {category.value} via {result.method} "
            f"(confidence {result.confidence:.2f}, {time.time() - start_time:.3f}s)"
        )
        return result

    def _run_strategies(
        self, text: str, diagnostics: List[str], fallback: bool = False
    ) -> List[AmountCandidate]:
        candidates: List[AmountCandidate] = []
        for strategy in self.strategies:
            if getattr(strategy, "fallback", False) != fallback:
                continue
            try:
                found = strategy.find(text)
            except Exception as e:
                logger.warning(f"Strategy {strategy.name} failed: {e}")
                diagnostics.append(f"Strategy {strategy.name} failed: {e}")
                continue
            logger.debug(f"Strategy {strategy.name} found {len(found)} candidate(s)")
            candidates.extend(found)
        return candidates

    def merge_candidates(
        self,
        candidates: Sequence[AmountCandidate],
        category: DocumentCategory,
        diagnostics: Optional[List[str]] = None,
    ) -> List[AmountCandidate]:
        """
        Merge candidates from all strategies.

        Candidates are deduplicated by value in cents (per country for
        country breakdowns), the first strategy to find a value keeps it.
        Values that are not positive or exceed the category ceiling are
        discarded.

        Args:
            candidates: Candidates in strategy chain order
            category: Declared document category
            diagnostics: Optional list receiving a note per discarded value

        Returns:
            Kept candidates with values rounded to cents
        """
        ceiling = self.ceiling_for(category)
        seen = set()
        kept = []
        for candidate in candidates:
            value = round_currency(candidate.value)
            if value <= 0:
                continue
            if value > ceiling:
                if diagnostics is not None:
                    diagnostics.append(
                        f"Discarded {value:.2f} from {candidate.strategy}: "
                        f"above {ceiling:.2f} limit for {category.value}"
                    )
                continue
            key = (int(round(value * 100)), candidate.country)
            if key in seen:
                continue
            seen.add(key)
            kept.append(replace(candidate, value=value))
        return kept

    @staticmethod
    def categorize(
        candidates: Sequence[AmountCandidate], category: DocumentCategory
    ) -> Tuple[List[float], List[float]]:
        """
        Route candidates to the sales or purchase bucket.

        The declared category decides when it has a direction. Otherwise the
        candidates' own direction hints decide, and unhinted amounts join the
        sales bucket only if it is the one holding a non-zero total.

        Returns:
            Tuple of (sales amounts, purchase amounts)
        """
        values = [c.value for c in candidates]
        if category.direction == TaxDirection.SALES:
            return values, []
        if category.direction == TaxDirection.PURCHASE:
            return [], values

        sales = [c.value for c in candidates if c.direction == TaxDirection.SALES]
        purchase = [c.value for c in candidates if c.direction == TaxDirection.PURCHASE]
        unhinted = [c.value for c in candidates if c.direction is None]
        if unhinted:
            if sum(sales) > 0 and sum(purchase) == 0:
                sales.extend(unhinted)
            else:
                purchase.extend(unhinted)
        return sales, purchase
