# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
VAT processing service.

This module wires extraction, confidence assessment, validation, learning,
monitoring and the circuit breaker together behind the interface used by
the surrounding application. Every call to a store goes through the breaker.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional, Sequence, TypeVar, Union

from vat_common.config import get_config
from vat_common.evaluation import (
    EvaluationService,
    ExpectedTotals,
    LabeledCase,
    ValidationResult,
    ValidationSummary,
)
from vat_common.extraction import ExtractionResult, ExtractionService
from vat_common.learning import FeedbackKind, LearningInsights, LearningService
from vat_common.metrics import circuit_metrics_monitor
from vat_common.models import Document, DocumentCategory, Status
from vat_common.monitoring import (
    ExtractionMonitor,
    MonitoringStats,
    create_extraction_attempt,
)
from vat_common.resilience import CircuitBreaker, ProtectedResource, log_circuit_event
from vat_common.stores import (
    DocumentNotFoundError,
    DocumentStore,
    FeedbackStore,
    PatternConflictError,
    PatternStore,
    create_stores,
)
from vat_common.utils import utc_now_iso

logger = logging.getLogger(__name__)

T = TypeVar("T")

STORE_BREAKER_NAME = "vat-store"
NO_TEXT_DIAGNOSTIC = "No readable text in document"


def _combine_hooks(*hooks):
    hooks = [h for h in hooks if h]

    def _monitor(event: str, data: Dict[str, Any]) -> None:
        for hook in hooks:
            try:
                hook(event, data)
            except Exception as e:
                name = getattr(hook, "__name__", repr(hook))
                logger.warning(f"Circuit monitor hook {name} failed for {event}: {e}")

    return _monitor


class VatProcessingService:
    """External interface of the VAT extraction, validation and learning core."""

    def __init__(
        self,
        document_store: DocumentStore,
        feedback_store: FeedbackStore,
        pattern_store: PatternStore,
        config: Dict[str, Any] = None,
        breaker: Optional[CircuitBreaker] = None,
        monitor: Optional[ExtractionMonitor] = None,
        extraction_service: Optional[ExtractionService] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the processing service.

        Args:
            document_store: Store of uploaded documents
            feedback_store: Store of user feedback
            pattern_store: Store of learned patterns
            config: Configuration dictionary
            breaker: Circuit breaker protecting the stores, created from config if omitted
            monitor: Extraction monitor, created from config if omitted
            extraction_service: Optional extraction service
            sleep: Sleep function used between store retries
        """
        self.config = config or {}
        self.breaker = breaker or CircuitBreaker.from_config(
            STORE_BREAKER_NAME,
            self.config,
            monitor=log_circuit_event,
            excluded_exceptions=(PatternConflictError, DocumentNotFoundError),
        )
        self.monitor = monitor or ExtractionMonitor.from_config(self.config)

        self.documents = ProtectedResource.from_config(
            document_store, self.breaker, self.config, sleep=sleep
        )
        self.feedback = ProtectedResource.from_config(
            feedback_store, self.breaker, self.config, sleep=sleep
        )
        self.patterns = ProtectedResource.from_config(
            pattern_store, self.breaker, self.config, sleep=sleep
        )

        self.extraction = extraction_service or ExtractionService(self.config)
        self.evaluation = EvaluationService(self.config, extractor=self._extract_case)
        self.learning = LearningService(
            self.feedback, self.patterns, self.documents, config=self.config
        )
        logger.info(f"Initialized VAT processing service with breaker '{self.breaker.name}'")

    @classmethod
    def from_config(
        cls,
        config: Optional[Dict[str, Any]] = None,
        store_mode: Optional[str] = None,
        **store_kwargs: Any,
    ) -> "VatProcessingService":
        """
        Build the service with stores selected by mode.

        Args:
            config: Configuration dictionary, loaded with get_config() if omitted
            store_mode: 'memory' or 'dynamodb', defaults to VAT_STORE_MODE
            **store_kwargs: Extra arguments for the DynamoDB stores

        Returns:
            VatProcessingService
        """
        config = config if config is not None else get_config()
        stores = create_stores(store_mode, **store_kwargs)

        hooks = [log_circuit_event]
        if config.get("monitoring", {}).get("publish_metrics"):
            hooks.append(circuit_metrics_monitor(STORE_BREAKER_NAME))
        breaker = CircuitBreaker.from_config(
            STORE_BREAKER_NAME,
            config,
            monitor=_combine_hooks(*hooks),
            excluded_exceptions=(PatternConflictError, DocumentNotFoundError),
        )
        return cls(stores.documents, stores.feedback, stores.patterns, config=config, breaker=breaker)

    def _learned_patterns(self, business_id: Optional[str], category: DocumentCategory):
        if not business_id:
            return None
        try:
            return self.learning.usable_patterns(business_id, category)
        except Exception as e:
            # Extraction does not depend on the pattern store being reachable
            logger.warning(f"Learned patterns unavailable for {business_id}/{category.value}: {e}")
            return None

    def extract(
        self,
        content: Union[bytes, str, None],
        category: Union[DocumentCategory, str, None],
        business_id: Optional[str] = None,
        file_name: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> ExtractionResult:
        """
        Extract VAT amounts from a document and record the attempt.

        Args:
            content: Raw bytes or text of the document
            category: Declared document category
            business_id: Optional owning business, enables learned pattern adjustment
            file_name: Optional file name
            mime_type: Optional MIME type

        Returns:
            ExtractionResult
        """
        start_time = time.time()
        category = DocumentCategory.parse(category)
        patterns = self._learned_patterns(business_id, category)
        result = self.extraction.extract(
            content, category, mime_type=mime_type, file_name=file_name, patterns=patterns
        )
        elapsed_ms = (time.time() - start_time) * 1000
        self.monitor.record_attempt(
            create_extraction_attempt(file_name or "document", result, elapsed_ms)
        )
        return result

    def process_document(self, document_id: str) -> ExtractionResult:
        """
        Extract a stored document and persist the outcome.

        Args:
            document_id: Document to process

        Returns:
            ExtractionResult

        Raises:
            DocumentNotFoundError: If the document does not exist
            CircuitOpenError: If the store is unavailable
        """
        document: Document = self.documents.get_document(document_id)
        result = self.extract(
            document.content,
            document.category,
            business_id=document.business_id,
            file_name=document.file_name,
            mime_type=document.mime_type,
        )

        document.sales_vat = list(result.sales_amounts)
        document.purchase_vat = list(result.purchase_amounts)
        document.confidence = result.confidence
        document.extraction_method = result.method
        document.processed_time = utc_now_iso()
        if NO_TEXT_DIAGNOSTIC in result.diagnostics:
            document.status = Status.FAILED
            document.errors.extend(result.diagnostics)
        else:
            document.status = Status.PROCESSED

        self.documents.update_extraction(document)
        logger.info(
            f"Processed document {document_id}: status {document.status.value}, "
            f"total {result.total}, confidence {result.confidence:.2f}"
        )
        return result

    def _extract_case(self, case: LabeledCase) -> ExtractionResult:
        start_time = time.time()
        result = self.extraction.extract(
            case.content, case.category, mime_type=case.mime_type, file_name=case.name
        )
        expected = case.expected
        if isinstance(expected, ExpectedTotals):
            expected = expected.expected_total
        self.monitor.record_attempt(
            create_extraction_attempt(
                case.name,
                result,
                (time.time() - start_time) * 1000,
                expected_amount=float(expected),
            )
        )
        return result

    def validate(
        self,
        extraction: ExtractionResult,
        expected: Union[float, ExpectedTotals],
        file_name: Optional[str] = None,
    ) -> ValidationResult:
        """Compare an extraction result with its expected total."""
        return self.evaluation.validate(extraction, expected, file_name=file_name)

    def run_validation_suite(self, cases: Sequence[LabeledCase]) -> ValidationSummary:
        """Extract and validate labeled documents."""
        return self.evaluation.run_validation_suite(cases)

    def record_feedback(
        self,
        document_id: str,
        original_extraction: Any,
        corrected_extraction: Any,
        feedback: Union[FeedbackKind, str],
        corrections=None,
        notes: Optional[str] = None,
        submitter_id: Optional[str] = None,
    ) -> str:
        """Store user feedback for a document, see LearningService.record_feedback."""
        return self.learning.record_feedback(
            document_id,
            original_extraction,
            corrected_extraction,
            feedback,
            corrections=corrections,
            notes=notes,
            submitter_id=submitter_id,
        )

    def apply_learning(self, document_id: str, use_business_patterns: bool = True) -> LearningInsights:
        """Gather the learning that applies to a document."""
        return self.learning.apply_learning(document_id, use_business_patterns)

    def process_pending_feedback(self, limit: int = 25) -> Dict[str, int]:
        return self.learning.process_pending_feedback(limit)

    def get_learning_stats(
        self, business_id: Optional[str] = None, document_id: Optional[str] = None
    ) -> Dict[str, Any]:
        return self.learning.get_learning_stats(business_id=business_id, document_id=document_id)

    def protect(self, operation: Callable[[], T], timeout: Optional[float] = None) -> T:
        """
        Run any remote operation through the service's circuit breaker.

        Raises:
            CircuitOpenError: If the circuit is open
        """
        return self.breaker.execute(operation, timeout=timeout)

    def get_monitor_stats(self) -> MonitoringStats:
        return self.monitor.get_stats()

    def get_circuit_stats(self) -> Dict[str, Any]:
        return self.breaker.get_stats()

    def close(self) -> None:
        """Release the breaker's worker threads."""
        self.breaker.close()

