# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Learning feedback loop for VAT extraction.

User corrections are stored as feedback, one record per (document, submitter),
and folded into a learned pattern per (business, category). Patterns are
consulted when new documents of the same business and category are
extracted, and summarised as insights when learning is applied to a document.
"""

import logging
import threading
import uuid
from collections import deque
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from vat_common.learning.insights import apply_pattern, build_recommendations, summarize_feedback
from vat_common.learning.models import (
    DEFAULT_WINDOW_SIZE,
    CorrectionRecord,
    ExtractionSnapshot,
    FeedbackKind,
    FeedbackRecord,
    FieldCorrection,
    LearningInsights,
    LearningPattern,
)
from vat_common.models import DocumentCategory
from vat_common.stores.errors import PatternConflictError
from vat_common.utils import utc_now_iso

logger = logging.getLogger(__name__)

INITIAL_CONFIDENCE = 0.5
CONFIDENCE_INCREMENT = 0.1
USABILITY_FLOOR = 0.5
RECENT_CORRECTIONS_LIMIT = 5
MAX_COMMIT_ATTEMPTS = 3
PATTERN_LOCK_STRIPES = 64


def _snapshot(extraction: Any) -> ExtractionSnapshot:
    if isinstance(extraction, ExtractionSnapshot):
        return extraction
    if isinstance(extraction, dict):
        return ExtractionSnapshot.from_dict(extraction)
    if hasattr(extraction, "sales_amounts"):
        return ExtractionSnapshot.from_extraction(extraction)
    raise ValueError(f"Unsupported extraction type: {type(extraction).__name__}")


def _correction(correction: Union[FieldCorrection, Dict[str, Any]]) -> FieldCorrection:
    if isinstance(correction, FieldCorrection):
        return correction
    return FieldCorrection.from_dict(correction)


class LearningService:
    """Service recording user feedback and maintaining learned patterns."""

    def __init__(
        self,
        feedback_store,
        pattern_store,
        document_store,
        config: Dict[str, Any] = None,
        clock: Callable[[], str] = utc_now_iso,
    ):
        """
        Initialize the learning service.

        Args:
            feedback_store: FeedbackStore holding user feedback
            pattern_store: PatternStore holding learned patterns
            document_store: DocumentStore used to resolve documents
            config: Configuration dictionary, reads the 'learning' section
            clock: Callable returning the current time as an ISO-8601 string
        """
        self.feedback_store = feedback_store
        self.pattern_store = pattern_store
        self.document_store = document_store
        self.config = config or {}
        self.clock = clock

        settings = self.config.get("learning", {})
        self.initial_confidence = float(settings.get("initial_confidence", INITIAL_CONFIDENCE))
        self.confidence_increment = float(
            settings.get("confidence_increment", CONFIDENCE_INCREMENT)
        )
        self.window_size = int(settings.get("window_size", DEFAULT_WINDOW_SIZE))
        self.usability_floor = float(settings.get("usability_floor", USABILITY_FLOOR))
        self.recent_limit = int(settings.get("recent_corrections_limit", RECENT_CORRECTIONS_LIMIT))
        self.max_commit_attempts = int(settings.get("max_commit_attempts", MAX_COMMIT_ATTEMPTS))

        # Pattern updates for one (business, category) share a lock stripe in this process
        self._pattern_locks = [threading.Lock() for _ in range(PATTERN_LOCK_STRIPES)]

        logger.info(
            f"Initialized learning service with window {self.window_size} "
            f"and confidence increment {self.confidence_increment}"
        )

    def _lock_for(self, key) -> threading.Lock:
        return self._pattern_locks[hash(key) % len(self._pattern_locks)]

    def record_feedback(
        self,
        document_id: str,
        original_extraction: Any,
        corrected_extraction: Any,
        feedback: Union[FeedbackKind, str],
        corrections: Optional[Sequence[Union[FieldCorrection, Dict[str, Any]]]] = None,
        notes: Optional[str] = None,
        submitter_id: Optional[str] = None,
    ) -> str:
        """
        Store user feedback for a document and learn from it.

        A second submission for the same (document, submitter) overwrites the
        first and marks it unprocessed again. Feedback other than CORRECT is
        folded into the business pattern right away; if that fails the error
        is logged and the feedback stays unprocessed for
        process_pending_feedback.

        Args:
            document_id: Document the feedback is about
            original_extraction: ExtractionResult, ExtractionSnapshot or dict as extracted
            corrected_extraction: ExtractionSnapshot or dict as corrected by the user
            feedback: FeedbackKind or its name
            corrections: Optional field-level corrections
            notes: Optional free-text notes
            submitter_id: Submitting user, defaults to the document owner

        Returns:
            The feedback id

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        document = self.document_store.get_document(document_id)
        kind = feedback if isinstance(feedback, FeedbackKind) else FeedbackKind(str(feedback).upper())
        now = self.clock()

        record = FeedbackRecord(
            document_id=document.id,
            submitter_id=submitter_id or document.owner_id,
            business_id=document.business_id,
            original=_snapshot(original_extraction),
            corrected=_snapshot(corrected_extraction),
            kind=kind,
            id=str(uuid.uuid4()),
            document_category=document.category,
            file_name=document.file_name,
            corrections=[_correction(c) for c in corrections or []],
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        stored = self.feedback_store.upsert_feedback(record)
        logger.info(
            f"Recorded {kind.value} feedback {stored.id} for document {document_id} "
            f"from {record.submitter_id}"
        )

        if kind.needs_improvement:
            try:
                self.process_feedback(stored)
            except Exception as e:
                logger.error(f"Failed to process feedback {stored.id}, left for retry: {e}")

        return stored.id

    def _fold(
        self, existing: Optional[LearningPattern], record: FeedbackRecord, now: str
    ) -> LearningPattern:
        correction = CorrectionRecord.from_feedback(record, recorded_at=now)
        category = record.document_category

        if existing is None:
            return LearningPattern(
                business_id=record.business_id,
                category=category,
                frequency=1,
                confidence=self.initial_confidence,
                recent_corrections=deque([correction], maxlen=self.window_size),
                document_types=[category.value],
                categories=[category.group],
                id=str(uuid.uuid4()),
                created_at=now,
                last_seen=now,
            )

        window = deque(existing.recent_corrections, maxlen=self.window_size)
        window.append(correction)
        existing.frequency += 1
        existing.confidence = round(min(existing.confidence + self.confidence_increment, 1.0), 4)
        existing.recent_corrections = window
        existing.last_seen = now
        if category.value not in existing.document_types:
            existing.document_types.append(category.value)
        if category.group not in existing.categories:
            existing.categories.append(category.group)
        return existing

    def process_feedback(self, record: FeedbackRecord) -> Optional[LearningPattern]:
        """
        Fold one feedback record into its business pattern.

        Updates for the same (business, category) are serialized by a lock
        in this process and committed with a version check, re-reading and
        retrying on a conflict with another writer.

        Args:
            record: Stored feedback record

        Returns:
            The committed pattern, None for CORRECT feedback

        Raises:
            PatternConflictError: If every commit attempt hit a conflict
        """
        now = self.clock()
        if not record.kind.needs_improvement:
            self.feedback_store.mark_processed(
                record.document_id, record.submitter_id, now, improvement_made=False
            )
            record.was_processed = True
            record.processed_at = now
            return None

        key = (record.business_id, record.document_category)
        with self._lock_for(key):
            for attempt in range(1, self.max_commit_attempts + 1):
                existing = self.pattern_store.get_pattern(*key)
                expected_version = existing.version if existing else None
                pattern = self._fold(existing, record, now)
                try:
                    saved = self.pattern_store.save_pattern(pattern, expected_version)
                    break
                except PatternConflictError:
                    logger.warning(
                        f"Pattern {key} changed during update "
                        f"(attempt {attempt}/{self.max_commit_attempts})"
                    )
                    if attempt == self.max_commit_attempts:
                        raise

        self.feedback_store.mark_processed(record.document_id, record.submitter_id, now)
        record.was_processed = True
        record.improvement_made = True
        record.processed_at = now
        logger.info(
            f"Updated pattern {key}: frequency {saved.frequency}, "
            f"confidence {saved.confidence:.2f}, version {saved.version}"
        )
        return saved

    def process_pending_feedback(self, limit: int = 25) -> Dict[str, int]:
        """
        Retry feedback that was stored but never folded into a pattern.

        Args:
            limit: Maximum number of records to process

        Returns:
            Dictionary with 'processed' and 'failed' counts
        """
        pending = self.feedback_store.list_unprocessed(limit)
        processed = 0
        failed = 0
        for record in pending:
            try:
                self.process_feedback(record)
                processed += 1
            except Exception as e:
                failed += 1
                logger.error(f"Failed to process pending feedback {record.id}: {e}")

        logger.info(f"Processed {processed} pending feedback record(s), {failed} failed")
        return {"processed": processed, "failed": failed}

    def usable_patterns(
        self, business_id: str, category: Union[DocumentCategory, str]
    ) -> List[LearningPattern]:
        """Patterns of a business that apply to a category, most confident first."""
        category = DocumentCategory.parse(category)
        patterns = [
            p
            for p in self.pattern_store.list_patterns(business_id, category)
            if p.applies_to(category) and p.confidence >= self.usability_floor
        ]
        patterns.sort(key=lambda p: p.confidence, reverse=True)
        return patterns

    def apply_learning(
        self, document_id: str, use_business_patterns: bool = True
    ) -> LearningInsights:
        """
        Gather what has been learned that applies to a document.

        Args:
            document_id: Document to apply learning to
            use_business_patterns: Whether to include the business's learned patterns

        Returns:
            LearningInsights with patterns, recent corrections and recommendations

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        document = self.document_store.get_document(document_id)
        category = document.category

        patterns = (
            self.usable_patterns(document.business_id, category) if use_business_patterns else []
        )
        recent = [
            CorrectionRecord.from_feedback(r, recorded_at=r.processed_at or r.updated_at)
            for r in self.feedback_store.list_recent_corrections(
                document.business_id, category, limit=self.recent_limit
            )
        ]

        insights = LearningInsights(
            document_id=document_id,
            patterns=[apply_pattern(p) for p in patterns],
            recent_corrections=recent,
            recommendations=build_recommendations(patterns, recent, category, document.file_name),
        )
        logger.info(
            f"Applied learning to document {document_id}: {len(patterns)} pattern(s), "
            f"{len(recent)} recent correction(s)"
        )
        return insights

    def get_learning_stats(
        self, business_id: Optional[str] = None, document_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Feedback statistics for a business and/or a document.

        Returns:
            Dictionary with total_feedback, breakdown by kind and recent_feedback
        """
        records = self.feedback_store.list_feedback(business_id=business_id, document_id=document_id)
        return summarize_feedback(records)
