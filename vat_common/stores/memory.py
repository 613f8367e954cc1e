# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
In-memory stores for tests, scripts and single-process deployments.

Records are copied on the way in and out so callers never share mutable
state with the store.
"""

import copy
import itertools
import logging
import threading
import uuid
from typing import Dict, List, Optional, Tuple

from vat_common.learning.models import FeedbackKind, FeedbackRecord, LearningPattern
from vat_common.models import Document, DocumentCategory
from vat_common.stores.base import DocumentStore, FeedbackStore, PatternStore
from vat_common.stores.errors import DocumentNotFoundError, PatternConflictError

logger = logging.getLogger(__name__)


class InMemoryDocumentStore(DocumentStore):
    def __init__(self, documents: Optional[List[Document]] = None):
        self._documents: Dict[str, Document] = {}
        self._lock = threading.Lock()
        for document in documents or []:
            self.put_document(document)

    def get_document(self, document_id: str) -> Document:
        with self._lock:
            document = self._documents.get(document_id)
            if document is None:
                raise DocumentNotFoundError(document_id)
            return copy.deepcopy(document)

    def put_document(self, document: Document) -> Document:
        with self._lock:
            self._documents[document.id] = copy.deepcopy(document)
        return document

    def update_extraction(self, document: Document) -> Document:
        with self._lock:
            stored = self._documents.get(document.id)
            if stored is None:
                raise DocumentNotFoundError(document.id)
            stored.status = document.status
            stored.processed_time = document.processed_time
            stored.sales_vat = list(document.sales_vat)
            stored.purchase_vat = list(document.purchase_vat)
            stored.confidence = document.confidence
            stored.extraction_method = document.extraction_method
            stored.errors = list(document.errors)
        return document


class InMemoryFeedbackStore(FeedbackStore):
    def __init__(self):
        self._records: Dict[Tuple[str, str], FeedbackRecord] = {}
        self._sequence: Dict[Tuple[str, str], int] = {}
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def upsert_feedback(self, record: FeedbackRecord) -> FeedbackRecord:
        with self._lock:
            stored = copy.deepcopy(record)
            existing = self._records.get(record.key)
            if existing is not None:
                stored.id = existing.id
                stored.created_at = existing.created_at or stored.created_at
            stored.id = stored.id or str(uuid.uuid4())
            stored.was_processed = False
            stored.improvement_made = False
            stored.processed_at = None
            self._records[record.key] = stored
            self._sequence[record.key] = next(self._counter)
            logger.debug(f"Stored feedback {stored.id} for {record.key}")
            return copy.deepcopy(stored)

    def get_feedback(self, document_id: str, submitter_id: str) -> Optional[FeedbackRecord]:
        with self._lock:
            record = self._records.get((document_id, submitter_id))
            return copy.deepcopy(record) if record else None

    def mark_processed(
        self, document_id: str, submitter_id: str, processed_at: str, improvement_made: bool = True
    ) -> None:
        with self._lock:
            record = self._records.get((document_id, submitter_id))
            if record is None:
                logger.warning(f"No feedback to mark processed for {(document_id, submitter_id)}")
                return
            record.was_processed = True
            record.improvement_made = improvement_made
            record.processed_at = processed_at

    def _ordered(self, newest_first: bool = True) -> List[FeedbackRecord]:
        keys = sorted(self._records, key=lambda k: self._sequence[k], reverse=newest_first)
        return [self._records[k] for k in keys]

    def list_unprocessed(self, limit: int = 25) -> List[FeedbackRecord]:
        with self._lock:
            pending = [r for r in self._ordered(newest_first=False) if not r.was_processed]
            return copy.deepcopy(pending[:limit])

    def list_recent_corrections(
        self, business_id: str, category: DocumentCategory, limit: int = 5
    ) -> List[FeedbackRecord]:
        with self._lock:
            matching = [
                r
                for r in self._ordered()
                if r.business_id == business_id
                and r.document_category == category
                and r.was_processed
                and r.kind != FeedbackKind.CORRECT
            ]
            return copy.deepcopy(matching[:limit])

    def list_feedback(
        self, business_id: Optional[str] = None, document_id: Optional[str] = None
    ) -> List[FeedbackRecord]:
        with self._lock:
            matching = [
                r
                for r in self._ordered()
                if (business_id is None or r.business_id == business_id)
                and (document_id is None or r.document_id == document_id)
            ]
            return copy.deepcopy(matching)


class InMemoryPatternStore(PatternStore):
    def __init__(self):
        self._patterns: Dict[Tuple[str, DocumentCategory], LearningPattern] = {}
        self._lock = threading.Lock()

    def get_pattern(self, business_id: str, category: DocumentCategory) -> Optional[LearningPattern]:
        with self._lock:
            pattern = self._patterns.get((business_id, category))
            return copy.deepcopy(pattern) if pattern else None

    def save_pattern(
        self, pattern: LearningPattern, expected_version: Optional[int]
    ) -> LearningPattern:
        with self._lock:
            current = self._patterns.get(pattern.key)
            current_version = current.version if current else None
            if current_version != expected_version:
                raise PatternConflictError(
                    pattern.business_id, pattern.category.value, expected_version
                )
            stored = copy.deepcopy(pattern)
            stored.version = (expected_version or 0) + 1
            self._patterns[pattern.key] = stored
            return copy.deepcopy(stored)

    def list_patterns(
        self, business_id: str, category: Optional[DocumentCategory] = None
    ) -> List[LearningPattern]:
        with self._lock:
            return [
                copy.deepcopy(p)
                for (owner, pattern_category), p in self._patterns.items()
                if owner == business_id and (category is None or pattern_category == category)
            ]
