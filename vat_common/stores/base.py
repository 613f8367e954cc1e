# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Abstract stores used by the VAT processing core.

The core never talks to a database directly: documents, feedback and learned
patterns are read and written through these interfaces, and every call made
by the processing service goes through its circuit breaker.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from vat_common.learning.models import FeedbackRecord, LearningPattern
from vat_common.models import Document, DocumentCategory


class DocumentStore(ABC):
    """Access to uploaded documents and their extraction fields."""

    @abstractmethod
    def get_document(self, document_id: str) -> Document:
        """
        Load a document.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """

    @abstractmethod
    def put_document(self, document: Document) -> Document:
        """Create or replace a document."""

    @abstractmethod
    def update_extraction(self, document: Document) -> Document:
        """
        Persist the status and extraction fields of an existing document.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """


class FeedbackStore(ABC):
    """Access to user feedback, at most one record per (document, submitter)."""

    @abstractmethod
    def upsert_feedback(self, record: FeedbackRecord) -> FeedbackRecord:
        """
        Insert or overwrite the feedback for record.key.

        An overwrite keeps the stored id and created_at and resets the
        processed flags. Returns the stored record.
        """

    @abstractmethod
    def get_feedback(self, document_id: str, submitter_id: str) -> Optional[FeedbackRecord]:
        """Load the feedback for a (document, submitter) pair."""

    @abstractmethod
    def mark_processed(
        self, document_id: str, submitter_id: str, processed_at: str, improvement_made: bool = True
    ) -> None:
        """Flag the feedback for a (document, submitter) pair as processed."""

    @abstractmethod
    def list_unprocessed(self, limit: int = 25) -> List[FeedbackRecord]:
        """Feedback not yet folded into a pattern, oldest first."""

    @abstractmethod
    def list_recent_corrections(
        self, business_id: str, category: DocumentCategory, limit: int = 5
    ) -> List[FeedbackRecord]:
        """Processed INCORRECT/PARTIALLY_CORRECT feedback for a business and category, newest first."""

    @abstractmethod
    def list_feedback(
        self, business_id: Optional[str] = None, document_id: Optional[str] = None
    ) -> List[FeedbackRecord]:
        """All feedback matching the given filters, newest first."""


class PatternStore(ABC):
    """Access to learned patterns, one per (business, category)."""

    @abstractmethod
    def get_pattern(self, business_id: str, category: DocumentCategory) -> Optional[LearningPattern]:
        """Load the pattern for a (business, category) pair."""

    @abstractmethod
    def save_pattern(
        self, pattern: LearningPattern, expected_version: Optional[int]
    ) -> LearningPattern:
        """
        Commit a pattern if the stored version still matches.

        Args:
            pattern: Pattern to store
            expected_version: Version read before the update, None if the pattern is new

        Returns:
            The stored pattern with its version incremented

        Raises:
            PatternConflictError: If the stored version differs from expected_version
        """

    @abstractmethod
    def list_patterns(
        self, business_id: str, category: Optional[DocumentCategory] = None
    ) -> List[LearningPattern]:
        """Patterns of a business, optionally restricted to one category."""
