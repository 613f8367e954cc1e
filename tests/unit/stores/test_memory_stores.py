# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Unit tests for the in-memory stores.
"""

import pytest

from vat_common.learning import FeedbackKind, FeedbackRecord, LearningPattern
from vat_common.models import DocumentCategory, Status
from vat_common.stores import (
    DocumentNotFoundError,
    InMemoryDocumentStore,
    InMemoryFeedbackStore,
    InMemoryPatternStore,
    PatternConflictError,
)


def _feedback(document_id, submitter_id, kind=FeedbackKind.INCORRECT, created_at="t1", snapshots=None):
    original, corrected = snapshots
    return FeedbackRecord(
        document_id=document_id,
        submitter_id=submitter_id,
        business_id="biz-1",
        original=original,
        corrected=corrected,
        kind=kind,
        id=f"fb-{document_id}-{submitter_id}-{created_at}",
        document_category=DocumentCategory.SALES_INVOICE,
        created_at=created_at,
        updated_at=created_at,
    )


@pytest.mark.unit
class TestInMemoryDocumentStore:
    def test_get_returns_a_copy(self, sales_invoice):
        store = InMemoryDocumentStore([sales_invoice])

        loaded = store.get_document("doc-1")
        loaded.sales_vat.append(99.0)

        assert store.get_document("doc-1").sales_vat == []

    def test_missing_document(self):
        with pytest.raises(DocumentNotFoundError) as exc_info:
            InMemoryDocumentStore().get_document("nope")
        assert exc_info.value.document_id == "nope"

    def test_update_extraction(self, sales_invoice):
        store = InMemoryDocumentStore([sales_invoice])
        sales_invoice.status = Status.PROCESSED
        sales_invoice.sales_vat = [123.45]
        sales_invoice.confidence = 0.85
        sales_invoice.extraction_method = "currency_prefix"

        store.update_extraction(sales_invoice)

        stored = store.get_document("doc-1")
        assert stored.status == Status.PROCESSED
        assert stored.sales_vat == [123.45]
        assert stored.extraction_method == "currency_prefix"

    def test_update_missing_document(self, sales_invoice):
        with pytest.raises(DocumentNotFoundError):
            InMemoryDocumentStore().update_extraction(sales_invoice)


@pytest.mark.unit
class TestInMemoryFeedbackStore:
    @pytest.fixture
    def snapshots(self, original_snapshot, corrected_snapshot):
        return original_snapshot, corrected_snapshot

    def test_upsert_keeps_identity_and_resets_flags(self, snapshots):
        store = InMemoryFeedbackStore()
        first = store.upsert_feedback(_feedback("doc-1", "u1", created_at="t1", snapshots=snapshots))
        store.mark_processed("doc-1", "u1", "t2")

        second = store.upsert_feedback(
            _feedback("doc-1", "u1", kind=FeedbackKind.PARTIALLY_CORRECT, created_at="t3", snapshots=snapshots)
        )

        assert second.id == first.id
        assert second.created_at == "t1"
        assert second.kind == FeedbackKind.PARTIALLY_CORRECT
        assert second.was_processed is False
        assert len(store.list_feedback()) == 1

    def test_mark_processed(self, snapshots):
        store = InMemoryFeedbackStore()
        store.upsert_feedback(_feedback("doc-1", "u1", snapshots=snapshots))

        store.mark_processed("doc-1", "u1", "t2", improvement_made=False)

        record = store.get_feedback("doc-1", "u1")
        assert record.was_processed is True
        assert record.improvement_made is False
        assert record.processed_at == "t2"

    def test_mark_processed_missing_is_ignored(self):
        InMemoryFeedbackStore().mark_processed("doc-1", "u1", "t2")

    def test_unprocessed_oldest_first(self, snapshots):
        store = InMemoryFeedbackStore()
        for submitter in ("u1", "u2", "u3"):
            store.upsert_feedback(_feedback("doc-1", submitter, snapshots=snapshots))
        store.mark_processed("doc-1", "u2", "t2")

        pending = store.list_unprocessed()

        assert [r.submitter_id for r in pending] == ["u1", "u3"]
        assert len(store.list_unprocessed(limit=1)) == 1

    def test_recent_corrections(self, snapshots):
        store = InMemoryFeedbackStore()
        store.upsert_feedback(_feedback("doc-1", "u1", snapshots=snapshots))
        store.upsert_feedback(_feedback("doc-2", "u1", snapshots=snapshots))
        store.upsert_feedback(_feedback("doc-3", "u1", kind=FeedbackKind.CORRECT, snapshots=snapshots))
        store.upsert_feedback(_feedback("doc-4", "u1", snapshots=snapshots))
        for document_id in ("doc-1", "doc-2", "doc-3"):
            store.mark_processed(document_id, "u1", "t2")

        recent = store.list_recent_corrections("biz-1", DocumentCategory.SALES_INVOICE)

        assert [r.document_id for r in recent] == ["doc-2", "doc-1"]
        assert store.list_recent_corrections("biz-1", DocumentCategory.PURCHASE_INVOICE) == []

    def test_list_feedback_filters(self, snapshots):
        store = InMemoryFeedbackStore()
        store.upsert_feedback(_feedback("doc-1", "u1", snapshots=snapshots))
        store.upsert_feedback(_feedback("doc-2", "u1", snapshots=snapshots))

        assert [r.document_id for r in store.list_feedback(document_id="doc-2")] == ["doc-2"]
        assert store.list_feedback(business_id="other") == []
        assert [r.document_id for r in store.list_feedback()] == ["doc-2", "doc-1"]


@pytest.mark.unit
class TestInMemoryPatternStore:
    @pytest.fixture
    def pattern(self):
        return LearningPattern(
            business_id="biz-1",
            category=DocumentCategory.SALES_INVOICE,
            frequency=1,
            document_types=["SALES_INVOICE"],
        )

    def test_versioned_saves(self, pattern):
        store = InMemoryPatternStore()

        saved = store.save_pattern(pattern, None)
        assert saved.version == 1

        saved.frequency = 2
        saved = store.save_pattern(saved, 1)
        assert saved.version == 2
        assert store.get_pattern("biz-1", DocumentCategory.SALES_INVOICE).frequency == 2

    def test_stale_version_conflicts(self, pattern):
        store = InMemoryPatternStore()
        store.save_pattern(pattern, None)

        with pytest.raises(PatternConflictError) as exc_info:
            store.save_pattern(pattern, None)
        assert exc_info.value.expected_version is None

        store.save_pattern(pattern, 1)
        with pytest.raises(PatternConflictError):
            store.save_pattern(pattern, 1)

    def test_list_patterns(self, pattern):
        store = InMemoryPatternStore()
        store.save_pattern(pattern, None)
        store.save_pattern(
            LearningPattern(business_id="biz-1", category=DocumentCategory.PURCHASE_INVOICE), None
        )
        store.save_pattern(
            LearningPattern(business_id="biz-2", category=DocumentCategory.SALES_INVOICE), None
        )

        assert len(store.list_patterns("biz-1")) == 2
        assert len(store.list_patterns("biz-1", DocumentCategory.SALES_INVOICE)) == 1
        assert store.get_pattern("biz-3", DocumentCategory.SALES_INVOICE) is None
