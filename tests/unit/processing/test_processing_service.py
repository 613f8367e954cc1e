# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Unit tests for the VatProcessingService class.
"""

from unittest.mock import MagicMock, patch

import pytest

from vat_common.evaluation import LabeledCase
from vat_common.learning import FeedbackKind
from vat_common.models import Document, DocumentCategory, Status
from vat_common.processing import VatProcessingService
from vat_common.processing.service import _combine_hooks
from vat_common.resilience import CircuitOpenError, CircuitState
from vat_common.stores import (
    DocumentNotFoundError,
    InMemoryDocumentStore,
    InMemoryFeedbackStore,
    InMemoryPatternStore,
    StoreError,
)


@pytest.mark.unit
class TestVatProcessingService:
    """Tests for the processing service."""

    @pytest.fixture
    def document_store(self, sales_invoice):
        return InMemoryDocumentStore([sales_invoice])

    @pytest.fixture
    def service(self, document_store):
        service = VatProcessingService(
            document_store,
            InMemoryFeedbackStore(),
            InMemoryPatternStore(),
            sleep=MagicMock(),
        )
        yield service
        service.close()

    def test_process_document_persists_extraction(self, service, document_store):
        result = service.process_document("doc-1")

        assert result.sales_amounts == (123.45,)
        stored = document_store.get_document("doc-1")
        assert stored.status == Status.PROCESSED
        assert stored.sales_vat == [123.45]
        assert stored.purchase_vat == []
        assert stored.confidence == pytest.approx(0.85)
        assert stored.extraction_method == "currency_prefix"
        assert stored.processed_time is not None
        assert service.get_monitor_stats().total_attempts == 1

    def test_document_without_text_fails(self, service, document_store):
        document_store.put_document(
            Document(
                id="doc-2",
                business_id="biz-1",
                content=b"",
                category=DocumentCategory.PURCHASE_RECEIPT,
            )
        )

        result = service.process_document("doc-2")

        stored = document_store.get_document("doc-2")
        assert result.amounts == ()
        assert stored.status == Status.FAILED
        assert "No readable text in document" in stored.errors
        assert stored.confidence == pytest.approx(0.3)

    def test_no_amounts_found_is_still_processed(self, service, document_store):
        document_store.put_document(
            Document(id="doc-3", business_id="biz-1", content="Thank you for your order")
        )

        service.process_document("doc-3")

        assert document_store.get_document("doc-3").status == Status.PROCESSED

    def test_missing_document_does_not_trip_breaker(self, service):
        for _ in range(10):
            with pytest.raises(DocumentNotFoundError):
                service.process_document("missing")

        assert service.breaker.state == CircuitState.CLOSED

    def test_open_circuit_stops_store_calls(self):
        documents = MagicMock()
        documents.get_document.side_effect = StoreError("table unavailable")
        config = {"circuit_breaker": {"failure_threshold": 2, "timeout": 60}, "retry": {"max_retries": 0}}
        service = VatProcessingService(
            documents, InMemoryFeedbackStore(), InMemoryPatternStore(), config=config
        )

        for _ in range(2):
            with pytest.raises(StoreError):
                service.process_document("doc-1")
        with pytest.raises(CircuitOpenError):
            service.process_document("doc-1")

        assert documents.get_document.call_count == 2
        assert service.get_circuit_stats()["state"] == "open"

    def test_store_calls_are_retried(self, sales_invoice):
        documents = MagicMock()
        documents.get_document.side_effect = [StoreError("throttled"), sales_invoice]
        sleep = MagicMock()
        service = VatProcessingService(
            documents, InMemoryFeedbackStore(), InMemoryPatternStore(), sleep=sleep
        )

        service.process_document("doc-1")

        assert documents.get_document.call_count == 2
        sleep.assert_called_once()
        documents.update_extraction.assert_called_once()

    def test_learned_corrections_lower_confidence(self, service):
        service.record_feedback(
            "doc-1",
            {"sales_vat": [100.0]},
            {"sales_vat": [125.0]},
            FeedbackKind.INCORRECT,
        )

        result = service.extract("VAT: €10.00", "SALES_INVOICE", business_id="biz-1")

        assert result.confidence == pytest.approx(0.75)
        insights = service.apply_learning("doc-1")
        assert insights.has_learning_data is True
        assert service.get_learning_stats(business_id="biz-1")["total_feedback"] == 1

    def test_unavailable_patterns_do_not_block_extraction(self, document_store):
        patterns = MagicMock()
        patterns.list_patterns.side_effect = StoreError("pattern table down")
        service = VatProcessingService(
            document_store, InMemoryFeedbackStore(), patterns, sleep=MagicMock()
        )

        result = service.extract("VAT: €10.00", DocumentCategory.SALES_INVOICE, business_id="biz-1")

        assert result.sales_amounts == (10.0,)
        assert result.confidence == pytest.approx(0.85)

    def test_pending_feedback(self, service):
        service.record_feedback(
            "doc-1", {"sales_vat": [1.0]}, {"sales_vat": [1.0]}, "CORRECT", submitter_id="u2"
        )
        assert service.process_pending_feedback() == {"processed": 1, "failed": 0}

    def test_validation_suite_records_accuracy(self, service):
        cases = [
            LabeledCase("march.txt", "Total VAT: €123.45", DocumentCategory.SALES_INVOICE, 123.45),
            LabeledCase("april.txt", "Total VAT: €90.00", DocumentCategory.SALES_INVOICE, 100.0),
        ]

        summary = service.run_validation_suite(cases)

        assert summary.total_tests == 2
        assert summary.passed_tests == 1
        stats = service.get_monitor_stats()
        assert stats.total_attempts == 2
        assert stats.average_accuracy == pytest.approx(95.0)

    def test_validate(self, service):
        result = service.extract("Total VAT: €123.45", DocumentCategory.SALES_INVOICE)
        assert service.validate(result, 123.45, file_name="march.txt").passed is True

    def test_protect_runs_through_breaker(self, service):
        assert service.protect(lambda: "remote result") == "remote result"
        with pytest.raises(RuntimeError):
            service.protect(MagicMock(side_effect=RuntimeError("remote down")))
        assert service.get_circuit_stats()["failure_count"] == 1
        assert service.get_circuit_stats()["name"] == "vat-store"


@pytest.mark.unit
class TestVatProcessingServiceFromConfig:
    def test_memory_mode(self, sales_invoice):
        service = VatProcessingService.from_config(config={}, store_mode="memory")
        try:
            service.documents.put_document(sales_invoice)
            result = service.process_document("doc-1")
        finally:
            service.close()

        assert result.total == 123.45

    def test_default_configuration_uses_call_timeout(self, monkeypatch, sales_invoice):
        monkeypatch.delenv("VAT_CONFIGURATION_TABLE_NAME", raising=False)
        monkeypatch.delenv("VAT_STORE_MODE", raising=False)

        service = VatProcessingService.from_config()
        try:
            assert service.breaker.call_timeout == 10.0
            service.documents.put_document(sales_invoice)
            assert service.process_document("doc-1").sales_amounts == (123.45,)
        finally:
            service.close()

    @patch("vat_common.processing.service.circuit_metrics_monitor")
    def test_metrics_hook_when_publishing(self, mock_monitor):
        config = {"monitoring": {"publish_metrics": True}}

        service = VatProcessingService.from_config(config=config, store_mode="memory")
        service.protect(lambda: None)
        service.breaker.reset()

        mock_monitor.assert_called_once_with("vat-store")
        mock_monitor.return_value.assert_called_once_with("circuit_reset", {"circuit": "vat-store"})
        assert service.monitor.publish_metrics is True

    @patch("vat_common.processing.service.circuit_metrics_monitor")
    @patch("vat_common.processing.service.log_circuit_event")
    def test_failing_hook_does_not_skip_the_next(self, mock_log_event, mock_monitor):
        mock_log_event.side_effect = RuntimeError("log handler closed")
        config = {"monitoring": {"publish_metrics": True}}

        service = VatProcessingService.from_config(config=config, store_mode="memory")
        service.breaker.reset()

        mock_log_event.assert_called_once()
        mock_monitor.return_value.assert_called_once_with("circuit_reset", {"circuit": "vat-store"})


@pytest.mark.unit
class TestCombineHooks:
    def test_every_hook_runs_when_one_fails(self, caplog):
        first = MagicMock(side_effect=ValueError("broken"), __name__="first")
        second = MagicMock()

        _combine_hooks(first, None, second)("circuit_opened", {"circuit": "vat-store"})

        first.assert_called_once_with("circuit_opened", {"circuit": "vat-store"})
        second.assert_called_once_with("circuit_opened", {"circuit": "vat-store"})
        assert "Circuit monitor hook first failed for circuit_opened: broken" in caplog.text
