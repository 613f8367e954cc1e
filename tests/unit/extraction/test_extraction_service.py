# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Unit tests for the ExtractionService class and the document loader.
"""

from unittest.mock import MagicMock, patch

import fitz  # PyMuPDF
import pytest

from vat_common.extraction import (
    COUNTRY_SUMMARY_REPORT,
    NO_METHOD,
    ORDER_DETAIL_REPORT,
    AmountCandidate,
    ExtractionResult,
    ExtractionService,
    ExtractionStrategy,
    load_document_text,
)
from vat_common.models import DocumentCategory, TaxDirection


class _Pattern:
    def __init__(self, confidence, mistake_rate):
        self.confidence = confidence
        self._mistake_rate = mistake_rate

    def mistake_rate(self):
        return self._mistake_rate


class _BrokenStrategy(ExtractionStrategy):
    name = "broken"

    def find(self, text):
        raise RuntimeError("regex exploded")


@pytest.mark.unit
class TestExtractionService:
    """Tests for the ExtractionService class."""

    @pytest.fixture
    def service(self):
        return ExtractionService()

    def test_extracts_prefixed_sales_amount(self, service):
        result = service.extract("Invoice 1001\nTotal VAT: €123.45", DocumentCategory.SALES_INVOICE)

        assert result.sales_amounts == (123.45,)
        assert result.purchase_amounts == ()
        assert result.total == 123.45
        assert result.method == "currency_prefix"
        assert result.confidence >= 0.85
        assert result.document_category == DocumentCategory.SALES_INVOICE

    def test_empty_document_gives_empty_low_confidence_result(self, service):
        result = service.extract("", DocumentCategory.PURCHASE_RECEIPT)

        assert result.amounts == ()
        assert result.method == NO_METHOD
        assert result.confidence == pytest.approx(0.3)
        assert "No readable text in document" in result.diagnostics
        assert "No VAT amounts detected" in result.diagnostics

    def test_none_content_is_not_an_error(self, service):
        result = service.extract(None, "PURCHASE_INVOICE")

        assert result.amounts == ()
        assert "Document has no content" in result.diagnostics

    def test_purchase_category_routes_to_purchase_bucket(self, service):
        result = service.extract("VAT: €40.00", DocumentCategory.PURCHASE_INVOICE)

        assert result.sales_amounts == ()
        assert result.purchase_amounts == (40.0,)

    def test_ambiguous_category_uses_line_hints(self, service):
        text = "Sales VAT: €100.00\nPurchase VAT: €40.00"
        result = service.extract(text, DocumentCategory.OTHER)

        assert result.sales_amounts == (100.0,)
        assert result.purchase_amounts == (40.0,)

    def test_duplicates_across_strategies_are_merged(self, service):
        result = service.extract("Total VAT: €123.45\nVAT 123.45", DocumentCategory.SALES_INVOICE)

        assert result.sales_amounts == (123.45,)
        assert result.methods == ("currency_prefix",)

    def test_amount_above_category_ceiling_is_discarded(self, service):
        result = service.extract("VAT: €15000.00", DocumentCategory.SALES_RECEIPT)

        assert result.amounts == ()
        assert any("above 10000.00 limit" in d for d in result.diagnostics)

    def test_configured_ceiling(self):
        service = ExtractionService({"extraction": {"amount_ceilings": {"SALES_INVOICE": 50}}})
        result = service.extract("VAT: €60.00", DocumentCategory.SALES_INVOICE)
        assert result.amounts == ()

    def test_long_text_is_truncated(self):
        service = ExtractionService({"extraction": {"max_text_length": 40}})
        text = "VAT: €10.00\n" + "x" * 100 + "\nVAT: €20.00"

        result = service.extract(text, DocumentCategory.SALES_INVOICE)

        assert result.truncated is True
        assert result.sales_amounts == (10.0,)
        assert any("truncated" in d for d in result.diagnostics)

    def test_declared_confidence_is_used(self, service):
        result = service.extract("VAT: €10.00\nConfidence: 97%", DocumentCategory.SALES_INVOICE)
        assert result.confidence == pytest.approx(0.97)

    def test_learned_patterns_lower_confidence(self, service):
        patterns = [_Pattern(confidence=1.0, mistake_rate=0.5)]

        result = service.extract("VAT: €10.00", DocumentCategory.SALES_INVOICE, patterns=patterns)

        assert result.confidence == pytest.approx(0.75)
        assert any("lowered" in d for d in result.diagnostics)

    def test_country_report(self, service):
        text = "Country,Net Total Tax\nIE,100.00\nDE,50.50\nIE,10.00"

        result = service.extract(text, DocumentCategory.SALES_REPORT)

        assert result.report_type == COUNTRY_SUMMARY_REPORT
        assert result.method == "country_breakdown"
        assert result.country_breakdown == {"IE": 110.0, "DE": 50.5}
        assert result.total == 160.5

    def test_order_report(self, service):
        text = "Order Number,Item Tax Amt.,Shipping Tax Amt.\n1001,10.00,2.00\n1002,5.50,0.00"

        result = service.extract(text, DocumentCategory.SALES_REPORT)

        assert result.report_type == ORDER_DETAIL_REPORT
        assert result.sales_amounts == (17.5,)
        assert result.method == "order_columns"

    def test_invoice_and_phone_numbers_are_not_vat(self, service):
        invoice = service.extract(
            "TAX INVOICE No. 4021\nNet €100.00\nVAT €23.00\nTotal €123.00",
            DocumentCategory.SALES_INVOICE,
        )
        receipt = service.extract(
            "VAT €23.00\nFor VAT queries call 1890 333 425", DocumentCategory.PURCHASE_RECEIPT
        )

        assert invoice.sales_amounts == (23.0,)
        assert receipt.purchase_amounts == (23.0,)

    def test_vat_derived_from_total_and_rate(self, service):
        result = service.extract("Invoice\nVAT rate 23%\nTotal: €123.00", DocumentCategory.SALES_INVOICE)

        assert result.sales_amounts == (23.0,)
        assert result.method == "total_and_rate"
        assert result.confidence >= 0.85

    def test_explicit_vat_takes_precedence_over_derived(self, service):
        result = service.extract("VAT 23%: €20.00\nTotal: €123.00", DocumentCategory.SALES_INVOICE)

        assert result.sales_amounts == (20.0,)
        assert result.methods == ("currency_prefix",)

    def test_vat_rates_are_reported(self, service):
        result = service.extract("VAT @ 23%: €23.00", DocumentCategory.SALES_INVOICE)
        assert result.vat_rates == (23.0,)

    def test_failing_strategy_does_not_abort_extraction(self):
        strategies = [_BrokenStrategy()] + ExtractionService().strategies
        service = ExtractionService(strategies=strategies)

        result = service.extract("VAT: €10.00", DocumentCategory.SALES_INVOICE)

        assert result.sales_amounts == (10.0,)
        assert any("Strategy broken failed" in d for d in result.diagnostics)

    def test_categorize_unhinted_amounts(self):
        candidates = [
            AmountCandidate(value=10.0, strategy="s", direction=TaxDirection.SALES),
            AmountCandidate(value=5.0, strategy="s"),
        ]
        assert ExtractionService.categorize(candidates, DocumentCategory.OTHER) == ([10.0, 5.0], [])

        unhinted = [AmountCandidate(value=5.0, strategy="s")]
        assert ExtractionService.categorize(unhinted, DocumentCategory.OTHER) == ([], [5.0])

    def test_merge_drops_non_positive_values(self, service):
        candidates = [
            AmountCandidate(value=-3.0, strategy="s"),
            AmountCandidate(value=0.001, strategy="s"),
            AmountCandidate(value=4.004, strategy="s"),
        ]
        kept = service.merge_candidates(candidates, DocumentCategory.SALES_INVOICE)
        assert [c.value for c in kept] == [4.0]


@pytest.mark.unit
class TestExtractionResult:
    def test_rejects_negative_amounts(self):
        with pytest.raises(ValueError):
            ExtractionResult(sales_amounts=(-1.0,), method="currency_prefix")

    def test_rejects_out_of_range_confidence(self):
        with pytest.raises(ValueError):
            ExtractionResult(confidence=1.5)

    def test_amounts_require_a_method(self):
        with pytest.raises(ValueError):
            ExtractionResult(sales_amounts=(1.0,))

    def test_to_dict(self):
        result = ExtractionResult(
            sales_amounts=(10.0,),
            purchase_amounts=(2.5,),
            confidence=0.85,
            method="label_adjacent",
        )
        data = result.to_dict()
        assert data["total"] == 12.5
        assert data["document_category"] == "OTHER"
        assert data["sales_amounts"] == [10.0]


@pytest.mark.unit
class TestLoadDocumentText:
    def test_text_passes_through(self):
        assert load_document_text("VAT 1.00") == ("VAT 1.00", [])

    def test_empty_bytes(self):
        text, diagnostics = load_document_text(b"")
        assert text == ""
        assert diagnostics == ["Document has no content"]

    def test_cp1252_fallback(self):
        text, diagnostics = load_document_text("Total VAT: €123.45".encode("cp1252"))
        assert text == "Total VAT: €123.45"
        assert diagnostics == []

    def test_reads_pdf_text_layer(self):
        pdf = fitz.open()
        page = pdf.new_page()
        page.insert_text((72, 72), "Total VAT: EUR 50.00")
        content = pdf.tobytes()
        pdf.close()

        text, diagnostics = load_document_text(content)

        assert "Total VAT: EUR 50.00" in text
        assert diagnostics == []

    def test_unreadable_pdf_degrades_to_empty_text(self):
        with patch("vat_common.extraction.loader.fitz.open", side_effect=RuntimeError("bad xref")):
            text, diagnostics = load_document_text(b"%PDF-1.7 broken")

        assert text == ""
        assert diagnostics == ["Unable to read PDF: bad xref"]

    def test_pdf_without_text_layer(self):
        page = MagicMock()
        page.get_text.return_value = "   "
        document = MagicMock()
        document.__iter__.return_value = iter([page])

        with patch("vat_common.extraction.loader.fitz.open", return_value=document):
            text, diagnostics = load_document_text(b"scan", mime_type="application/pdf")

        assert diagnostics == ["PDF has no text layer (scanned document?)"]
        document.close.assert_called_once()
