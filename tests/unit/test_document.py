# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Unit tests for the Document model and its enums.
"""

import pytest

from vat_common.models import Document, DocumentCategory, Status, TaxDirection


@pytest.mark.unit
class TestDocumentCategory:
    def test_parse(self):
        assert DocumentCategory.parse("sales_invoice") == DocumentCategory.SALES_INVOICE
        assert DocumentCategory.parse(" PURCHASE_REPORT ") == DocumentCategory.PURCHASE_REPORT
        assert DocumentCategory.parse(DocumentCategory.SALES_RECEIPT) == DocumentCategory.SALES_RECEIPT

    def test_parse_unknown_values(self):
        assert DocumentCategory.parse("bank_statement") == DocumentCategory.OTHER
        assert DocumentCategory.parse("") == DocumentCategory.OTHER
        assert DocumentCategory.parse(None) == DocumentCategory.OTHER

    def test_direction(self):
        assert DocumentCategory.SALES_REPORT.direction == TaxDirection.SALES
        assert DocumentCategory.PURCHASE_RECEIPT.direction == TaxDirection.PURCHASE
        assert DocumentCategory.OTHER.direction is None
        assert DocumentCategory.SALES_INVOICE.is_sales
        assert not DocumentCategory.OTHER.is_purchase

    def test_group(self):
        assert DocumentCategory.SALES_RECEIPT.group == "SALES"
        assert DocumentCategory.PURCHASE_INVOICE.group == "PURCHASES"
        assert DocumentCategory.OTHER.group == "PURCHASES"


@pytest.mark.unit
class TestDocument:
    def test_defaults(self):
        document = Document(id="doc-1", business_id="biz-1")

        assert document.status == Status.UNPROCESSED
        assert document.category == DocumentCategory.OTHER
        assert document.sales_vat == []
        assert document.confidence == 0.0

    def test_owner_id(self):
        assert Document(id="d", business_id="biz-1", user_id="user-1").owner_id == "user-1"
        assert Document(id="d", business_id="biz-1").owner_id == "biz-1"

    def test_to_dict(self, sales_invoice):
        data = sales_invoice.to_dict()

        assert data["category"] == "SALES_INVOICE"
        assert data["status"] == "UNPROCESSED"
        assert "content" not in data
        assert sales_invoice.to_dict(include_content=True)["content"] == sales_invoice.content

    def test_round_trip(self, sales_invoice):
        sales_invoice.status = Status.PROCESSED
        sales_invoice.sales_vat = [123.45]
        sales_invoice.confidence = 0.85

        restored = Document.from_dict(sales_invoice.to_dict(include_content=True))

        assert restored == sales_invoice

    def test_from_dict_invalid_status(self):
        document = Document.from_dict({"id": "doc-1", "business_id": "biz-1", "status": "ARCHIVED"})
        assert document.status == Status.UNPROCESSED

    def test_from_dict_coerces_amounts(self):
        document = Document.from_dict(
            {"id": "doc-1", "business_id": "biz-1", "purchase_vat": ["12.50", 3], "confidence": None}
        )

        assert document.purchase_vat == [12.5, 3.0]
        assert document.confidence == 0.0

    def test_from_dict_empty(self):
        with pytest.raises(ValueError):
            Document.from_dict({})
