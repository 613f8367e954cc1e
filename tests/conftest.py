# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Pytest configuration file for the VAT Common package tests.
"""

import pytest

from vat_common.learning.models import ExtractionSnapshot
from vat_common.models import Document, DocumentCategory


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without AWS access")
    config.addinivalue_line("markers", "integration: tests that need AWS resources")


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def sales_invoice():
    return Document(
        id="doc-1",
        business_id="biz-1",
        user_id="user-1",
        file_name="sales_invoice_march.txt",
        content="Invoice 1001\nTotal VAT: €123.45",
        category=DocumentCategory.SALES_INVOICE,
    )


@pytest.fixture
def original_snapshot():
    return ExtractionSnapshot(sales_vat=[100.0], purchase_vat=[], confidence=0.85)


@pytest.fixture
def corrected_snapshot():
    return ExtractionSnapshot(sales_vat=[123.45], purchase_vat=[], confidence=1.0)
