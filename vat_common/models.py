# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Document data model for VAT processing.

This module defines the Document class that represents an uploaded financial
document as it moves through extraction, and the enums shared by the other
modules (document category, processing status, tax direction).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class Status(Enum):
    """Document processing status."""

    UNPROCESSED = "UNPROCESSED"  # Uploaded, extraction not yet run
    PROCESSED = "PROCESSED"  # Extraction ran and fields were stored
    FAILED = "FAILED"  # Extraction could not produce a result


class TaxDirection(Enum):
    """Which VAT bucket an amount contributes to."""

    SALES = "sales"  # VAT owed
    PURCHASE = "purchase"  # VAT reclaimable


class DocumentCategory(Enum):
    """Declared category of an uploaded document."""

    SALES_INVOICE = "SALES_INVOICE"
    SALES_RECEIPT = "SALES_RECEIPT"
    SALES_REPORT = "SALES_REPORT"
    PURCHASE_INVOICE = "PURCHASE_INVOICE"
    PURCHASE_RECEIPT = "PURCHASE_RECEIPT"
    PURCHASE_REPORT = "PURCHASE_REPORT"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value: Union["DocumentCategory", str, None]) -> "DocumentCategory":
        """Convert a string to a category, mapping unknown values to OTHER."""
        if isinstance(value, DocumentCategory):
            return value
        if not value:
            return cls.OTHER
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return cls.OTHER

    @property
    def direction(self) -> Optional[TaxDirection]:
        """Tax direction implied by the category, or None when ambiguous."""
        if self.value.startswith("SALES"):
            return TaxDirection.SALES
        if self.value.startswith("PURCHASE"):
            return TaxDirection.PURCHASE
        return None

    @property
    def is_sales(self) -> bool:
        return self.direction == TaxDirection.SALES

    @property
    def is_purchase(self) -> bool:
        return self.direction == TaxDirection.PURCHASE

    @property
    def group(self) -> str:
        """Category group used by learned patterns (SALES or PURCHASES)."""
        return "SALES" if self.is_sales else "PURCHASES"


@dataclass
class Document:
    """
    Core document type handed to the extraction pipeline.

    The raw content is opaque to the store; the extraction step fills in the
    VAT fields and flips the status exactly once.
    """

    # Core identifiers
    id: str
    business_id: str  # Business entity that owns the document
    user_id: Optional[str] = None  # User that uploaded the document
    file_name: Optional[str] = None
    mime_type: Optional[str] = None

    # Content and declared category
    content: Optional[Union[bytes, str]] = None
    category: DocumentCategory = DocumentCategory.OTHER

    # Processing state
    status: Status = Status.UNPROCESSED
    upload_time: Optional[str] = None
    processed_time: Optional[str] = None

    # Extracted fields
    sales_vat: List[float] = field(default_factory=list)
    purchase_vat: List[float] = field(default_factory=list)
    confidence: float = 0.0
    extraction_method: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @property
    def owner_id(self) -> str:
        """Identity used when feedback is submitted without an explicit user."""
        return self.user_id or self.business_id

    def to_dict(self, include_content: bool = False) -> Dict[str, Any]:
        """Convert document to dictionary representation."""
        result = {
            "id": self.id,
            "business_id": self.business_id,
            "user_id": self.user_id,
            "file_name": self.file_name,
            "mime_type": self.mime_type,
            "category": self.category.value,
            "status": self.status.value,
            "upload_time": self.upload_time,
            "processed_time": self.processed_time,
            "sales_vat": list(self.sales_vat),
            "purchase_vat": list(self.purchase_vat),
            "confidence": self.confidence,
            "extraction_method": self.extraction_method,
            "errors": list(self.errors),
        }
        if include_content:
            result["content"] = self.content
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Document":
        """Create a Document from a dictionary representation."""
        if not data:
            raise ValueError("Cannot create Document from empty data")

        document = cls(
            id=data.get("id", ""),
            business_id=data.get("business_id", ""),
            user_id=data.get("user_id"),
            file_name=data.get("file_name"),
            mime_type=data.get("mime_type"),
            content=data.get("content"),
            category=DocumentCategory.parse(data.get("category")),
            upload_time=data.get("upload_time"),
            processed_time=data.get("processed_time"),
            sales_vat=[float(v) for v in data.get("sales_vat") or []],
            purchase_vat=[float(v) for v in data.get("purchase_vat") or []],
            confidence=float(data.get("confidence") or 0.0),
            extraction_method=data.get("extraction_method"),
            errors=list(data.get("errors") or []),
        )

        # Convert status from string to enum
        if "status" in data:
            try:
                document.status = Status(data["status"])
            except ValueError:
                # If the status isn't a valid enum value, treat it as unprocessed
                document.status = Status.UNPROCESSED

        return document
