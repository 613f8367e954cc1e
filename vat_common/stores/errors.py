# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Exceptions raised by the document, feedback and pattern stores.
"""


class StoreError(Exception):
    """Raised when a store operation fails."""

    def __init__(self, message: str, operation: str = None):
        super().__init__(message)
        self.operation = operation


class DocumentNotFoundError(StoreError):
    """Raised when a required document does not exist."""

    def __init__(self, document_id: str):
        super().__init__(f"Document not found: {document_id}", operation="get_document")
        self.document_id = document_id


class PatternConflictError(StoreError):
    """Raised when a learned pattern changed between read and commit."""

    def __init__(self, business_id: str, category: str, expected_version=None):
        super().__init__(
            f"Learning pattern for {business_id}/{category} changed since version "
            f"{expected_version}",
            operation="save_pattern",
        )
        self.business_id = business_id
        self.category = category
        self.expected_version = expected_version
