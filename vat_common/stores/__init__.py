# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Store factory for the VAT processing core.

This module creates the document, feedback and pattern stores based on the
VAT_STORE_MODE environment variable. It allows switching between in-memory
and DynamoDB implementations while keeping the same interface.
"""

import logging
import os
from typing import NamedTuple, Optional

from vat_common.stores.errors import DocumentNotFoundError, PatternConflictError, StoreError
from vat_common.stores.base import DocumentStore, FeedbackStore, PatternStore
from vat_common.stores.dynamodb import (
    DynamoDBDocumentStore,
    DynamoDBFeedbackStore,
    DynamoDBPatternStore,
)
from vat_common.stores.memory import (
    InMemoryDocumentStore,
    InMemoryFeedbackStore,
    InMemoryPatternStore,
)

logger = logging.getLogger(__name__)

# Supported store modes
MEMORY_MODE = "memory"
DYNAMODB_MODE = "dynamodb"
SUPPORTED_MODES = [MEMORY_MODE, DYNAMODB_MODE]

# Default mode
DEFAULT_MODE = MEMORY_MODE

STORE_MODE_ENV = "VAT_STORE_MODE"


class Stores(NamedTuple):
    documents: DocumentStore
    feedback: FeedbackStore
    patterns: PatternStore


def get_store_mode() -> str:
    """Get the current store mode from the environment."""
    return os.environ.get(STORE_MODE_ENV, DEFAULT_MODE).lower()


def create_stores(mode: Optional[str] = None, **kwargs) -> Stores:
    """
    Create the document, feedback and pattern stores.

    Args:
        mode: Optional mode override. If not provided, uses the VAT_STORE_MODE
              environment variable, defaulting to 'memory'
        **kwargs: Additional arguments passed to the DynamoDB store constructors
                  (table_name, region, table)

    Returns:
        Stores tuple of (documents, feedback, patterns)

    Raises:
        ValueError: If an unsupported mode is specified
    """
    mode = mode.lower() if mode is not None else get_store_mode()

    if mode not in SUPPORTED_MODES:
        raise ValueError(
            f"Unsupported store mode: '{mode}'. "
            f"Supported modes are: {', '.join(SUPPORTED_MODES)}"
        )

    logger.info(f"Creating stores with mode: {mode}")

    if mode == DYNAMODB_MODE:
        return Stores(
            documents=DynamoDBDocumentStore(**kwargs),
            feedback=DynamoDBFeedbackStore(**kwargs),
            patterns=DynamoDBPatternStore(**kwargs),
        )
    return Stores(
        documents=InMemoryDocumentStore(),
        feedback=InMemoryFeedbackStore(),
        patterns=InMemoryPatternStore(),
    )


__all__ = [
    "DEFAULT_MODE",
    "DYNAMODB_MODE",
    "DocumentNotFoundError",
    "DocumentStore",
    "DynamoDBDocumentStore",
    "DynamoDBFeedbackStore",
    "DynamoDBPatternStore",
    "FeedbackStore",
    "InMemoryDocumentStore",
    "InMemoryFeedbackStore",
    "InMemoryPatternStore",
    "MEMORY_MODE",
    "PatternConflictError",
    "PatternStore",
    "StoreError",
    "Stores",
    "create_stores",
    "get_store_mode",
]
