# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Assessment module for VAT extractions.

This module provides the confidence estimator used by the extraction service
and the amount-weighted aggregate used for reports over many documents.
"""

from .confidence import (
    ConfidenceAssessment,
    ConfidenceEstimator,
    aggregate_confidence,
    find_declared_confidence,
)

__all__ = [
    "ConfidenceAssessment",
    "ConfidenceEstimator",
    "aggregate_confidence",
    "find_declared_confidence",
]
