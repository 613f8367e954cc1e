# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Learning module for VAT extractions.

This module records user feedback on extractions and maintains the learned
patterns per business and document category.
"""

from vat_common.learning.models import (
    MISTAKE_THRESHOLD_PERCENT,
    AppliedPattern,
    CorrectionRecord,
    ExtractionSnapshot,
    FeedbackKind,
    FeedbackRecord,
    FieldCorrection,
    LearningInsights,
    LearningPattern,
    PatternInsight,
)
from vat_common.learning.service import LearningService

__all__ = [
    "AppliedPattern",
    "CorrectionRecord",
    "ExtractionSnapshot",
    "FeedbackKind",
    "FeedbackRecord",
    "FieldCorrection",
    "LearningInsights",
    "LearningPattern",
    "LearningService",
    "MISTAKE_THRESHOLD_PERCENT",
    "PatternInsight",
]
