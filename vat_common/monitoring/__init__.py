# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Monitoring module for VAT extractions.
"""

from vat_common.monitoring.models import (
    ExtractionAttempt,
    IssueCount,
    MethodStats,
    MonitoringStats,
    SpecializedStats,
)
from vat_common.monitoring.monitor import (
    ExtractionMonitor,
    create_extraction_attempt,
    is_specialized_report,
    normalize_issue,
)

__all__ = [
    "ExtractionAttempt",
    "ExtractionMonitor",
    "IssueCount",
    "MethodStats",
    "MonitoringStats",
    "SpecializedStats",
    "create_extraction_attempt",
    "is_specialized_report",
    "normalize_issue",
]
