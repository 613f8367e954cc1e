"""
Models for extraction monitoring.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from vat_common.extraction.models import STANDARD_REPORT
from vat_common.utils import utc_now_iso


@dataclass
class ExtractionAttempt:
    """Outcome of one extraction as seen by the monitor"""

    file_name: str
    method: str
    extracted_amount: float
    confidence: float
    processing_time_ms: float
    success: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    expected_amount: Optional[float] = None
    accuracy: Optional[float] = None
    report_type: str = STANDARD_REPORT
    is_specialized: bool = False  # Third-party tax report export
    category: Optional[str] = None
    user_id: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "file_name": self.file_name,
            "method": self.method,
            "extracted_amount": self.extracted_amount,
            "expected_amount": self.expected_amount,
            "confidence": self.confidence,
            "accuracy": self.accuracy,
            "processing_time_ms": self.processing_time_ms,
            "success": self.success,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "report_type": self.report_type,
            "is_specialized": self.is_specialized,
            "category": self.category,
            "user_id": self.user_id,
            "timestamp": self.timestamp,
        }


@dataclass
class MethodStats:
    attempts: int = 0
    successes: int = 0
    average_accuracy: float = 0.0
    average_processing_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempts": self.attempts,
            "successes": self.successes,
            "average_accuracy": self.average_accuracy,
            "average_processing_time": self.average_processing_time,
        }


@dataclass
class SpecializedStats:
    attempts: int = 0
    successes: int = 0
    average_accuracy: float = 0.0
    country_reports: int = 0
    order_reports: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempts": self.attempts,
            "successes": self.successes,
            "average_accuracy": self.average_accuracy,
            "country_reports": self.country_reports,
            "order_reports": self.order_reports,
        }


@dataclass
class IssueCount:
    issue: str
    count: int
    last_seen: str

    def to_dict(self) -> Dict[str, Any]:
        return {"issue": self.issue, "count": self.count, "last_seen": self.last_seen}


@dataclass
class MonitoringStats:
    """Snapshot of the monitor's running statistics"""

    total_attempts: int = 0
    successful_extractions: int = 0
    success_rate: float = 0.0
    average_accuracy: float = 0.0
    average_confidence: float = 0.0
    average_processing_time: float = 0.0
    slow_attempts: int = 0
    specialized: SpecializedStats = field(default_factory=SpecializedStats)
    method_stats: Dict[str, MethodStats] = field(default_factory=dict)
    common_issues: List[IssueCount] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_attempts": self.total_attempts,
            "successful_extractions": self.successful_extractions,
            "success_rate": self.success_rate,
            "average_accuracy": self.average_accuracy,
            "average_confidence": self.average_confidence,
            "average_processing_time": self.average_processing_time,
            "slow_attempts": self.slow_attempts,
            "specialized": self.specialized.to_dict(),
            "method_stats": {name: s.to_dict() for name, s in self.method_stats.items()},
            "common_issues": [i.to_dict() for i in self.common_issues],
            "recommendations": list(self.recommendations),
        }
