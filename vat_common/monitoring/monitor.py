# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Extraction monitor.

Keeps running statistics over extraction attempts: success rate, accuracy,
confidence, latency, per-method figures, specialized report figures and the
most frequent issues. Totals are updated incrementally so memory use does
not grow with the number of attempts. Issues are grouped with their numbers
masked and the table is capped, and only a bounded window of recent
attempts is kept for export.
"""

import logging
import re
import threading
from collections import deque
from typing import Any, Dict, List, Optional, Sequence

from vat_common import metrics
from vat_common.evaluation.metrics import accuracy_percentage
from vat_common.extraction.models import (
    COUNTRY_SUMMARY_REPORT,
    ORDER_DETAIL_REPORT,
    STANDARD_REPORT,
    ExtractionResult,
)
from vat_common.monitoring.models import (
    ExtractionAttempt,
    IssueCount,
    MethodStats,
    MonitoringStats,
    SpecializedStats,
)

logger = logging.getLogger(__name__)

SLOW_ATTEMPT_MS = 10000.0
SLOW_SHARE_LIMIT = 0.2
SUCCESS_RATE_TARGET = 80.0
ACCURACY_TARGET = 90.0
CONFIDENCE_TARGET = 0.8
SPECIALIZED_FILE_MARKERS = ("woocommerce", "icwoocommercetaxpro", "tax_report")
MAX_TRACKED_ISSUES = 200

_ISSUE_NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)*")


class _Totals:
    """Running sums for a group of attempts."""

    def __init__(self):
        self.attempts = 0
        self.successes = 0
        self.accuracy_sum = 0.0
        self.accuracy_count = 0
        self.confidence_sum = 0.0
        self.latency_sum = 0.0

    def add(self, attempt: ExtractionAttempt) -> None:
        self.attempts += 1
        self.latency_sum += attempt.processing_time_ms
        if attempt.success:
            self.successes += 1
            self.confidence_sum += attempt.confidence
            if attempt.accuracy is not None:
                self.accuracy_sum += attempt.accuracy
                self.accuracy_count += 1

    @property
    def average_accuracy(self) -> float:
        return self.accuracy_sum / self.accuracy_count if self.accuracy_count else 0.0

    @property
    def average_confidence(self) -> float:
        return self.confidence_sum / self.successes if self.successes else 0.0

    @property
    def average_latency(self) -> float:
        return self.latency_sum / self.attempts if self.attempts else 0.0

    @property
    def success_rate(self) -> float:
        return self.successes / self.attempts * 100.0 if self.attempts else 0.0


class ExtractionMonitor:
    """
    Thread-safe aggregator of extraction attempts.

    Create one per process and pass it to the services that report to it.
    """

    def __init__(
        self,
        top_issues: int = 10,
        recent_capacity: int = 1000,
        publish_metrics: bool = False,
        slow_threshold_ms: float = SLOW_ATTEMPT_MS,
        max_tracked_issues: int = MAX_TRACKED_ISSUES,
    ):
        self.top_issues = top_issues
        self.max_tracked_issues = max(max_tracked_issues, top_issues, 1)
        self.recent_capacity = recent_capacity
        self.publish_metrics = publish_metrics
        self.slow_threshold_ms = slow_threshold_ms
        self._lock = threading.Lock()
        self._reset_state()

    @classmethod
    def from_config(cls, config: Dict[str, Any] = None) -> "ExtractionMonitor":
        settings = (config or {}).get("monitoring", {})
        return cls(
            top_issues=int(settings.get("top_issues", 10)),
            recent_capacity=int(settings.get("recent_capacity", 1000)),
            publish_metrics=bool(settings.get("publish_metrics", False)),
            max_tracked_issues=int(settings.get("max_tracked_issues", MAX_TRACKED_ISSUES)),
        )

    def _reset_state(self) -> None:
        self._totals = _Totals()
        self._specialized = _Totals()
        self._country_reports = 0
        self._order_reports = 0
        self._slow_attempts = 0
        self._methods: Dict[str, _Totals] = {}
        self._issues: Dict[str, List[Any]] = {}  # issue -> [count, last_seen]
        self._recent = deque(maxlen=self.recent_capacity)

    def record_attempt(self, attempt: ExtractionAttempt) -> None:
        """
        Add an attempt to the running statistics.

        Args:
            attempt: The attempt to record
        """
        with self._lock:
            self._totals.add(attempt)
            self._methods.setdefault(attempt.method, _Totals()).add(attempt)
            if attempt.is_specialized:
                self._specialized.add(attempt)
                if attempt.report_type == COUNTRY_SUMMARY_REPORT:
                    self._country_reports += 1
                elif attempt.report_type == ORDER_DETAIL_REPORT:
                    self._order_reports += 1
            if attempt.processing_time_ms > self.slow_threshold_ms:
                self._slow_attempts += 1
            for error in attempt.errors:
                self._count_issue(normalize_issue(error), attempt.timestamp)
            self._recent.append(attempt)

        logger.info(
            f"Recorded extraction attempt {attempt.id} for {attempt.file_name}: "
            f"method {attempt.method}, success {attempt.success}, "
            f"amount {attempt.extracted_amount}, confidence {attempt.confidence:.2f}, "
            f"{attempt.processing_time_ms:.0f}ms"
        )
        if not attempt.success:
            logger.warning(f"Extraction failed for {attempt.file_name}: {', '.join(attempt.errors)}")
        elif attempt.confidence < 0.5:
            logger.warning(
                f"Low confidence for {attempt.file_name}: {round(attempt.confidence * 100)}%"
            )
        if attempt.accuracy is not None and attempt.accuracy < ACCURACY_TARGET:
            logger.warning(f"Low accuracy for {attempt.file_name}: {attempt.accuracy:.1f}%")

        if self.publish_metrics:
            metrics.put_extraction_metrics(
                attempt.method,
                attempt.processing_time_ms,
                attempt.confidence,
                is_success=attempt.success,
                accuracy=attempt.accuracy,
            )

    def _count_issue(self, issue: str, timestamp: str) -> None:
        entry = self._issues.get(issue)
        if entry is None:
            if len(self._issues) >= self.max_tracked_issues:
                # evict the rarest issue, the stalest one among equals
                evicted = min(self._issues, key=lambda k: (self._issues[k][0], self._issues[k][1]))
                del self._issues[evicted]
            entry = self._issues[issue] = [0, timestamp]
        entry[0] += 1
        entry[1] = max(entry[1], timestamp)

    def get_stats(self) -> MonitoringStats:
        """
        Snapshot of the running statistics with recommendations.

        Returns:
            MonitoringStats
        """
        with self._lock:
            totals = self._totals
            if totals.attempts == 0:
                return MonitoringStats()

            specialized = SpecializedStats(
                attempts=self._specialized.attempts,
                successes=self._specialized.successes,
                average_accuracy=self._specialized.average_accuracy,
                country_reports=self._country_reports,
                order_reports=self._order_reports,
            )
            method_stats = {
                name: MethodStats(
                    attempts=t.attempts,
                    successes=t.successes,
                    average_accuracy=t.average_accuracy,
                    average_processing_time=t.average_latency,
                )
                for name, t in self._methods.items()
            }
            ranked = sorted(self._issues.items(), key=lambda item: item[1][0], reverse=True)
            common_issues = [
                IssueCount(issue=issue, count=count, last_seen=last_seen)
                for issue, (count, last_seen) in ranked[: self.top_issues]
            ]
            stats = MonitoringStats(
                total_attempts=totals.attempts,
                successful_extractions=totals.successes,
                success_rate=totals.success_rate,
                average_accuracy=totals.average_accuracy,
                average_confidence=totals.average_confidence,
                average_processing_time=totals.average_latency,
                slow_attempts=self._slow_attempts,
                specialized=specialized,
                method_stats=method_stats,
                common_issues=common_issues,
            )
            has_accuracy = totals.accuracy_count > 0
            specialized_rate = self._specialized.success_rate

        stats.recommendations = self._recommendations(stats, has_accuracy, specialized_rate)
        return stats

    @staticmethod
    def _recommendations(
        stats: MonitoringStats, has_accuracy: bool, specialized_rate: float
    ) -> List[str]:
        recommendations = []
        if stats.success_rate < SUCCESS_RATE_TARGET:
            recommendations.append(
                "Success rate below 80% - review error handling and file format support"
            )
        if has_accuracy and stats.average_accuracy < ACCURACY_TARGET:
            recommendations.append(
                "Average accuracy below 90% - improve pattern matching and validation"
            )
        if stats.successful_extractions and stats.average_confidence < CONFIDENCE_TARGET:
            recommendations.append("Average confidence below 80% - enhance detection algorithms")

        if stats.specialized.attempts > 0:
            if specialized_rate < stats.success_rate:
                recommendations.append(
                    "Specialized report extraction performing below overall average "
                    "- review specialized report processing"
                )
            if stats.specialized.country_reports == 0:
                recommendations.append(
                    "No country summary reports detected - verify country report detection logic"
                )
            if stats.specialized.order_reports == 0:
                recommendations.append(
                    "No order detail reports detected - verify order report detection logic"
                )

        if stats.slow_attempts > stats.total_attempts * SLOW_SHARE_LIMIT:
            recommendations.append(
                "More than 20% of extractions are slow (>10s) - optimize processing performance"
            )
        return recommendations

    def export_attempts(self) -> List[ExtractionAttempt]:
        """Recent attempts, newest first."""
        with self._lock:
            return list(reversed(self._recent))

    def reset(self) -> None:
        """Clear all statistics."""
        with self._lock:
            self._reset_state()
        logger.info("Extraction monitor reset")


def normalize_issue(error: str) -> str:
    """Mask the numbers in an error so variants of one issue are counted together."""
    return _ISSUE_NUMBER_RE.sub("#", error)


def is_specialized_report(file_name: Optional[str], report_type: str = STANDARD_REPORT) -> bool:
    """Whether a document is a third-party tax report export."""
    name = (file_name or "").lower()
    return report_type != STANDARD_REPORT or any(m in name for m in SPECIALIZED_FILE_MARKERS)


def create_extraction_attempt(
    file_name: str,
    result: ExtractionResult,
    processing_time_ms: float,
    expected_amount: Optional[float] = None,
    success: Optional[bool] = None,
    errors: Optional[Sequence[str]] = None,
    user_id: Optional[str] = None,
) -> ExtractionAttempt:
    """
    Build a monitor attempt from an extraction result.

    Args:
        file_name: Name of the extracted file
        result: The extraction result
        processing_time_ms: Time taken by the extraction
        expected_amount: Optional known total, enables the accuracy figure
        success: Override of the outcome, defaults to whether amounts were found
        errors: Override of the errors, defaults to the diagnostics of a failed extraction
        user_id: Optional submitting user

    Returns:
        ExtractionAttempt
    """
    if success is None:
        success = bool(result.amounts)
    if errors is None:
        errors = [] if success else list(result.diagnostics)
    warnings = list(result.diagnostics) if success else []

    accuracy = None
    if expected_amount is not None:
        accuracy = accuracy_percentage(result.total, expected_amount)

    return ExtractionAttempt(
        file_name=file_name,
        method=result.method,
        extracted_amount=result.total,
        confidence=result.confidence,
        processing_time_ms=processing_time_ms,
        success=success,
        errors=list(errors),
        warnings=warnings,
        expected_amount=expected_amount,
        accuracy=accuracy,
        report_type=result.report_type,
        is_specialized=is_specialized_report(file_name, result.report_type),
        category=result.document_category.value,
        user_id=user_id,
    )
