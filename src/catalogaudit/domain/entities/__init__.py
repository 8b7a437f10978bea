"""Domain entities."""

from catalogaudit.domain.entities.artist import Artist
from catalogaudit.domain.entities.bulk import (
    BulkItemStatus,
    BulkJob,
    BulkJobItem,
    BulkJobMode,
    BulkJobStatus,
    BulkJobType,
)
from catalogaudit.domain.entities.events import Event, EventType
from catalogaudit.domain.entities.rules import (
    AutomationMode,
    ClassicalMode,
    EvaluationResult,
    FixResult,
    HealthSnapshot,
    ImageCandidate,
    Rule,
    RuleConfig,
    RuleViolation,
    RunResult,
    Severity,
    Violation,
    ViolationStatus,
)

__all__ = [
    "Artist",
    "AutomationMode",
    "BulkItemStatus",
    "BulkJob",
    "BulkJobItem",
    "BulkJobMode",
    "BulkJobStatus",
    "BulkJobType",
    "ClassicalMode",
    "EvaluationResult",
    "Event",
    "EventType",
    "FixResult",
    "HealthSnapshot",
    "ImageCandidate",
    "Rule",
    "RuleConfig",
    "RuleViolation",
    "RunResult",
    "Severity",
    "Violation",
    "ViolationStatus",
]
