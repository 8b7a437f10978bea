"""Request/response models for the rules, violations, bulk and health endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from catalogaudit.domain.entities import (
    BulkJob,
    BulkJobItem,
    EvaluationResult,
    FixResult,
    HealthSnapshot,
    ImageCandidate,
    Rule,
    RuleConfig,
    RuleViolation,
    RunResult,
)


class RuleConfigSchema(BaseModel):
    min_width: int = Field(default=0, ge=0)
    min_height: int = Field(default=0, ge=0)
    aspect_ratio: float = Field(default=0.0, ge=0)
    tolerance: float = Field(default=0.0, ge=0)
    min_length: int = Field(default=0, ge=0)
    severity: str = ""
    threshold_percent: float = Field(default=0.0, ge=0, le=100)
    select_best_candidate: bool = False

    @classmethod
    def from_entity(cls, config: RuleConfig) -> "RuleConfigSchema":
        return cls(**config.to_dict())

    def to_entity(self) -> RuleConfig:
        return RuleConfig.from_dict(self.model_dump())


class RuleResponse(BaseModel):
    id: str
    name: str
    description: str
    category: str
    enabled: bool
    automation_mode: str
    config: RuleConfigSchema
    updated_at: datetime

    @classmethod
    def from_entity(cls, rule: Rule) -> "RuleResponse":
        return cls(
            id=rule.id,
            name=rule.name,
            description=rule.description,
            category=rule.category,
            enabled=rule.enabled,
            automation_mode=rule.automation_mode.value,
            config=RuleConfigSchema.from_entity(rule.config),
            updated_at=rule.updated_at,
        )


class RuleUpdateRequest(BaseModel):
    """Fields left out are not changed."""

    enabled: bool | None = None
    automation_mode: str | None = None
    config: RuleConfigSchema | None = None


class ClassicalModeBody(BaseModel):
    mode: str


class FixResultResponse(BaseModel):
    rule_id: str
    fixed: bool
    message: str
    candidates: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, result: FixResult) -> "FixResultResponse":
        return cls(
            rule_id=result.rule_id,
            fixed=result.fixed,
            message=result.message,
            candidates=[c.to_dict() for c in result.candidates],
        )


class RunResultResponse(BaseModel):
    artists_processed: int
    violations_found: int
    fixes_attempted: int
    fixes_succeeded: int
    results: list[FixResultResponse]

    @classmethod
    def from_entity(cls, result: RunResult) -> "RunResultResponse":
        return cls(
            artists_processed=result.artists_processed,
            violations_found=result.violations_found,
            fixes_attempted=result.fixes_attempted,
            fixes_succeeded=result.fixes_succeeded,
            results=[FixResultResponse.from_entity(r) for r in result.results],
        )


class ViolationSummary(BaseModel):
    rule_id: str
    rule_name: str
    category: str
    severity: str
    message: str
    fixable: bool


class EvaluationResponse(BaseModel):
    artist_id: str
    artist_name: str
    health_score: float
    rules_passed: int
    rules_total: int
    violations: list[ViolationSummary]

    @classmethod
    def from_entity(cls, result: EvaluationResult) -> "EvaluationResponse":
        return cls(
            artist_id=result.artist_id,
            artist_name=result.artist_name,
            health_score=result.health_score,
            rules_passed=result.rules_passed,
            rules_total=result.rules_total,
            violations=[
                ViolationSummary(
                    rule_id=v.rule_id,
                    rule_name=v.rule_name,
                    category=v.category,
                    severity=v.severity,
                    message=v.message,
                    fixable=v.fixable,
                )
                for v in result.violations
            ],
        )


class CandidateSchema(BaseModel):
    url: str
    width: int
    height: int
    source: str
    image_type: str

    @classmethod
    def from_entity(cls, candidate: ImageCandidate) -> "CandidateSchema":
        return cls(**candidate.to_dict())


class ViolationResponse(BaseModel):
    id: str
    rule_id: str
    artist_id: str
    artist_name: str
    severity: str
    message: str
    fixable: bool
    status: str
    candidates: list[CandidateSchema]
    dismissed_at: datetime | None
    resolved_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, violation: RuleViolation) -> "ViolationResponse":
        return cls(
            id=violation.id,
            rule_id=violation.rule_id,
            artist_id=violation.artist_id,
            artist_name=violation.artist_name,
            severity=violation.severity,
            message=violation.message,
            fixable=violation.fixable,
            status=violation.status.value,
            candidates=[CandidateSchema.from_entity(c) for c in violation.candidates],
            dismissed_at=violation.dismissed_at,
            resolved_at=violation.resolved_at,
            created_at=violation.created_at,
            updated_at=violation.updated_at,
        )


class BulkDismissRequest(BaseModel):
    """ids=None dismisses every active violation."""

    ids: list[str] | None = None


class ApplyCandidateRequest(BaseModel):
    url: str
    image_type: str


class CountResponse(BaseModel):
    count: int


class BulkJobRequest(BaseModel):
    mode: str = "prompt_no_match"
    artist_ids: list[str] = Field(default_factory=list)


class BulkJobResponse(BaseModel):
    id: str
    type: str
    mode: str
    status: str
    total_items: int
    processed_items: int
    fixed_items: int
    skipped_items: int
    failed_items: int
    error: str
    created_at: datetime
    started_at: datetime | None
    completed_at: datetime | None

    @classmethod
    def from_entity(cls, job: BulkJob) -> "BulkJobResponse":
        return cls(
            id=job.id,
            type=job.type.value,
            mode=job.mode.value,
            status=job.status.value,
            total_items=job.total_items,
            processed_items=job.processed_items,
            fixed_items=job.fixed_items,
            skipped_items=job.skipped_items,
            failed_items=job.failed_items,
            error=job.error,
            created_at=job.created_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
        )


class BulkJobItemResponse(BaseModel):
    id: str
    artist_id: str
    artist_name: str
    status: str
    message: str
    created_at: datetime

    @classmethod
    def from_entity(cls, item: BulkJobItem) -> "BulkJobItemResponse":
        return cls(
            id=item.id,
            artist_id=item.artist_id,
            artist_name=item.artist_name,
            status=item.status.value,
            message=item.message,
            created_at=item.created_at,
        )


class HealthSnapshotResponse(BaseModel):
    id: str
    total_artists: int
    compliant_artists: int
    score: float
    recorded_at: datetime

    @classmethod
    def from_entity(cls, snapshot: HealthSnapshot) -> "HealthSnapshotResponse":
        return cls(
            id=snapshot.id,
            total_artists=snapshot.total_artists,
            compliant_artists=snapshot.compliant_artists,
            score=snapshot.score,
            recorded_at=snapshot.recorded_at,
        )
