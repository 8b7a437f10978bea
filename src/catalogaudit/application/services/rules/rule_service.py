"""Rule service: rule configuration, the violation inbox and health history.

Hey future me - this is the persistence-facing half of the rules feature. The engine and the
pipeline decide WHAT is wrong; this service is what the API (and the scheduler) call to
seed, configure and inspect. It never commits - the caller owns the session scope.
"""

import logging
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from catalogaudit.application.services.rules.checkers import default_rules
from catalogaudit.application.services.rules.engine import (
    CLASSICAL_MODE_KEY,
    get_classical_mode,
)
from catalogaudit.domain.entities import (
    Artist,
    AutomationMode,
    ClassicalMode,
    EvaluationResult,
    HealthSnapshot,
    Rule,
    RuleConfig,
    RuleViolation,
    ViolationStatus,
)
from catalogaudit.domain.exceptions import EntityNotFoundException, ValidationException
from catalogaudit.domain.ports import (
    IAppSettingsRepository,
    IHealthSnapshotRepository,
    IRuleRepository,
    IViolationRepository,
)

logger = logging.getLogger(__name__)

DEFAULT_HEALTH_HISTORY_DAYS = 90


class RuleService:
    """Manages rules, persisted violations and health snapshots."""

    def __init__(
        self,
        rule_repo: IRuleRepository,
        violation_repo: IViolationRepository,
        snapshot_repo: IHealthSnapshotRepository | None = None,
        settings_repo: IAppSettingsRepository | None = None,
        classical_default: ClassicalMode = ClassicalMode.SKIP,
    ) -> None:
        self._rule_repo = rule_repo
        self._violation_repo = violation_repo
        self._snapshot_repo = snapshot_repo
        self._settings_repo = settings_repo
        self._classical_default = classical_default

    # Rules

    async def seed_defaults(self) -> int:
        """Insert the built-in rules. Existing rules keep their user configuration."""
        rules = default_rules()
        for rule in rules:
            await self._rule_repo.seed(rule)
        logger.info("Seeded %d built-in rules", len(rules))
        return len(rules)

    async def list_rules(self) -> list[Rule]:
        return await self._rule_repo.list_all()

    async def get_rule(self, rule_id: str) -> Rule:
        rule = await self._rule_repo.get_by_id(rule_id)
        if rule is None:
            raise EntityNotFoundException("Rule", rule_id)
        return rule

    async def update_rule(
        self,
        rule_id: str,
        enabled: bool | None = None,
        automation_mode: str | AutomationMode | None = None,
        config: RuleConfig | None = None,
    ) -> Rule:
        """Change the user-editable parts of a rule. None leaves a field as it is.

        Raises:
            EntityNotFoundException: Unknown rule
            ValidationException: Unknown automation mode
        """
        rule = await self.get_rule(rule_id)
        if enabled is not None:
            rule.enabled = enabled
        if automation_mode is not None:
            try:
                rule.automation_mode = AutomationMode.parse(automation_mode)
            except ValueError as e:
                raise ValidationException(str(e)) from e
        if config is not None:
            rule.config = config
        rule.updated_at = datetime.now(UTC)
        await self._rule_repo.update(rule)
        logger.info(
            "Updated rule %s (enabled=%s, automation=%s)",
            rule.id,
            rule.enabled,
            rule.automation_mode.value,
        )
        return rule

    # Classical music

    async def get_classical_mode(self) -> ClassicalMode:
        return await get_classical_mode(self._settings_repo, self._classical_default)

    async def set_classical_mode(self, mode: str | ClassicalMode) -> ClassicalMode:
        try:
            parsed = ClassicalMode(mode)
        except ValueError as e:
            valid = ", ".join(m.value for m in ClassicalMode)
            raise ValidationException(
                f"invalid classical mode {mode!r}, expected one of: {valid}"
            ) from e
        if self._settings_repo is None:
            raise ValidationException("classical mode cannot be stored without settings")
        await self._settings_repo.set_value(CLASSICAL_MODE_KEY, parsed.value)
        return parsed

    # Violations

    async def upsert_violation(self, violation: RuleViolation) -> None:
        await self._violation_repo.upsert(violation)

    async def list_violations(self, status: str | None = None) -> list[RuleViolation]:
        """status: a violation status, "active" (open + pending_choice) or None for all."""
        if status and status != "active":
            try:
                ViolationStatus(status)
            except ValueError as e:
                raise ValidationException(f"invalid violation status {status!r}") from e
        return await self._violation_repo.list_by_status(status)

    async def get_violation(self, violation_id: str) -> RuleViolation:
        violation = await self._violation_repo.get_by_id(violation_id)
        if violation is None:
            raise EntityNotFoundException("RuleViolation", violation_id)
        return violation

    async def dismiss_violation(self, violation_id: str) -> RuleViolation:
        violation = await self._violation_repo.set_status(
            violation_id, ViolationStatus.DISMISSED
        )
        if violation is None:
            raise EntityNotFoundException("RuleViolation", violation_id)
        return violation

    async def bulk_dismiss_violations(self, violation_ids: Sequence[str] | None = None) -> int:
        """Dismiss active violations (all of them when ids is None). Returns the count."""
        ids = list(violation_ids) if violation_ids is not None else None
        count = await self._violation_repo.bulk_dismiss(ids)
        logger.info("Dismissed %d violations", count)
        return count

    async def resolve_violation(self, violation_id: str) -> RuleViolation:
        violation = await self._violation_repo.set_status(
            violation_id, ViolationStatus.RESOLVED
        )
        if violation is None:
            raise EntityNotFoundException("RuleViolation", violation_id)
        return violation

    async def count_active_by_severity(self) -> dict[str, int]:
        return await self._violation_repo.count_active_by_severity()

    async def clear_resolved_violations(self, days_old: int) -> int:
        if days_old < 0:
            raise ValidationException("days_old must not be negative")
        cutoff = datetime.now(UTC) - timedelta(days=days_old)
        count = await self._violation_repo.clear_resolved(cutoff)
        if count:
            logger.info("Cleared %d resolved violations older than %d days", count, days_old)
        return count

    # Health

    def _require_snapshots(self) -> IHealthSnapshotRepository:
        if self._snapshot_repo is None:
            raise ValidationException("health history is not available")
        return self._snapshot_repo

    async def record_health_snapshot(
        self, total: int, compliant: int, score: float
    ) -> HealthSnapshot:
        snapshot = HealthSnapshot(total_artists=total, compliant_artists=compliant, score=score)
        await self._require_snapshots().add(snapshot)
        return snapshot

    async def get_health_history(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> list[HealthSnapshot]:
        """Snapshots between start and end, oldest first. Defaults to the last 90 days."""
        end = end or datetime.now(UTC)
        start = start or end - timedelta(days=DEFAULT_HEALTH_HISTORY_DAYS)
        if start > end:
            raise ValidationException("start must not be after end")
        return await self._require_snapshots().list_between(start, end)

    async def get_latest_health_snapshot(self) -> HealthSnapshot | None:
        return await self._require_snapshots().latest()


def compute_library_health(
    artists: Sequence[Artist], results: Sequence[EvaluationResult]
) -> tuple[int, int, float]:
    """Library-wide (total, compliant, score).

    The score is passed rules over total rules across every evaluated artist,
    so an artist with many enabled rules weighs more than one with few.
    """
    total = len(artists)
    compliant = sum(1 for result in results if result.health_score >= 100.0)
    passed = sum(result.rules_passed for result in results)
    checked = sum(result.rules_total for result in results)
    return total, compliant, EvaluationResult.compute_health_score(passed, checked)
