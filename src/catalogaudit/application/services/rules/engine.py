"""Rule evaluation engine."""

import asyncio
import logging

from catalogaudit.application.services.rules.checkers import Checker, build_checkers
from catalogaudit.domain.entities import (
    Artist,
    ClassicalMode,
    EvaluationResult,
    Rule,
    Violation,
)
from catalogaudit.domain.ports import IAppSettingsRepository, IRuleRepository
from catalogaudit.domain.value_objects import ImageNaming

logger = logging.getLogger(__name__)

CLASSICAL_MODE_KEY = "rule.classical_mode"


async def get_classical_mode(
    settings_repo: IAppSettingsRepository | None,
    default: ClassicalMode = ClassicalMode.SKIP,
) -> ClassicalMode:
    """Stored classical mode, falling back to default when unset or unknown."""
    if settings_repo is None:
        return default
    value = await settings_repo.get_value(CLASSICAL_MODE_KEY)
    if not value:
        return default
    try:
        return ClassicalMode(value)
    except ValueError:
        logger.warning("Ignoring unknown classical mode %r, using %s", value, default.value)
        return default


class Engine:
    """Evaluates the enabled rules against artists.

    Rules are read from the repository on every evaluate() call so a rule
    toggled in the UI takes effect on the next artist.
    """

    def __init__(
        self,
        rule_repo: IRuleRepository,
        settings_repo: IAppSettingsRepository | None = None,
        naming: ImageNaming | None = None,
        checkers: dict[str, Checker] | None = None,
        classical_default: ClassicalMode = ClassicalMode.SKIP,
    ) -> None:
        self._rule_repo = rule_repo
        self._settings_repo = settings_repo
        self._checkers = checkers if checkers is not None else build_checkers(naming)
        self._classical_default = classical_default

    @property
    def checkers(self) -> dict[str, Checker]:
        return self._checkers

    async def evaluate(self, artist: Artist) -> EvaluationResult:
        """Run every enabled rule against one artist.

        Classical artists in skip mode are not evaluated and score 100.
        """
        if artist.is_classical:
            mode = await get_classical_mode(self._settings_repo, self._classical_default)
            if mode == ClassicalMode.SKIP:
                return EvaluationResult(
                    artist_id=artist.id, artist_name=artist.name, health_score=100.0
                )

        rules = {rule.id: rule for rule in await self._rule_repo.list_all()}
        violations, total = await asyncio.to_thread(self._run_checkers, artist, rules)

        passed = total - len(violations)
        return EvaluationResult(
            artist_id=artist.id,
            artist_name=artist.name,
            violations=violations,
            rules_passed=passed,
            rules_total=total,
            health_score=EvaluationResult.compute_health_score(passed, total),
        )

    def _run_checkers(
        self, artist: Artist, rules: dict[str, Rule]
    ) -> tuple[list[Violation], int]:
        violations: list[Violation] = []
        total = 0
        for rule_id, checker in self._checkers.items():
            rule = rules.get(rule_id)
            if rule is None or not rule.enabled:
                continue
            total += 1
            try:
                violation = checker(artist, rule.config)
            except Exception as e:
                # a checker that blows up counts as passed, like one that cannot read the disk
                logger.warning(
                    "Checker %s failed for artist %s: %s", rule_id, artist.name, e, exc_info=True
                )
                continue
            if violation is None:
                continue
            if not violation.severity:
                violation.severity = rule.config.effective_severity
            violation.config = rule.config.copy()
            violations.append(violation)
        return violations, total

    async def evaluate_all(
        self, artists: list[Artist], stop_event: asyncio.Event | None = None
    ) -> list[EvaluationResult]:
        """Evaluate artists in order, returning what was done before a stop was requested."""
        results: list[EvaluationResult] = []
        for artist in artists:
            if stop_event is not None and stop_event.is_set():
                logger.info("Evaluation stopped after %d of %d artists", len(results), len(artists))
                break
            results.append(await self.evaluate(artist))
        return results
