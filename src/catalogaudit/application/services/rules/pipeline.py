"""Fix pipeline: evaluate artists, dispatch fixers, persist the violation inbox.

Hey future me - the automation mode of a rule decides what happens to its violations:

    disabled -> nothing. No fixer call, no inbox row.
    manual   -> never write to the library. Only a fixer that supports candidate discovery
                is called (with discovery_only=True); its candidates land in the inbox as
                pending_choice. Everything else is persisted open.
    auto     -> call the first matching fixer. Fixed -> resolved, candidates ->
                pending_choice, anything else -> open.

decide_persisted_status() is the ONE place that maps (mode, fix result) to a status. If you
ever feel like adding an `if mode == ...` somewhere else, put it there instead.
"""

import asyncio
import logging
from collections.abc import Sequence

from catalogaudit.application.services.rules.engine import Engine
from catalogaudit.application.services.rules.fixers import Fixer
from catalogaudit.domain.entities import (
    Artist,
    AutomationMode,
    Event,
    EventType,
    FixResult,
    Rule,
    RuleConfig,
    RuleViolation,
    RunResult,
    Violation,
    ViolationStatus,
)
from catalogaudit.domain.exceptions import EntityNotFoundException
from catalogaudit.domain.ports import (
    IArtistRepository,
    IEventPublisher,
    IRuleRepository,
    IViolationRepository,
)
from catalogaudit.infrastructure.observability.logger_template import log_operation

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 200


def decide_persisted_status(mode: AutomationMode, result: FixResult | None) -> ViolationStatus:
    """Inbox status for a violation after a fix attempt (None means no attempt).

    Only auto mode may resolve. Candidates always mean pending_choice.
    """
    if result is None:
        return ViolationStatus.OPEN
    if result.fixed and mode == AutomationMode.AUTO:
        return ViolationStatus.RESOLVED
    if result.candidates:
        return ViolationStatus.PENDING_CHOICE
    return ViolationStatus.OPEN


class Pipeline:
    """Orchestrates evaluation and fixing across the library."""

    def __init__(
        self,
        engine: Engine,
        artist_repo: IArtistRepository,
        rule_repo: IRuleRepository,
        violation_repo: IViolationRepository,
        fixers: Sequence[Fixer],
        page_size: int = DEFAULT_PAGE_SIZE,
        event_publisher: IEventPublisher | None = None,
    ) -> None:
        self._engine = engine
        self._artist_repo = artist_repo
        self._rule_repo = rule_repo
        self._violation_repo = violation_repo
        self._fixers = list(fixers)
        self._page_size = page_size
        self._events = event_publisher

    @property
    def engine(self) -> Engine:
        return self._engine

    async def run_rule(
        self, rule_id: str, stop_event: asyncio.Event | None = None
    ) -> RunResult:
        """Evaluate every non-excluded artist and handle violations of one rule.

        Raises:
            EntityNotFoundException: Unknown rule
        """
        rule = await self._rule_repo.get_by_id(rule_id)
        if rule is None:
            raise EntityNotFoundException("Rule", rule_id)

        async with log_operation(logger, "rules.run_rule", rule_id=rule_id):
            result = await self._run(
                {rule_id: rule}, only_rule_id=rule_id, stop_event=stop_event
            )
        self._log_result("run_rule", result)
        return result

    async def run_all(self, stop_event: asyncio.Event | None = None) -> RunResult:
        """Evaluate every non-excluded artist and handle all violations."""
        async with log_operation(logger, "rules.run_all"):
            rules = {rule.id: rule for rule in await self._rule_repo.list_all()}
            result = await self._run(rules, only_rule_id=None, stop_event=stop_event)
        self._log_result("run_all", result)
        return result

    async def run_for_artist(self, artist: Artist) -> RunResult:
        """Evaluate one artist and handle all its violations."""
        result = RunResult()
        if artist.is_excluded:
            return result

        rules = {rule.id: rule for rule in await self._rule_repo.list_all()}
        result.artists_processed = 1
        evaluation = await self._engine.evaluate(artist)
        for violation in evaluation.violations:
            result.violations_found += 1
            rule = rules.get(violation.rule_id)
            if rule is None:
                logger.warning("No rule %s for violation of %s", violation.rule_id, artist.name)
                continue
            await self._handle_violation(artist, violation, rule, result)

        await self._update_health_score(artist)
        return result

    async def _run(
        self,
        rules: dict[str, Rule],
        only_rule_id: str | None,
        stop_event: asyncio.Event | None,
    ) -> RunResult:
        result = RunResult()
        offset = 0

        while not self._stopped(stop_event):
            page = await self._artist_repo.list_artists(
                offset=offset, limit=self._page_size, sort="name"
            )
            if not page:
                break

            for artist in page:
                if self._stopped(stop_event):
                    logger.info(
                        "Pipeline stopped early after %d artists", result.artists_processed
                    )
                    break
                if artist.is_excluded:
                    continue

                result.artists_processed += 1
                try:
                    evaluation = await self._engine.evaluate(artist)
                except Exception as e:
                    logger.warning("Evaluating artist %s failed: %s", artist.name, e)
                    continue

                for violation in evaluation.violations:
                    if only_rule_id is not None and violation.rule_id != only_rule_id:
                        continue
                    result.violations_found += 1
                    rule = rules.get(violation.rule_id)
                    if rule is None:
                        logger.warning(
                            "No rule %s for violation of %s", violation.rule_id, artist.name
                        )
                        continue
                    await self._handle_violation(artist, violation, rule, result)

                await self._update_health_score(artist)

            if len(page) < self._page_size:
                break
            offset += self._page_size

        return result

    @staticmethod
    def _stopped(stop_event: asyncio.Event | None) -> bool:
        return stop_event is not None and stop_event.is_set()

    def find_fixer(self, violation: Violation) -> Fixer | None:
        for fixer in self._fixers:
            if fixer.can_fix(violation):
                return fixer
        return None

    async def _handle_violation(
        self, artist: Artist, violation: Violation, rule: Rule, result: RunResult
    ) -> None:
        mode = rule.automation_mode
        if mode == AutomationMode.DISABLED:
            return

        fixer = self.find_fixer(violation)

        if mode == AutomationMode.MANUAL:
            if not violation.fixable or fixer is None or not fixer.supports_candidate_discovery:
                await self._persist(
                    artist, violation, ViolationStatus.OPEN, violation.fixable and fixer is not None
                )
                return
            config = violation.config.copy() if violation.config else RuleConfig()
            config.discovery_only = True
            violation.config = config
        elif not violation.fixable:
            await self._persist(artist, violation, ViolationStatus.OPEN, False)
            return

        fix_result = await self.attempt_fix(artist, violation)
        result.results.append(fix_result)
        result.fixes_attempted += 1

        status = decide_persisted_status(mode, fix_result)
        if status == ViolationStatus.RESOLVED:
            result.fixes_succeeded += 1
        await self._persist(artist, violation, status, True, fix_result)

    async def attempt_fix(self, artist: Artist, violation: Violation) -> FixResult:
        """Run the first matching fixer. Fixer exceptions become a failed result."""
        fixer = self.find_fixer(violation)
        if fixer is None:
            return FixResult(violation.rule_id, False, "no fixer available")
        try:
            return await fixer.fix(artist, violation)
        except Exception as e:
            logger.warning(
                "Fix attempt failed for rule %s, artist %s: %s",
                violation.rule_id,
                artist.name,
                e,
            )
            return FixResult(violation.rule_id, False, f"fix failed: {e}")

    async def _persist(
        self,
        artist: Artist,
        violation: Violation,
        status: ViolationStatus,
        fixable: bool,
        fix_result: FixResult | None = None,
    ) -> None:
        candidates = fix_result.candidates if fix_result else []
        row = RuleViolation(
            rule_id=violation.rule_id,
            artist_id=artist.id,
            artist_name=artist.name,
            severity=violation.severity,
            message=violation.message,
            fixable=fixable,
            status=status,
            candidates=list(candidates) if status == ViolationStatus.PENDING_CHOICE else [],
        )
        if status == ViolationStatus.RESOLVED:
            row.resolve()
        await self._violation_repo.upsert(row)

        if self._events is None:
            return
        if status == ViolationStatus.PENDING_CHOICE:
            self._events.publish(
                Event(
                    EventType.REVIEW_NEEDED,
                    {"artist_id": artist.id, "rule_id": violation.rule_id},
                )
            )
        elif status == ViolationStatus.RESOLVED:
            self._events.publish(
                Event(
                    EventType.METADATA_FIXED,
                    {
                        "artist_id": artist.id,
                        "rule_id": violation.rule_id,
                        "message": fix_result.message if fix_result else "",
                    },
                )
            )

    async def _update_health_score(self, artist: Artist) -> None:
        """Re-evaluate after fixes and persist the artist (score and any fixer changes)."""
        try:
            evaluation = await self._engine.evaluate(artist)
        except Exception as e:
            logger.warning("Re-evaluating health score for %s failed: %s", artist.name, e)
        else:
            artist.health_score = evaluation.health_score
        await self._artist_repo.update(artist)

    @staticmethod
    def _log_result(operation: str, result: RunResult) -> None:
        logger.info(
            "Pipeline %s: %d artists, %d violations, %d/%d fixes succeeded",
            operation,
            result.artists_processed,
            result.violations_found,
            result.fixes_succeeded,
            result.fixes_attempted,
        )
