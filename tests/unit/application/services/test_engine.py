"""Tests for the rule evaluation engine."""

import asyncio
from collections.abc import Callable
from unittest.mock import AsyncMock

import pytest

from catalogaudit.application.services.rules.checkers import (
    build_checkers,
    check_bio_exists,
    check_fanart_exists,
    check_logo_exists,
    check_nfo_exists,
    check_nfo_has_mbid,
    check_thumb_exists,
    default_rules,
)
from catalogaudit.application.services.rules.engine import (
    CLASSICAL_MODE_KEY,
    Engine,
    get_classical_mode,
)
from catalogaudit.domain.entities import Artist, ClassicalMode, Rule, RuleConfig, Violation
from catalogaudit.domain.entities import rules as r

CORE_CHECKERS = {
    r.RULE_NFO_EXISTS: check_nfo_exists,
    r.RULE_NFO_HAS_MBID: check_nfo_has_mbid,
    r.RULE_THUMB_EXISTS: check_thumb_exists,
    r.RULE_FANART_EXISTS: check_fanart_exists,
    r.RULE_LOGO_EXISTS: check_logo_exists,
    r.RULE_BIO_EXISTS: check_bio_exists,
}


def _rule_repo(rules: list[Rule]) -> AsyncMock:
    repo = AsyncMock()
    repo.list_all.return_value = rules
    return repo


def _enabled(rule_ids: list[str]) -> list[Rule]:
    return [Rule(id=rule_id, name=rule_id) for rule_id in rule_ids]


class TestEngineEvaluate:
    """Test Engine.evaluate."""

    @pytest.mark.asyncio
    async def test_bare_artist_fails_every_core_rule(self) -> None:
        """No NFO, no images, no biography: 6 of 6 core rules fail."""
        engine = Engine(_rule_repo(_enabled(list(CORE_CHECKERS))), checkers=CORE_CHECKERS)

        result = await engine.evaluate(Artist(name="Nobody"))

        assert result.rules_total == 6
        assert len(result.violations) == 6
        assert result.rules_passed == 0
        assert result.health_score == 0.0

    @pytest.mark.asyncio
    async def test_violations_follow_registry_order(self) -> None:
        engine = Engine(_rule_repo(_enabled(list(CORE_CHECKERS))), checkers=CORE_CHECKERS)
        result = await engine.evaluate(Artist(name="Nobody"))
        assert [v.rule_id for v in result.violations] == list(CORE_CHECKERS)

    @pytest.mark.asyncio
    async def test_disabled_and_unknown_rules_do_not_count(self) -> None:
        rules = _enabled([r.RULE_NFO_EXISTS, r.RULE_THUMB_EXISTS])
        rules[1].enabled = False
        engine = Engine(_rule_repo(rules), checkers=CORE_CHECKERS)

        result = await engine.evaluate(Artist(name="Nobody"))

        assert result.rules_total == 1
        assert [v.rule_id for v in result.violations] == [r.RULE_NFO_EXISTS]

    @pytest.mark.asyncio
    async def test_partial_compliance_score(self) -> None:
        engine = Engine(_rule_repo(_enabled(list(CORE_CHECKERS))), checkers=CORE_CHECKERS)
        artist = Artist(
            name="Half",
            nfo_exists=True,
            musicbrainz_id="mbid",
            thumb_exists=True,
        )
        result = await engine.evaluate(artist)
        assert result.rules_passed == 3
        assert result.health_score == 50.0

    @pytest.mark.asyncio
    async def test_no_enabled_rules_is_fully_healthy(self) -> None:
        engine = Engine(_rule_repo([]), checkers=CORE_CHECKERS)
        result = await engine.evaluate(Artist(name="Anyone"))
        assert result.rules_total == 0
        assert result.health_score == 100.0

    @pytest.mark.asyncio
    async def test_violation_gets_rule_config_copy_and_severity(self) -> None:
        def check_blank(artist: Artist, config: RuleConfig) -> Violation | None:
            return Violation("blank", "Blank", "test", "", "always fails", False)

        rule = Rule(id="blank", name="Blank", config=RuleConfig(min_width=7))
        engine = Engine(_rule_repo([rule]), checkers={"blank": check_blank})

        result = await engine.evaluate(Artist(name="X"))

        violation = result.violations[0]
        assert violation.severity == "warning"
        assert violation.config == RuleConfig(min_width=7)
        assert violation.config is not rule.config

    @pytest.mark.asyncio
    async def test_raising_checker_counts_as_passed(self) -> None:
        def check_broken(artist: Artist, config: RuleConfig) -> Violation | None:
            raise RuntimeError("boom")

        engine = Engine(
            _rule_repo(_enabled(["broken", r.RULE_NFO_EXISTS])),
            checkers={"broken": check_broken, r.RULE_NFO_EXISTS: check_nfo_exists},
        )
        result = await engine.evaluate(Artist(name="X"))
        assert result.rules_total == 2
        assert result.rules_passed == 1

    @pytest.mark.asyncio
    async def test_seeded_rules_with_full_registry(
        self, make_artist: Callable[..., Artist]
    ) -> None:
        engine = Engine(_rule_repo(default_rules()), checkers=build_checkers())
        result = await engine.evaluate(make_artist())
        enabled = [rule for rule in default_rules() if rule.enabled]
        assert result.rules_total == len(enabled)


class TestClassicalMode:
    """Classical artists and the stored classical mode."""

    @pytest.mark.asyncio
    async def test_skip_mode_scores_classical_artist_100(self) -> None:
        rule_repo = _rule_repo(_enabled(list(CORE_CHECKERS)))
        engine = Engine(rule_repo, checkers=CORE_CHECKERS)

        result = await engine.evaluate(Artist(name="Bach", is_classical=True))

        assert result.health_score == 100.0
        assert result.rules_total == 0
        rule_repo.list_all.assert_not_called()

    @pytest.mark.asyncio
    async def test_composer_mode_evaluates_classical_artist(self) -> None:
        settings_repo = AsyncMock()
        settings_repo.get_value.return_value = "composer"
        engine = Engine(
            _rule_repo(_enabled(list(CORE_CHECKERS))), settings_repo, checkers=CORE_CHECKERS
        )

        result = await engine.evaluate(Artist(name="Bach", is_classical=True))

        assert result.rules_total == 6
        settings_repo.get_value.assert_awaited_once_with(CLASSICAL_MODE_KEY)

    @pytest.mark.asyncio
    async def test_unknown_stored_mode_falls_back_to_default(self) -> None:
        settings_repo = AsyncMock()
        settings_repo.get_value.return_value = "conductor"
        mode = await get_classical_mode(settings_repo, ClassicalMode.PERFORMER)
        assert mode == ClassicalMode.PERFORMER

    @pytest.mark.asyncio
    async def test_no_settings_repo_uses_default(self) -> None:
        assert await get_classical_mode(None) == ClassicalMode.SKIP


class TestEvaluateAll:
    """Test Engine.evaluate_all stop handling."""

    @pytest.mark.asyncio
    async def test_stops_between_artists(self) -> None:
        stop = asyncio.Event()
        engine = Engine(_rule_repo(_enabled([r.RULE_NFO_EXISTS])), checkers=CORE_CHECKERS)
        engine.evaluate = AsyncMock(  # type: ignore[method-assign]
            side_effect=lambda artist: stop.set()
        )

        results = await engine.evaluate_all([Artist(name="A"), Artist(name="B")], stop)

        assert len(results) == 1
        assert engine.evaluate.await_count == 1  # type: ignore[attr-defined]

    @pytest.mark.asyncio
    async def test_evaluates_everyone_without_stop(self) -> None:
        engine = Engine(_rule_repo(_enabled([r.RULE_NFO_EXISTS])), checkers=CORE_CHECKERS)
        results = await engine.evaluate_all([Artist(name="A"), Artist(name="B")])
        assert [res.artist_name for res in results] == ["A", "B"]
        assert all(res.rules_total == 1 for res in results)
