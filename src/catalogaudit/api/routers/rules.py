"""Rule configuration and pipeline run endpoints."""

import logging

from fastapi import APIRouter, Depends

from catalogaudit.api.dependencies import get_rule_service, get_runner
from catalogaudit.api.schemas.rules import (
    ClassicalModeBody,
    RuleResponse,
    RuleUpdateRequest,
    RunResultResponse,
)
from catalogaudit.application.services.rules.rule_service import RuleService
from catalogaudit.application.services.rules.runner import ScopedPipelineRunner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rules", tags=["rules"])


@router.get("", response_model=list[RuleResponse])
async def list_rules(service: RuleService = Depends(get_rule_service)) -> list[RuleResponse]:
    return [RuleResponse.from_entity(rule) for rule in await service.list_rules()]


# Static paths before /{rule_id}, or "run-all" is taken for a rule id
@router.post("/run-all", response_model=RunResultResponse)
async def run_all_rules(
    runner: ScopedPipelineRunner = Depends(get_runner),
) -> RunResultResponse:
    """Evaluate all artists against all enabled rules and attempt fixes."""
    return RunResultResponse.from_entity(await runner.run_all())


@router.get("/classical-mode", response_model=ClassicalModeBody)
async def get_classical_mode(
    service: RuleService = Depends(get_rule_service),
) -> ClassicalModeBody:
    mode = await service.get_classical_mode()
    return ClassicalModeBody(mode=mode.value)


@router.put("/classical-mode", response_model=ClassicalModeBody)
async def set_classical_mode(
    body: ClassicalModeBody,
    service: RuleService = Depends(get_rule_service),
) -> ClassicalModeBody:
    mode = await service.set_classical_mode(body.mode)
    logger.info("Classical mode set to %s", mode.value)
    return ClassicalModeBody(mode=mode.value)


@router.get("/{rule_id}", response_model=RuleResponse)
async def get_rule(
    rule_id: str, service: RuleService = Depends(get_rule_service)
) -> RuleResponse:
    return RuleResponse.from_entity(await service.get_rule(rule_id))


@router.patch("/{rule_id}", response_model=RuleResponse)
async def update_rule(
    rule_id: str,
    body: RuleUpdateRequest,
    service: RuleService = Depends(get_rule_service),
) -> RuleResponse:
    rule = await service.update_rule(
        rule_id,
        enabled=body.enabled,
        automation_mode=body.automation_mode,
        config=body.config.to_entity() if body.config else None,
    )
    return RuleResponse.from_entity(rule)


@router.post("/{rule_id}/run", response_model=RunResultResponse)
async def run_rule(
    rule_id: str, runner: ScopedPipelineRunner = Depends(get_runner)
) -> RunResultResponse:
    """Evaluate all artists against one rule and attempt fixes."""
    return RunResultResponse.from_entity(await runner.run_rule(rule_id))
