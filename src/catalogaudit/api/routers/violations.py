"""Violation inbox endpoints."""

from fastapi import APIRouter, Depends, Query

from catalogaudit.api.dependencies import (
    get_app_settings,
    get_inbox_service,
    get_rule_service,
)
from catalogaudit.api.schemas.rules import (
    ApplyCandidateRequest,
    BulkDismissRequest,
    CountResponse,
    ViolationResponse,
)
from catalogaudit.application.services.rules.inbox_service import InboxService
from catalogaudit.application.services.rules.rule_service import RuleService
from catalogaudit.config import Settings

router = APIRouter(prefix="/violations", tags=["violations"])


@router.get("", response_model=list[ViolationResponse])
async def list_violations(
    status: str | None = Query(
        default="active", description='A status, "active" (open + pending_choice) or "all"'
    ),
    service: RuleService = Depends(get_rule_service),
) -> list[ViolationResponse]:
    filter_status = None if status in (None, "", "all") else status
    violations = await service.list_violations(filter_status)
    return [ViolationResponse.from_entity(v) for v in violations]


@router.get("/counts", response_model=dict[str, int])
async def count_violations(service: RuleService = Depends(get_rule_service)) -> dict[str, int]:
    """Active violations per severity."""
    return await service.count_active_by_severity()


@router.post("/bulk-dismiss", response_model=CountResponse)
async def bulk_dismiss(
    body: BulkDismissRequest, service: RuleService = Depends(get_rule_service)
) -> CountResponse:
    return CountResponse(count=await service.bulk_dismiss_violations(body.ids))


@router.delete("/resolved", response_model=CountResponse)
async def clear_resolved(
    days: int | None = Query(default=None, ge=0),
    service: RuleService = Depends(get_rule_service),
    settings: Settings = Depends(get_app_settings),
) -> CountResponse:
    days_old = days if days is not None else settings.rules.clear_resolved_after_days
    return CountResponse(count=await service.clear_resolved_violations(days_old))


@router.get("/{violation_id}", response_model=ViolationResponse)
async def get_violation(
    violation_id: str, service: RuleService = Depends(get_rule_service)
) -> ViolationResponse:
    return ViolationResponse.from_entity(await service.get_violation(violation_id))


@router.post("/{violation_id}/dismiss", response_model=ViolationResponse)
async def dismiss_violation(
    violation_id: str, service: RuleService = Depends(get_rule_service)
) -> ViolationResponse:
    return ViolationResponse.from_entity(await service.dismiss_violation(violation_id))


@router.post("/{violation_id}/resolve", response_model=ViolationResponse)
async def resolve_violation(
    violation_id: str, service: RuleService = Depends(get_rule_service)
) -> ViolationResponse:
    return ViolationResponse.from_entity(await service.resolve_violation(violation_id))


@router.post("/{violation_id}/apply-candidate", response_model=ViolationResponse)
async def apply_candidate(
    violation_id: str,
    body: ApplyCandidateRequest,
    inbox: InboxService = Depends(get_inbox_service),
) -> ViolationResponse:
    """Save a stored image candidate into the artist folder and resolve the violation."""
    violation = await inbox.apply_candidate(violation_id, body.url, body.image_type)
    return ViolationResponse.from_entity(violation)
