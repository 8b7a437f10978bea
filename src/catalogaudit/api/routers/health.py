"""Library health endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request

from catalogaudit.api.dependencies import get_rule_service, get_runner
from catalogaudit.api.schemas.rules import HealthSnapshotResponse
from catalogaudit.application.services.rules.rule_service import RuleService
from catalogaudit.application.services.rules.runner import ScopedPipelineRunner

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/status")
async def service_status(request: Request) -> dict[str, object]:
    """Liveness plus the state of the background workers."""
    state = request.app.state
    scheduler = getattr(state, "rule_scheduler", None)
    executor = getattr(state, "bulk_executor", None)
    event_bus = getattr(state, "event_bus", None)
    return {
        "status": "ok",
        "rule_scheduler": scheduler.get_status() if scheduler else None,
        "bulk_executor": executor.get_status() if executor else None,
        "event_bus": event_bus.get_status() if event_bus else None,
    }


@router.post("/snapshot", response_model=HealthSnapshotResponse)
async def record_snapshot(
    runner: ScopedPipelineRunner = Depends(get_runner),
) -> HealthSnapshotResponse:
    """Evaluate the whole library now and record the result."""
    return HealthSnapshotResponse.from_entity(await runner.record_library_health())


@router.get("/history", response_model=list[HealthSnapshotResponse])
async def health_history(
    start: datetime | None = Query(default=None, alias="from"),
    end: datetime | None = Query(default=None, alias="to"),
    service: RuleService = Depends(get_rule_service),
) -> list[HealthSnapshotResponse]:
    """Snapshots oldest first, the last 90 days unless from/to are given."""
    snapshots = await service.get_health_history(start, end)
    return [HealthSnapshotResponse.from_entity(s) for s in snapshots]


@router.get("/latest", response_model=HealthSnapshotResponse | None)
async def latest_snapshot(
    service: RuleService = Depends(get_rule_service),
) -> HealthSnapshotResponse | None:
    snapshot = await service.get_latest_health_snapshot()
    return HealthSnapshotResponse.from_entity(snapshot) if snapshot else None
