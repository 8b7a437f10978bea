"""Per-artist evaluation endpoints."""

from fastapi import APIRouter, Depends

from catalogaudit.api.dependencies import get_runner
from catalogaudit.api.schemas.rules import EvaluationResponse, RunResultResponse
from catalogaudit.application.services.rules.runner import ScopedPipelineRunner

router = APIRouter(prefix="/artists", tags=["artists"])


@router.get("/{artist_id}/health", response_model=EvaluationResponse)
async def evaluate_artist(
    artist_id: str, runner: ScopedPipelineRunner = Depends(get_runner)
) -> EvaluationResponse:
    """Run every enabled rule against one artist (no fixes) and store its score."""
    return EvaluationResponse.from_entity(await runner.evaluate_artist(artist_id))


@router.post("/{artist_id}/run", response_model=RunResultResponse)
async def run_artist(
    artist_id: str, runner: ScopedPipelineRunner = Depends(get_runner)
) -> RunResultResponse:
    """Evaluate one artist and attempt fixes according to each rule's automation mode."""
    return RunResultResponse.from_entity(await runner.run_for_artist(artist_id))
