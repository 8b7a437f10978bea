"""Bulk job endpoints."""

import logging

from fastapi import APIRouter, Depends, Query, Request, status

from catalogaudit.api.dependencies import get_bulk_executor, get_bulk_service
from catalogaudit.api.schemas.rules import (
    BulkJobItemResponse,
    BulkJobRequest,
    BulkJobResponse,
)
from catalogaudit.application.services.rules.bulk_service import BulkService
from catalogaudit.application.workers.bulk_executor import BulkExecutor
from catalogaudit.domain.entities import BulkJobType
from catalogaudit.domain.exceptions import BulkJobConflictError
from catalogaudit.infrastructure.persistence import BulkJobRepository, Database

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bulk", tags=["bulk"])


async def _start_job(
    request: Request,
    job_type: BulkJobType,
    body: BulkJobRequest,
    executor: BulkExecutor,
) -> BulkJobResponse:
    # Refuse before creating a row in the common case of a job already running
    if executor.current_job_id is not None:
        raise BulkJobConflictError(executor.current_job_id)

    # The job row must be committed before the executor's own sessions look for it
    db: Database = request.app.state.db
    async with db.session_scope() as session:
        job = await BulkService(BulkJobRepository(session)).create_job(
            job_type, body.mode, body.artist_ids
        )

    try:
        await executor.start(job)
    except BulkJobConflictError as e:
        # Another request started a job while this row was being created
        job.fail(f"bulk job {e.running_job_id} is already running")
        async with db.session_scope() as session:
            await BulkService(BulkJobRepository(session)).update_job(job)
        logger.info("Bulk job %s not started: %s", job.id, job.error)
        raise
    return BulkJobResponse.from_entity(job)


@router.post(
    "/fetch-metadata", response_model=BulkJobResponse, status_code=status.HTTP_202_ACCEPTED
)
async def start_fetch_metadata(
    request: Request,
    body: BulkJobRequest,
    executor: BulkExecutor = Depends(get_bulk_executor),
) -> BulkJobResponse:
    return await _start_job(request, BulkJobType.FETCH_METADATA, body, executor)


@router.post(
    "/fetch-images", response_model=BulkJobResponse, status_code=status.HTTP_202_ACCEPTED
)
async def start_fetch_images(
    request: Request,
    body: BulkJobRequest,
    executor: BulkExecutor = Depends(get_bulk_executor),
) -> BulkJobResponse:
    return await _start_job(request, BulkJobType.FETCH_IMAGES, body, executor)


@router.get("/jobs", response_model=list[BulkJobResponse])
async def list_jobs(
    limit: int = Query(default=20, ge=1, le=200),
    service: BulkService = Depends(get_bulk_service),
) -> list[BulkJobResponse]:
    return [BulkJobResponse.from_entity(job) for job in await service.list_jobs(limit)]


@router.get("/jobs/{job_id}", response_model=BulkJobResponse)
async def get_job(
    job_id: str, service: BulkService = Depends(get_bulk_service)
) -> BulkJobResponse:
    return BulkJobResponse.from_entity(await service.get_job(job_id))


@router.get("/jobs/{job_id}/items", response_model=list[BulkJobItemResponse])
async def list_job_items(
    job_id: str, service: BulkService = Depends(get_bulk_service)
) -> list[BulkJobItemResponse]:
    return [BulkJobItemResponse.from_entity(item) for item in await service.list_items(job_id)]


@router.post("/cancel")
async def cancel_job(executor: BulkExecutor = Depends(get_bulk_executor)) -> dict[str, str]:
    """Cancel the running job. It stops after the artist it is working on."""
    job_id = await executor.cancel()
    return {"job_id": job_id, "status": "canceling"}
