"""Bulk job bookkeeping."""

import logging
from collections.abc import Sequence

from catalogaudit.domain.entities import (
    BulkJob,
    BulkJobItem,
    BulkJobMode,
    BulkJobType,
)
from catalogaudit.domain.exceptions import EntityNotFoundException, ValidationException
from catalogaudit.domain.ports import IBulkJobRepository

logger = logging.getLogger(__name__)


class BulkService:
    """Creates and tracks bulk jobs. Running them is the executor's job."""

    def __init__(self, repo: IBulkJobRepository) -> None:
        self._repo = repo

    async def create_job(
        self,
        job_type: str | BulkJobType,
        mode: str | BulkJobMode,
        artist_ids: Sequence[str] | None = None,
    ) -> BulkJob:
        """Create a pending job.

        Raises:
            ValidationException: Unknown type or mode
        """
        try:
            parsed_type = BulkJobType(job_type)
        except ValueError as e:
            raise ValidationException(f"invalid bulk job type {job_type!r}") from e
        try:
            parsed_mode = BulkJobMode(mode)
        except ValueError as e:
            raise ValidationException(f"invalid bulk job mode {mode!r}") from e

        job = BulkJob(type=parsed_type, mode=parsed_mode, artist_ids=list(artist_ids or []))
        await self._repo.add(job)
        logger.info("Created bulk job %s (%s, %s)", job.id, job.type.value, job.mode.value)
        return job

    async def get_job(self, job_id: str) -> BulkJob:
        job = await self._repo.get_by_id(job_id)
        if job is None:
            raise EntityNotFoundException("BulkJob", job_id)
        return job

    async def list_jobs(self, limit: int = 20) -> list[BulkJob]:
        if limit <= 0:
            raise ValidationException("limit must be positive")
        return await self._repo.list_recent(limit)

    async def update_job(self, job: BulkJob) -> None:
        await self._repo.update(job)

    async def add_item(self, item: BulkJobItem) -> None:
        await self._repo.add_item(item)

    async def list_items(self, job_id: str) -> list[BulkJobItem]:
        await self.get_job(job_id)
        return await self._repo.list_items(job_id)
