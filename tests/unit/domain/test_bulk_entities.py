"""Tests for BulkJob state transitions."""

import pytest

from catalogaudit.domain.entities import (
    BulkItemStatus,
    BulkJob,
    BulkJobMode,
    BulkJobStatus,
    BulkJobType,
)


@pytest.fixture
def job() -> BulkJob:
    return BulkJob(type=BulkJobType.FETCH_METADATA, mode=BulkJobMode.YOLO)


class TestBulkJob:
    """Test BulkJob lifecycle."""

    def test_new_job_is_pending(self, job: BulkJob) -> None:
        assert job.status == BulkJobStatus.PENDING
        assert not job.is_terminal

    def test_start_then_complete(self, job: BulkJob) -> None:
        job.start()
        assert job.status == BulkJobStatus.RUNNING
        assert job.started_at is not None
        job.complete()
        assert job.status == BulkJobStatus.COMPLETED
        assert job.is_terminal
        assert job.completed_at is not None

    def test_cannot_start_twice(self, job: BulkJob) -> None:
        job.start()
        with pytest.raises(ValueError, match="Cannot start"):
            job.start()

    def test_record_item_counts_by_status(self, job: BulkJob) -> None:
        job.start()
        job.record_item(BulkItemStatus.FIXED)
        job.record_item(BulkItemStatus.SKIPPED)
        job.record_item(BulkItemStatus.SKIPPED)
        job.record_item(BulkItemStatus.FAILED)
        assert job.processed_items == 4
        assert (job.fixed_items, job.skipped_items, job.failed_items) == (1, 2, 1)

    def test_record_item_requires_running(self, job: BulkJob) -> None:
        with pytest.raises(ValueError, match="Cannot record items"):
            job.record_item(BulkItemStatus.FIXED)

    def test_total_never_decreases(self, job: BulkJob) -> None:
        job.set_total(10)
        with pytest.raises(ValueError, match="cannot decrease"):
            job.set_total(5)

    def test_fail_keeps_error(self, job: BulkJob) -> None:
        job.start()
        job.fail("listing artists: disk I/O error")
        assert job.status == BulkJobStatus.FAILED
        assert job.error == "listing artists: disk I/O error"

    def test_terminal_job_cannot_change(self, job: BulkJob) -> None:
        job.start()
        job.cancel()
        with pytest.raises(ValueError, match="Cannot move bulk job"):
            job.complete()
