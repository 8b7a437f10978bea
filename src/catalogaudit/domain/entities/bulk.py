"""Bulk job entities."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4


class BulkJobType(str, Enum):
    FETCH_METADATA = "fetch_metadata"
    FETCH_IMAGES = "fetch_images"


class BulkJobMode(str, Enum):
    """How aggressively a bulk job assigns identities.

    yolo and prompt_no_match adopt the first provider match, disambiguate
    and manual never pick an identity on their own.
    """

    YOLO = "yolo"
    PROMPT_NO_MATCH = "prompt_no_match"
    DISAMBIGUATE = "disambiguate"
    MANUAL = "manual"


class BulkJobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELED = "canceled"
    FAILED = "failed"


class BulkItemStatus(str, Enum):
    PENDING = "pending"
    FIXED = "fixed"
    SKIPPED = "skipped"
    FAILED = "failed"


_TERMINAL = (BulkJobStatus.COMPLETED, BulkJobStatus.CANCELED, BulkJobStatus.FAILED)


@dataclass
class BulkJob:
    """A batch operation over many artists."""

    type: BulkJobType
    mode: BulkJobMode
    id: str = field(default_factory=lambda: str(uuid4()))
    status: BulkJobStatus = BulkJobStatus.PENDING
    total_items: int = 0
    processed_items: int = 0
    fixed_items: int = 0
    skipped_items: int = 0
    failed_items: int = 0
    error: str = ""
    # Not persisted: explicit targets, empty means every non-excluded artist
    artist_ids: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in _TERMINAL

    def start(self) -> None:
        """Mark job as running."""
        if self.status != BulkJobStatus.PENDING:
            raise ValueError(f"Cannot start bulk job in status {self.status.value}")
        self.status = BulkJobStatus.RUNNING
        self.started_at = datetime.now(UTC)

    def set_total(self, total: int) -> None:
        if total < self.total_items:
            raise ValueError("Bulk job total cannot decrease")
        self.total_items = total

    def record_item(self, status: BulkItemStatus) -> None:
        """Count one processed artist."""
        if self.status != BulkJobStatus.RUNNING:
            raise ValueError(f"Cannot record items for bulk job in status {self.status.value}")
        self.processed_items += 1
        if status == BulkItemStatus.FIXED:
            self.fixed_items += 1
        elif status == BulkItemStatus.SKIPPED:
            self.skipped_items += 1
        elif status == BulkItemStatus.FAILED:
            self.failed_items += 1

    def complete(self) -> None:
        """Mark job as completed."""
        self._finish(BulkJobStatus.COMPLETED)

    def cancel(self) -> None:
        """Mark job as canceled."""
        self._finish(BulkJobStatus.CANCELED)

    def fail(self, error: str) -> None:
        """Mark job as failed."""
        self._finish(BulkJobStatus.FAILED)
        self.error = error

    def _finish(self, status: BulkJobStatus) -> None:
        if self.is_terminal:
            raise ValueError(
                f"Cannot move bulk job from {self.status.value} to {status.value}"
            )
        self.status = status
        self.completed_at = datetime.now(UTC)


@dataclass
class BulkJobItem:
    """Per-artist outcome of a bulk job. Items are append-only."""

    job_id: str
    artist_id: str
    artist_name: str
    status: BulkItemStatus
    message: str = ""
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
