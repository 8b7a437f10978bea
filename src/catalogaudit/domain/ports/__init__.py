"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from datetime import datetime

from catalogaudit.domain.entities import (
    Artist,
    BulkJob,
    BulkJobItem,
    Event,
    HealthSnapshot,
    Rule,
    RuleViolation,
    ViolationStatus,
)
from catalogaudit.domain.ports.metadata_provider import (
    ArtistMetadata,
    ArtistSearchResult,
    FetchResult,
    IMetadataProvider,
    ImageResult,
)


class IArtistRepository(ABC):
    """Repository interface for Artist entities."""

    @abstractmethod
    async def add(self, artist: Artist) -> None:
        """Add a new artist."""
        pass

    @abstractmethod
    async def get_by_id(self, artist_id: str) -> Artist | None:
        """Get an artist by ID."""
        pass

    @abstractmethod
    async def update(self, artist: Artist) -> None:
        """Update an existing artist."""
        pass

    @abstractmethod
    async def list_artists(
        self,
        offset: int = 0,
        limit: int = 200,
        sort: str = "name",
        include_excluded: bool = True,
    ) -> list[Artist]:
        """List artists page by page in a stable order."""
        pass

    @abstractmethod
    async def list_by_ids(self, artist_ids: list[str]) -> list[Artist]:
        """Get several artists, sorted by name. Unknown ids are ignored."""
        pass


class IRuleRepository(ABC):
    """Repository interface for Rule entities."""

    @abstractmethod
    async def list_all(self) -> list[Rule]:
        """List all rules ordered by category, then name."""
        pass

    @abstractmethod
    async def get_by_id(self, rule_id: str) -> Rule | None:
        """Get a rule by ID."""
        pass

    @abstractmethod
    async def update(self, rule: Rule) -> None:
        """Persist enabled, automation_mode and config of a rule."""
        pass

    @abstractmethod
    async def seed(self, rule: Rule) -> None:
        """Insert a built-in rule, or refresh only name/description if it exists."""
        pass


class IViolationRepository(ABC):
    """Repository interface for persisted rule violations."""

    @abstractmethod
    async def upsert(self, violation: RuleViolation) -> None:
        """Insert or overwrite the row keyed by (rule_id, artist_id)."""
        pass

    @abstractmethod
    async def get_by_id(self, violation_id: str) -> RuleViolation | None:
        pass

    @abstractmethod
    async def list_by_status(self, status: str | None = None) -> list[RuleViolation]:
        """List violations, newest first.

        status is a ViolationStatus value, "active" (open + pending_choice)
        or None for everything.
        """
        pass

    @abstractmethod
    async def set_status(
        self, violation_id: str, status: ViolationStatus
    ) -> RuleViolation | None:
        """Move a violation to dismissed/resolved. Returns None if it does not exist."""
        pass

    @abstractmethod
    async def bulk_dismiss(self, violation_ids: list[str] | None = None) -> int:
        """Dismiss the given active violations (all active ones when None)."""
        pass

    @abstractmethod
    async def count_active_by_severity(self) -> dict[str, int]:
        pass

    @abstractmethod
    async def clear_resolved(self, older_than: datetime) -> int:
        """Delete resolved violations resolved before the cutoff."""
        pass


class IBulkJobRepository(ABC):
    """Repository interface for bulk jobs and their items."""

    @abstractmethod
    async def add(self, job: BulkJob) -> None:
        pass

    @abstractmethod
    async def update(self, job: BulkJob) -> None:
        pass

    @abstractmethod
    async def get_by_id(self, job_id: str) -> BulkJob | None:
        pass

    @abstractmethod
    async def list_recent(self, limit: int = 20) -> list[BulkJob]:
        pass

    @abstractmethod
    async def add_item(self, item: BulkJobItem) -> None:
        pass

    @abstractmethod
    async def list_items(self, job_id: str) -> list[BulkJobItem]:
        pass


class IHealthSnapshotRepository(ABC):
    """Repository interface for library health history."""

    @abstractmethod
    async def add(self, snapshot: HealthSnapshot) -> None:
        pass

    @abstractmethod
    async def list_between(self, start: datetime, end: datetime) -> list[HealthSnapshot]:
        """Snapshots recorded in [start, end], oldest first."""
        pass

    @abstractmethod
    async def latest(self) -> HealthSnapshot | None:
        pass


class INfoSnapshotRepository(ABC):
    """Keeps previous artist.nfo contents before they are overwritten."""

    @abstractmethod
    async def save(self, artist_id: str, content: str) -> None:
        pass

    @abstractmethod
    async def list_for_artist(self, artist_id: str) -> list[str]:
        """Previous contents, newest first."""
        pass


class IAppSettingsRepository(ABC):
    """Key/value runtime settings."""

    @abstractmethod
    async def get_value(self, key: str) -> str | None:
        pass

    @abstractmethod
    async def set_value(self, key: str, value: str) -> None:
        pass


class IEventPublisher(ABC):
    """Publishes application events. Must never block the caller."""

    @abstractmethod
    def publish(self, event: Event) -> None:
        pass


__all__ = [
    "ArtistMetadata",
    "ArtistSearchResult",
    "FetchResult",
    "IAppSettingsRepository",
    "IArtistRepository",
    "IBulkJobRepository",
    "IEventPublisher",
    "IHealthSnapshotRepository",
    "IMetadataProvider",
    "INfoSnapshotRepository",
    "IRuleRepository",
    "IViolationRepository",
    "ImageResult",
]
