"""Artist entity."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

from catalogaudit.domain.value_objects.image_naming import ImageType


# Hey future me - the presence flags (nfo_exists, thumb_exists, ...) are the cached view of what is
# on disk in `path`. Checkers trust the flags for "exists" rules and only hit the filesystem for
# dimension/shape rules. Fixers flip the flags after writing, the repository persists them.
@dataclass
class Artist:
    """Artist entity representing one catalog folder."""

    name: str
    id: str = field(default_factory=lambda: str(uuid4()))
    sort_name: str = ""
    type: str = ""
    gender: str = ""
    disambiguation: str = ""
    musicbrainz_id: str = ""
    audiodb_id: str = ""
    discogs_id: str = ""
    wikidata_id: str = ""
    deezer_id: str = ""
    genres: list[str] = field(default_factory=list)
    styles: list[str] = field(default_factory=list)
    moods: list[str] = field(default_factory=list)
    years_active: str = ""
    born: str = ""
    formed: str = ""
    died: str = ""
    disbanded: str = ""
    biography: str = ""
    path: str = ""
    nfo_exists: bool = False
    thumb_exists: bool = False
    fanart_exists: bool = False
    logo_exists: bool = False
    banner_exists: bool = False
    health_score: float = 0.0
    is_excluded: bool = False
    exclusion_reason: str = ""
    is_classical: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        """Validate artist data."""
        if not self.name or not self.name.strip():
            raise ValueError("Artist name cannot be empty")

    def has_image(self, image_type: ImageType) -> bool:
        """Return the cached presence flag for an image type."""
        return bool(getattr(self, f"{image_type.value}_exists"))

    def set_image_exists(self, image_type: ImageType, exists: bool = True) -> None:
        """Update the cached presence flag for an image type."""
        setattr(self, f"{image_type.value}_exists", exists)
        self.touch()

    def touch(self) -> None:
        self.updated_at = datetime.now(UTC)
