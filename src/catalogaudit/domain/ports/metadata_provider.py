"""Metadata Provider Interface - the single capability the rule engine needs from providers.

Hey future me - the fixers and the bulk executor never talk to MusicBrainz, fanart.tv,
AudioDB & co directly. They ask IMetadataProvider, which in production is an
orchestrator merging every configured source behind per-provider rate limiters.

FLOW:
    MetadataFixer / ImageFixer / BulkExecutor
        │
        └─► IMetadataProvider.search(name)                 -> ArtistSearchResult[]
            IMetadataProvider.fetch_metadata(mbid, name)   -> FetchResult(metadata)
            IMetadataProvider.fetch_images(mbid, ids)      -> FetchResult(images)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

# === Result DTOs ===


@dataclass(frozen=True)
class ArtistSearchResult:
    """A single search hit."""

    name: str
    score: int = 0
    musicbrainz_id: str = ""
    provider_id: str = ""
    sort_name: str = ""
    type: str = ""
    disambiguation: str = ""
    country: str = ""
    source: str = ""


@dataclass
class ArtistMetadata:
    """Merged metadata for one artist."""

    name: str = ""
    musicbrainz_id: str = ""
    audiodb_id: str = ""
    discogs_id: str = ""
    wikidata_id: str = ""
    sort_name: str = ""
    type: str = ""
    gender: str = ""
    disambiguation: str = ""
    biography: str = ""
    genres: list[str] = field(default_factory=list)
    styles: list[str] = field(default_factory=list)
    moods: list[str] = field(default_factory=list)
    years_active: str = ""
    born: str = ""
    formed: str = ""
    died: str = ""
    disbanded: str = ""


@dataclass(frozen=True)
class ImageResult:
    """An image offered by a provider.

    width/height of 0 mean the provider did not declare dimensions.
    type is one of thumb/fanart/logo/banner.
    """

    url: str
    type: str
    likes: int = 0
    width: int = 0
    height: int = 0
    language: str = ""
    source: str = ""

    @property
    def area(self) -> int:
        return self.width * self.height


@dataclass
class FetchResult:
    """Merged result of querying the configured providers."""

    metadata: ArtistMetadata | None = None
    images: list[ImageResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


# === Provider Interface ===


class IMetadataProvider(ABC):
    """Interface for the merged metadata/image source.

    Methods are async because implementations make HTTP calls. Failures
    are raised (ExternalServiceError, RateLimitExceededError), an empty
    answer is not an error.
    """

    @abstractmethod
    async def search(self, name: str) -> list[ArtistSearchResult]:
        """Search artists by name, best matches first."""
        ...

    @abstractmethod
    async def fetch_metadata(self, mbid: str, name: str) -> FetchResult:
        """Fetch merged metadata for an artist."""
        ...

    @abstractmethod
    async def fetch_images(
        self, mbid: str, provider_ids: dict[str, str] | None = None
    ) -> FetchResult:
        """Fetch available images for an artist.

        Args:
            mbid: MusicBrainz artist id
            provider_ids: Extra provider-specific ids, e.g. {"deezer": "27"}
        """
        ...
