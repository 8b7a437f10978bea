"""Provider used when no metadata source is configured."""

from catalogaudit.domain.ports import (
    ArtistSearchResult,
    FetchResult,
    IMetadataProvider,
)


class NoopMetadataProvider(IMetadataProvider):
    """Answers every query with nothing.

    Fixers then report "no provider results" instead of failing, which keeps
    the checkers and the inbox usable on an offline install.
    """

    async def search(self, name: str) -> list[ArtistSearchResult]:
        return []

    async def fetch_metadata(self, mbid: str, name: str) -> FetchResult:
        return FetchResult()

    async def fetch_images(
        self, mbid: str, provider_ids: dict[str, str] | None = None
    ) -> FetchResult:
        return FetchResult()
