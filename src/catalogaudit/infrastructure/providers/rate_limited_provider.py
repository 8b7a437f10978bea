"""Rate-limited metadata provider wrapper."""

import logging

from catalogaudit.domain.exceptions import RateLimitExceededError
from catalogaudit.domain.ports import (
    ArtistSearchResult,
    FetchResult,
    IMetadataProvider,
)
from catalogaudit.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class RateLimitedProvider(IMetadataProvider):
    """Acquire a token from the limiter before every call to the wrapped provider.

    A RateLimitExceededError from the inner provider triggers the limiter's
    backoff and is then re-raised; the caller decides whether to retry.
    """

    def __init__(self, inner: IMetadataProvider, limiter: RateLimiter) -> None:
        self._inner = inner
        self._limiter = limiter

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    async def search(self, name: str) -> list[ArtistSearchResult]:
        async with self._limiter:
            try:
                return await self._inner.search(name)
            except RateLimitExceededError:
                await self._limiter.handle_rate_limit_response()
                raise

    async def fetch_metadata(self, mbid: str, name: str) -> FetchResult:
        async with self._limiter:
            try:
                return await self._inner.fetch_metadata(mbid, name)
            except RateLimitExceededError:
                await self._limiter.handle_rate_limit_response()
                raise

    async def fetch_images(
        self, mbid: str, provider_ids: dict[str, str] | None = None
    ) -> FetchResult:
        async with self._limiter:
            try:
                return await self._inner.fetch_images(mbid, provider_ids)
            except RateLimitExceededError:
                await self._limiter.handle_rate_limit_response()
                raise
