"""Image fixer: candidate discovery and resolution gating.

Hey future me - this is the one fixer that can say "here are your options" instead of writing
to disk, which is why manual mode works only with it. Two resolution gates protect good images:

1. PRE-download: drop candidates whose DECLARED size is below the rule minimum or smaller
   (by pixel count) than the best image already on disk. 0x0 means "provider didn't say"
   and passes, because fanart.tv and Deezer never declare sizes.
2. POST-download: the same test against the DECODED size. This is what catches a 0x0
   candidate that turns out to be 200x200 before it overwrites a 1500x1500 file.

Provider images are fetched once per (musicbrainz_id, deezer_id) for the lifetime of the
fixer. An artist with thumb_exists + fanart_exists + logo_exists violations costs ONE
provider round-trip, not three. The cache holds tasks, so concurrent callers share the
in-flight call, and a failed call stays failed for this fixer instance.
"""

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable

from catalogaudit.application.services.rules.checkers import RULE_IMAGE_TYPES
from catalogaudit.application.services.rules.fixers import Fixer
from catalogaudit.domain.entities import (
    Artist,
    FixResult,
    ImageCandidate,
    RuleConfig,
    Violation,
)
from catalogaudit.domain.exceptions import ExternalServiceError
from catalogaudit.domain.ports import FetchResult, IMetadataProvider, ImageResult
from catalogaudit.domain.value_objects import DEFAULT_FILE_NAMES, ImageNaming, ImageType
from catalogaudit.infrastructure.imaging import image_processor, image_store
from catalogaudit.infrastructure.integrations.image_download import (
    DEFAULT_MAX_BYTES,
    DEFAULT_TIMEOUT_SECONDS,
    fetch_image_url,
)

logger = logging.getLogger(__name__)

Downloader = Callable[[str], Awaitable[bytes]]

MAX_IMAGE_DIMENSION = 3000


def filter_candidates_by_resolution(
    candidates: list[ImageResult],
    min_width: int,
    min_height: int,
    existing_width: int,
    existing_height: int,
) -> list[ImageResult]:
    """Drop candidates whose declared size is below the minimum or the existing image.

    Candidates with unknown dimensions (0x0) are kept.
    """
    existing_area = existing_width * existing_height
    kept: list[ImageResult] = []
    for candidate in candidates:
        if candidate.width > 0 and candidate.height > 0:
            if (min_width > 0 and candidate.width < min_width) or (
                min_height > 0 and candidate.height < min_height
            ):
                logger.debug(
                    "Skipping candidate %s below configured minimum (%dx%d < %dx%d)",
                    candidate.url,
                    candidate.width,
                    candidate.height,
                    min_width,
                    min_height,
                )
                continue
            if existing_area > 0 and candidate.area < existing_area:
                logger.debug(
                    "Skipping candidate %s below existing resolution (%dx%d < %dx%d)",
                    candidate.url,
                    candidate.width,
                    candidate.height,
                    existing_width,
                    existing_height,
                )
                continue
        kept.append(candidate)
    return kept


def describe_resolution_constraints(
    min_width: int, min_height: int, existing_width: int, existing_height: int
) -> str:
    has_minimum = min_width > 0 or min_height > 0
    has_existing = existing_width > 0 and existing_height > 0
    if has_minimum and has_existing:
        return "minimum and existing image resolution requirements"
    if has_minimum:
        return "minimum resolution requirements"
    if has_existing:
        return "existing image resolution requirements"
    return "resolution requirements"


def _default_downloader() -> Downloader:
    return functools.partial(
        fetch_image_url, max_bytes=DEFAULT_MAX_BYTES, timeout=DEFAULT_TIMEOUT_SECONDS
    )


def _normalize(data: bytes, max_dimension: int, quality: int) -> bytes:
    resized, _fmt = image_processor.resize_to_fit(data, max_dimension, max_dimension, quality)
    return resized


class ImageFixer(Fixer):
    """Fetches missing or low-quality artist images from the metadata provider."""

    def __init__(
        self,
        provider: IMetadataProvider,
        naming: ImageNaming | None = None,
        downloader: Downloader | None = None,
        max_dimension: int = MAX_IMAGE_DIMENSION,
        jpeg_quality: int = image_processor.DEFAULT_JPEG_QUALITY,
    ) -> None:
        self._provider = provider
        self._naming = naming or ImageNaming()
        self._download = downloader or _default_downloader()
        self._max_dimension = max_dimension
        self._jpeg_quality = jpeg_quality
        self._image_cache: dict[tuple[str, str], asyncio.Task[FetchResult]] = {}
        self._cache_lock = asyncio.Lock()

    def can_fix(self, violation: Violation) -> bool:
        return violation.rule_id in RULE_IMAGE_TYPES

    @property
    def supports_candidate_discovery(self) -> bool:
        return True

    async def _fetch_images(self, mbid: str, deezer_id: str) -> FetchResult:
        key = (mbid, deezer_id)
        async with self._cache_lock:
            task = self._image_cache.get(key)
            if task is None:
                provider_ids = {"deezer": deezer_id} if deezer_id else None
                task = asyncio.ensure_future(self._provider.fetch_images(mbid, provider_ids))
                self._image_cache[key] = task
        return await asyncio.shield(task)

    async def fix(self, artist: Artist, violation: Violation) -> FixResult:
        rule_id = violation.rule_id
        if not artist.musicbrainz_id:
            return FixResult(rule_id, False, "no MBID, cannot search image providers")

        image_type = RULE_IMAGE_TYPES.get(rule_id)
        if image_type is None:
            raise ValueError(f"no image type for rule {rule_id}")

        try:
            result = await self._fetch_images(artist.musicbrainz_id, artist.deezer_id)
        except Exception as e:
            raise ExternalServiceError(f"fetching images: {e}") from e

        images = [image for image in result.images if image.type == image_type.value]
        if not images:
            return FixResult(rule_id, False, f"no {image_type.value} images found from providers")
        images.sort(key=lambda image: (-image.likes, -image.area))

        config = violation.config or RuleConfig()
        min_w, min_h = config.min_width, config.min_height
        exist_w, exist_h = (0, 0)
        if artist.path:
            exist_w, exist_h = await asyncio.to_thread(
                image_store.read_existing_image_dimensions,
                artist.path,
                self._naming.lookup_names(image_type),
            )

        images = filter_candidates_by_resolution(images, min_w, min_h, exist_w, exist_h)
        if not images:
            desc = describe_resolution_constraints(min_w, min_h, exist_w, exist_h)
            return FixResult(rule_id, False, f"no {image_type.value} candidates meet {desc}")

        if config.discovery_only:
            return FixResult(
                rule_id,
                False,
                f"found {len(images)} {image_type.value} candidate(s) for user selection",
                candidates=self._to_candidates(images, image_type),
            )
        if len(images) > 1 and not config.select_best_candidate:
            return FixResult(
                rule_id,
                False,
                f"found {len(images)} {image_type.value} candidates; awaiting user selection",
                candidates=self._to_candidates(images, image_type),
            )
        if not artist.path:
            return FixResult(rule_id, False, "artist has no path")

        for image in images:
            saved = await self._try_candidate(
                artist, image, image_type, min_w, min_h, exist_w, exist_h
            )
            if saved:
                artist.set_image_exists(image_type)
                return FixResult(
                    rule_id,
                    True,
                    f"saved {image_type.value} from {image.source} ({', '.join(saved)})",
                )

        return FixResult(rule_id, False, f"all {len(images)} image downloads failed")

    async def _try_candidate(
        self,
        artist: Artist,
        image: ImageResult,
        image_type: ImageType,
        min_w: int,
        min_h: int,
        exist_w: int,
        exist_h: int,
    ) -> list[str]:
        """Download, gate, normalize and save one candidate. Empty list means it was skipped."""
        try:
            data = await self._download(image.url)
        except ExternalServiceError as e:
            logger.debug("Image download failed for %s: %s", image.url, e)
            return []

        if min_w > 0 or min_h > 0 or (exist_w > 0 and exist_h > 0):
            try:
                width, height = await asyncio.to_thread(image_processor.get_dimensions, data)
            except OSError:
                width, height = 0, 0
            if width > 0 and height > 0:
                if (min_w > 0 and width < min_w) or (min_h > 0 and height < min_h):
                    logger.debug(
                        "Skipping %s: actual %dx%d below minimum %dx%d",
                        image.url,
                        width,
                        height,
                        min_w,
                        min_h,
                    )
                    return []
                if exist_w > 0 and exist_h > 0 and width * height < exist_w * exist_h:
                    logger.debug(
                        "Skipping %s: actual %dx%d below existing %dx%d",
                        image.url,
                        width,
                        height,
                        exist_w,
                        exist_h,
                    )
                    return []

        try:
            normalized = await asyncio.to_thread(
                _normalize, data, self._max_dimension, self._jpeg_quality
            )
            names = await asyncio.to_thread(
                image_store.existing_image_file_names,
                artist.path,
                self._naming.lookup_names(image_type),
                self._naming.primary(image_type),
            )
            return await asyncio.to_thread(
                image_store.save_image, artist.path, image_type, normalized, names
            )
        except (OSError, ValueError) as e:
            logger.debug("Could not save %s from %s: %s", image_type.value, image.url, e)
            return []

    @staticmethod
    def _to_candidates(images: list[ImageResult], image_type: ImageType) -> list[ImageCandidate]:
        return [
            ImageCandidate(
                url=image.url,
                width=image.width,
                height=image.height,
                source=image.source,
                image_type=image_type.value,
            )
            for image in images
        ]


async def apply_image_candidate(
    artist: Artist,
    image_type: ImageType,
    url: str,
    file_names: list[str] | tuple[str, ...] | None = None,
    downloader: Downloader | None = None,
    max_dimension: int = MAX_IMAGE_DIMENSION,
) -> list[str]:
    """Download a user-chosen image and save it into the artist folder.

    Only the names already on disk are overwritten; with none on disk the first
    of file_names (every well-known name for the type by default) is written.

    Raises:
        ExternalServiceError: Download failed
        ValueError: Not a supported image, or the artist has no path
        OSError: Could not write the file
    """
    if not artist.path:
        raise ValueError(f"artist {artist.name!r} has no path")
    download = downloader or _default_downloader()
    data = await download(url)
    normalized = await asyncio.to_thread(
        _normalize, data, max_dimension, image_processor.DEFAULT_JPEG_QUALITY
    )
    candidates = list(file_names) if file_names else list(DEFAULT_FILE_NAMES[image_type])
    names = await asyncio.to_thread(
        image_store.existing_image_file_names, artist.path, candidates
    )
    saved = await asyncio.to_thread(
        image_store.save_image, artist.path, image_type, normalized, names
    )
    artist.set_image_exists(image_type)
    logger.info("Applied %s candidate %s for %s", image_type.value, url, artist.name)
    return saved
