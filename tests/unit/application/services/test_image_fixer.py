"""Tests for the image fixer and its resolution gates."""

import asyncio
import os
from collections.abc import Callable
from io import BytesIO
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from PIL import Image

from catalogaudit.application.services.rules.image_fixer import (
    ImageFixer,
    apply_image_candidate,
    describe_resolution_constraints,
    filter_candidates_by_resolution,
)
from catalogaudit.domain.entities import Artist, RuleConfig, Violation
from catalogaudit.domain.entities import rules as r
from catalogaudit.domain.exceptions import ExternalServiceError
from catalogaudit.domain.ports import FetchResult, ImageResult
from catalogaudit.domain.value_objects import ImageNaming, ImageType
from catalogaudit.infrastructure.imaging import image_processor


def image_bytes(width: int, height: int) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (width, height), "navy").save(buffer, format="JPEG")
    return buffer.getvalue()


def _thumb_violation(**config: object) -> Violation:
    return Violation(
        rule_id=r.RULE_THUMB_EXISTS,
        rule_name="Thumbnail image exists",
        category="image",
        severity="error",
        message="no thumbnail",
        fixable=True,
        config=RuleConfig(**config),  # type: ignore[arg-type]
    )


def _provider(*images: ImageResult) -> AsyncMock:
    provider = AsyncMock()
    provider.fetch_images.return_value = FetchResult(images=list(images))
    return provider


def _thumb(url: str, width: int = 0, height: int = 0, likes: int = 0) -> ImageResult:
    return ImageResult(
        url=url, type="thumb", likes=likes, width=width, height=height, source="fanarttv"
    )


class TestFilterCandidatesByResolution:
    """Pre-download gate on declared dimensions."""

    def test_drops_below_minimum_keeps_unknown_and_large(self) -> None:
        candidates = [
            _thumb("https://img/small.jpg", 800, 800),
            _thumb("https://img/unknown.jpg"),
            _thumb("https://img/large.jpg", 1200, 1200),
        ]

        kept = filter_candidates_by_resolution(candidates, 1000, 1000, 900, 900)

        assert [c.url for c in kept] == ["https://img/unknown.jpg", "https://img/large.jpg"]

    def test_drops_smaller_than_existing_by_area(self) -> None:
        candidates = [
            _thumb("https://img/a.jpg", 1000, 1000),
            _thumb("https://img/b.jpg", 2000, 600),
        ]
        kept = filter_candidates_by_resolution(candidates, 0, 0, 1100, 1100)
        assert kept == []

    def test_no_constraints_keeps_everything(self) -> None:
        candidates = [_thumb("https://img/a.jpg", 10, 10)]
        assert filter_candidates_by_resolution(candidates, 0, 0, 0, 0) == candidates

    @pytest.mark.parametrize(
        ("args", "expected"),
        [
            ((1000, 0, 500, 500), "minimum and existing image resolution requirements"),
            ((1000, 1000, 0, 0), "minimum resolution requirements"),
            ((0, 0, 500, 500), "existing image resolution requirements"),
            ((0, 0, 0, 0), "resolution requirements"),
        ],
    )
    def test_describe_constraints(self, args: tuple[int, int, int, int], expected: str) -> None:
        assert describe_resolution_constraints(*args) == expected


class TestImageFixer:
    """Test ImageFixer.fix."""

    @pytest.mark.asyncio
    async def test_without_mbid_does_not_search(self, make_artist: Callable[..., Artist]) -> None:
        provider = _provider()
        fixer = ImageFixer(provider)

        result = await fixer.fix(make_artist(), _thumb_violation())

        assert not result.fixed
        assert result.message == "no MBID, cannot search image providers"
        provider.fetch_images.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_saves_single_candidate(
        self, make_artist: Callable[..., Artist], artist_dir: Path
    ) -> None:
        provider = _provider(_thumb("https://img/one.jpg"))
        downloader = AsyncMock(return_value=image_bytes(600, 600))
        fixer = ImageFixer(provider, downloader=downloader)
        artist = make_artist(musicbrainz_id="mbid-1")

        result = await fixer.fix(artist, _thumb_violation())

        assert result.fixed
        assert (artist_dir / "folder.jpg").exists()
        assert artist.thumb_exists
        downloader.assert_awaited_once_with("https://img/one.jpg")

    @pytest.mark.asyncio
    async def test_post_download_gate_keeps_better_existing_image(
        self,
        make_artist: Callable[..., Artist],
        artist_dir: Path,
        write_image: Callable[..., Path],
    ) -> None:
        """A 0x0 candidate that decodes to 200x200 must not overwrite a 1500x1500 file."""
        existing = write_image("folder.jpg", 1500, 1500, directory=artist_dir)
        original = existing.read_bytes()
        provider = _provider(_thumb("https://img/tiny.jpg"))
        fixer = ImageFixer(provider, downloader=AsyncMock(return_value=image_bytes(200, 200)))

        result = await fixer.fix(make_artist(musicbrainz_id="mbid-1"), _thumb_violation())

        assert not result.fixed
        assert result.message == "all 1 image downloads failed"
        assert existing.read_bytes() == original
        assert image_processor.get_file_dimensions(existing) == (1500, 1500)

    @pytest.mark.asyncio
    async def test_gate_sees_existing_image_in_other_format(
        self,
        make_artist: Callable[..., Artist],
        artist_dir: Path,
        write_image: Callable[..., Path],
    ) -> None:
        """folder.png counts as the existing thumb even when the profile only names folder.jpg."""
        existing = write_image("folder.png", 1500, 1400, directory=artist_dir)
        original = existing.read_bytes()
        provider = _provider(_thumb("https://img/tiny.jpg"))
        fixer = ImageFixer(
            provider,
            naming=ImageNaming.for_profile("emby"),
            downloader=AsyncMock(return_value=image_bytes(200, 200)),
        )
        violation = _thumb_violation()
        violation.rule_id = r.RULE_THUMB_SQUARE

        result = await fixer.fix(make_artist(musicbrainz_id="mbid-1", thumb_exists=True), violation)

        assert not result.fixed
        assert os.listdir(artist_dir) == ["folder.png"]
        assert existing.read_bytes() == original

    @pytest.mark.asyncio
    async def test_gate_sees_existing_image_with_other_case(
        self,
        make_artist: Callable[..., Artist],
        artist_dir: Path,
        write_image: Callable[..., Path],
    ) -> None:
        existing = write_image("Folder.jpg", 1500, 1500, directory=artist_dir)
        provider = _provider(_thumb("https://img/tiny.jpg"))
        fixer = ImageFixer(provider, downloader=AsyncMock(return_value=image_bytes(200, 200)))

        result = await fixer.fix(make_artist(musicbrainz_id="mbid-1"), _thumb_violation())

        assert not result.fixed
        assert os.listdir(artist_dir) == ["Folder.jpg"]
        assert image_processor.get_file_dimensions(existing) == (1500, 1500)

    @pytest.mark.asyncio
    async def test_upgrade_overwrites_the_file_on_disk(
        self,
        make_artist: Callable[..., Artist],
        artist_dir: Path,
        write_image: Callable[..., Path],
    ) -> None:
        """A better image replaces Folder.jpg in place instead of adding folder.jpg."""
        existing = write_image("Folder.jpg", 300, 300, directory=artist_dir)
        provider = _provider(_thumb("https://img/big.jpg"))
        fixer = ImageFixer(provider, downloader=AsyncMock(return_value=image_bytes(600, 600)))

        result = await fixer.fix(make_artist(musicbrainz_id="mbid-1"), _thumb_violation())

        assert result.fixed
        assert result.message == "saved thumb from fanarttv (Folder.jpg)"
        assert os.listdir(artist_dir) == ["Folder.jpg"]
        assert image_processor.get_file_dimensions(existing) == (600, 600)

    @pytest.mark.asyncio
    async def test_all_candidates_filtered_reports_constraints(
        self, make_artist: Callable[..., Artist]
    ) -> None:
        provider = _provider(_thumb("https://img/small.jpg", 300, 300))
        fixer = ImageFixer(provider, downloader=AsyncMock())

        result = await fixer.fix(
            make_artist(musicbrainz_id="mbid-1"), _thumb_violation(min_width=1000, min_height=1000)
        )

        assert result.message == "no thumb candidates meet minimum resolution requirements"

    @pytest.mark.asyncio
    async def test_discovery_only_returns_candidates_without_download(
        self, make_artist: Callable[..., Artist], artist_dir: Path
    ) -> None:
        provider = _provider(
            _thumb("https://img/a.jpg", 1000, 1000, likes=1),
            _thumb("https://img/b.jpg", 1200, 1200, likes=5),
        )
        downloader = AsyncMock()
        fixer = ImageFixer(provider, downloader=downloader)

        result = await fixer.fix(
            make_artist(musicbrainz_id="mbid-1"), _thumb_violation(discovery_only=True)
        )

        assert not result.fixed
        # most liked first
        assert [c.url for c in result.candidates] == ["https://img/b.jpg", "https://img/a.jpg"]
        assert all(c.image_type == "thumb" for c in result.candidates)
        downloader.assert_not_awaited()
        assert list(artist_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_several_candidates_await_selection(
        self, make_artist: Callable[..., Artist]
    ) -> None:
        provider = _provider(_thumb("https://img/a.jpg"), _thumb("https://img/b.jpg"))
        fixer = ImageFixer(provider, downloader=AsyncMock())

        result = await fixer.fix(make_artist(musicbrainz_id="mbid-1"), _thumb_violation())

        assert len(result.candidates) == 2
        assert "awaiting user selection" in result.message

    @pytest.mark.asyncio
    async def test_select_best_falls_through_failed_downloads(
        self, make_artist: Callable[..., Artist], artist_dir: Path
    ) -> None:
        provider = _provider(
            _thumb("https://img/broken.jpg", likes=9), _thumb("https://img/ok.jpg", likes=1)
        )
        downloader = AsyncMock(
            side_effect=[ExternalServiceError("HTTP 404"), image_bytes(500, 500)]
        )
        fixer = ImageFixer(provider, downloader=downloader)

        result = await fixer.fix(
            make_artist(musicbrainz_id="mbid-1"), _thumb_violation(select_best_candidate=True)
        )

        assert result.fixed
        assert downloader.await_count == 2
        assert (artist_dir / "folder.jpg").exists()

    @pytest.mark.asyncio
    async def test_provider_called_once_per_artist(
        self, make_artist: Callable[..., Artist]
    ) -> None:
        provider = _provider()
        fixer = ImageFixer(provider, downloader=AsyncMock())
        artist = make_artist(musicbrainz_id="mbid-1", deezer_id="27")

        for rule_id in (r.RULE_THUMB_EXISTS, r.RULE_FANART_EXISTS, r.RULE_LOGO_EXISTS):
            violation = _thumb_violation()
            violation.rule_id = rule_id
            await fixer.fix(artist, violation)

        provider.fetch_images.assert_awaited_once_with("mbid-1", {"deezer": "27"})

    @pytest.mark.asyncio
    async def test_concurrent_fixes_share_one_provider_call(
        self, make_artist: Callable[..., Artist]
    ) -> None:
        release = asyncio.Event()

        async def slow_fetch(mbid: str, provider_ids: dict[str, str] | None) -> FetchResult:
            await release.wait()
            return FetchResult()

        provider = AsyncMock()
        provider.fetch_images.side_effect = slow_fetch
        fixer = ImageFixer(provider, downloader=AsyncMock())
        artist = make_artist(musicbrainz_id="mbid-1")

        violations = []
        for rule_id in (r.RULE_THUMB_EXISTS, r.RULE_FANART_EXISTS, r.RULE_LOGO_EXISTS):
            violation = _thumb_violation()
            violation.rule_id = rule_id
            violations.append(violation)
        pending = asyncio.gather(*(fixer.fix(artist, v) for v in violations))
        # let all three callers reach the shared in-flight call
        for _ in range(10):
            await asyncio.sleep(0)
        release.set()
        results = await pending

        assert provider.fetch_images.await_count == 1
        assert [res.message for res in results] == [
            "no thumb images found from providers",
            "no fanart images found from providers",
            "no logo images found from providers",
        ]

    @pytest.mark.asyncio
    async def test_cached_failure_is_raised_for_every_caller(
        self, make_artist: Callable[..., Artist]
    ) -> None:
        provider = AsyncMock()
        provider.fetch_images.side_effect = [RuntimeError("read timed out"), FetchResult()]
        fixer = ImageFixer(provider, downloader=AsyncMock())
        artist = make_artist(musicbrainz_id="mbid-1")

        for _ in range(2):
            with pytest.raises(ExternalServiceError, match="read timed out"):
                await fixer.fix(artist, _thumb_violation())

        provider.fetch_images.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_provider_failure_raises_external_error(
        self, make_artist: Callable[..., Artist]
    ) -> None:
        provider = AsyncMock()
        provider.fetch_images.side_effect = RuntimeError("connection reset")
        fixer = ImageFixer(provider, downloader=AsyncMock())

        with pytest.raises(ExternalServiceError, match="connection reset"):
            await fixer.fix(make_artist(musicbrainz_id="mbid-1"), _thumb_violation())

    def test_handles_only_image_rules(self) -> None:
        fixer = ImageFixer(_provider())
        assert fixer.supports_candidate_discovery
        assert fixer.can_fix(_thumb_violation())
        nfo = _thumb_violation()
        nfo.rule_id = r.RULE_NFO_EXISTS
        assert not fixer.can_fix(nfo)


class TestApplyImageCandidate:
    """Saving a user-chosen candidate."""

    @pytest.mark.asyncio
    async def test_saves_under_given_names(
        self, make_artist: Callable[..., Artist], artist_dir: Path
    ) -> None:
        artist = make_artist()
        downloader = AsyncMock(return_value=image_bytes(800, 450))

        saved = await apply_image_candidate(
            artist,
            ImageType.FANART,
            "https://img/fanart.jpg",
            file_names=["backdrop.jpg"],
            downloader=downloader,
        )

        assert saved == ["backdrop.jpg"]
        assert (artist_dir / "backdrop.jpg").exists()
        assert artist.fanart_exists

    @pytest.mark.asyncio
    async def test_requires_path(self) -> None:
        with pytest.raises(ValueError, match="has no path"):
            await apply_image_candidate(
                Artist(name="Nowhere"), ImageType.THUMB, "https://img/a.jpg", downloader=AsyncMock()
            )
