"""Tests for the non-image fixers."""

import os
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from io import BytesIO
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from PIL import Image

from catalogaudit.application.services.rules.fixers import (
    ExtraneousImagesFixer,
    LogoTrimFixer,
    MetadataFixer,
    NFOFixer,
)
from catalogaudit.domain.entities import Artist, Violation
from catalogaudit.domain.entities import rules as r
from catalogaudit.domain.ports import (
    ArtistMetadata,
    ArtistSearchResult,
    FetchResult,
    IMetadataProvider,
)
from catalogaudit.infrastructure.imaging import image_processor


def _violation(rule_id: str) -> Violation:
    return Violation(rule_id, rule_id, "test", "error", "failed", True)


def _write_padded_logo(path: Path) -> None:
    img = Image.new("RGBA", (400, 200), (0, 0, 0, 0))
    img.paste((255, 255, 255, 255), (100, 50, 300, 150))
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    path.write_bytes(buffer.getvalue())


@pytest.fixture
def provider() -> AsyncMock:
    return AsyncMock(spec=IMetadataProvider)


class TestNFOFixer:
    """Test artist.nfo creation."""

    def test_handles_only_nfo_exists(self) -> None:
        fixer = NFOFixer()
        assert fixer.can_fix(_violation(r.RULE_NFO_EXISTS))
        assert not fixer.can_fix(_violation(r.RULE_BIO_EXISTS))
        assert fixer.supports_candidate_discovery is False

    @pytest.mark.asyncio
    async def test_creates_nfo(
        self, artist_dir: Path, make_artist: Callable[..., Artist]
    ) -> None:
        artist = make_artist(musicbrainz_id="mbid-1")

        result = await NFOFixer().fix(artist, _violation(r.RULE_NFO_EXISTS))

        assert result.fixed is True
        assert result.message == "created artist.nfo for Test Artist"
        assert artist.nfo_exists is True
        assert "<musicbrainzartistid>mbid-1</musicbrainzartistid>" in (
            artist_dir / "artist.nfo"
        ).read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_refuses_externally_modified_nfo(
        self, artist_dir: Path, make_artist: Callable[..., Artist]
    ) -> None:
        """An NFO newer than the artist row was edited by someone else."""
        (artist_dir / "artist.nfo").write_text("<artist><name>hand edited</name></artist>")
        artist = make_artist(updated_at=datetime.now(UTC) - timedelta(hours=1))

        result = await NFOFixer().fix(artist, _violation(r.RULE_NFO_EXISTS))

        assert result.fixed is False
        assert "NFO conflict" in result.message
        assert "hand edited" in (artist_dir / "artist.nfo").read_text()

    @pytest.mark.asyncio
    async def test_artist_without_path(self) -> None:
        result = await NFOFixer().fix(Artist(name="Nowhere"), _violation(r.RULE_NFO_EXISTS))
        assert result.fixed is False
        assert result.message == "artist has no path"


class TestMetadataFixer:
    """Test MBID and biography filling."""

    @pytest.mark.asyncio
    async def test_mbid_takes_highest_score_with_mbid(
        self, provider: AsyncMock, make_artist: Callable[..., Artist]
    ) -> None:
        provider.search.return_value = [
            ArtistSearchResult(name="Test Artist", score=100),
            ArtistSearchResult(name="Test Artist", score=80, musicbrainz_id="mbid-80"),
            ArtistSearchResult(name="Test Artists", score=95, musicbrainz_id="mbid-95"),
        ]
        artist = make_artist()

        result = await MetadataFixer(provider).fix(artist, _violation(r.RULE_NFO_HAS_MBID))

        assert result.fixed is True
        assert artist.musicbrainz_id == "mbid-95"
        provider.search.assert_awaited_once_with("Test Artist")

    @pytest.mark.asyncio
    async def test_mbid_equal_scores_keep_provider_order(
        self, provider: AsyncMock, make_artist: Callable[..., Artist]
    ) -> None:
        provider.search.return_value = [
            ArtistSearchResult(name="A", score=90, musicbrainz_id="first"),
            ArtistSearchResult(name="B", score=90, musicbrainz_id="second"),
        ]
        artist = make_artist()
        await MetadataFixer(provider).fix(artist, _violation(r.RULE_NFO_HAS_MBID))
        assert artist.musicbrainz_id == "first"

    @pytest.mark.asyncio
    async def test_mbid_not_overwritten(
        self, provider: AsyncMock, make_artist: Callable[..., Artist]
    ) -> None:
        artist = make_artist(musicbrainz_id="kept")

        result = await MetadataFixer(provider).fix(artist, _violation(r.RULE_NFO_HAS_MBID))

        assert result.fixed is False
        assert artist.musicbrainz_id == "kept"
        provider.search.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("results", "message"),
        [
            ([], "no provider results for Test Artist"),
            ([ArtistSearchResult(name="x", score=100)], "no results with MusicBrainz ID found"),
        ],
    )
    async def test_mbid_not_found(
        self,
        provider: AsyncMock,
        make_artist: Callable[..., Artist],
        results: list[ArtistSearchResult],
        message: str,
    ) -> None:
        provider.search.return_value = results
        result = await MetadataFixer(provider).fix(make_artist(), _violation(r.RULE_NFO_HAS_MBID))
        assert result.fixed is False
        assert result.message == message

    @pytest.mark.asyncio
    async def test_bio_rewrites_existing_nfo_with_snapshot(
        self, provider: AsyncMock, artist_dir: Path, make_artist: Callable[..., Artist]
    ) -> None:
        (artist_dir / "artist.nfo").write_text("<artist><name>old</name></artist>")
        provider.fetch_metadata.return_value = FetchResult(
            metadata=ArtistMetadata(biography="Formed in a garage.")
        )
        snapshots = AsyncMock()
        artist = make_artist(musicbrainz_id="mbid-1", nfo_exists=True)

        result = await MetadataFixer(provider, snapshots).fix(
            artist, _violation(r.RULE_BIO_EXISTS)
        )

        assert result.fixed is True
        assert artist.biography == "Formed in a garage."
        provider.fetch_metadata.assert_awaited_once_with("mbid-1", "Test Artist")
        snapshots.save.assert_awaited_once()
        assert "Formed in a garage." in (artist_dir / "artist.nfo").read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_bio_without_nfo_leaves_disk_alone(
        self, provider: AsyncMock, artist_dir: Path, make_artist: Callable[..., Artist]
    ) -> None:
        provider.fetch_metadata.return_value = FetchResult(
            metadata=ArtistMetadata(biography="Formed in a garage.")
        )
        await MetadataFixer(provider).fix(make_artist(), _violation(r.RULE_BIO_EXISTS))
        assert not (artist_dir / "artist.nfo").exists()

    @pytest.mark.asyncio
    async def test_bio_not_found(
        self, provider: AsyncMock, make_artist: Callable[..., Artist]
    ) -> None:
        provider.fetch_metadata.return_value = FetchResult()
        result = await MetadataFixer(provider).fix(make_artist(), _violation(r.RULE_BIO_EXISTS))
        assert result.fixed is False
        assert result.message == "no biography found for Test Artist"

    @pytest.mark.asyncio
    async def test_unsupported_rule_raises(
        self, provider: AsyncMock, make_artist: Callable[..., Artist]
    ) -> None:
        with pytest.raises(ValueError, match="unsupported rule"):
            await MetadataFixer(provider).fix(make_artist(), _violation(r.RULE_THUMB_EXISTS))


class TestExtraneousImagesFixer:
    """Test deletion of non-canonical images."""

    @pytest.mark.asyncio
    async def test_deletes_only_unexpected_images(
        self,
        artist_dir: Path,
        make_artist: Callable[..., Artist],
        write_image: Callable[..., Path],
    ) -> None:
        for name in ("folder.jpg", "fanart.jpg", "cover.jpg", "scan01.png"):
            write_image(name, 10, 10, directory=artist_dir)
        (artist_dir / "notes.txt").write_text("keep me")

        result = await ExtraneousImagesFixer().fix(
            make_artist(), _violation(r.RULE_EXTRANEOUS_IMAGES)
        )

        assert result.fixed is True
        assert result.message.startswith("deleted 2 extraneous file(s)")
        assert sorted(os.listdir(artist_dir)) == ["fanart.jpg", "folder.jpg", "notes.txt"]

    @pytest.mark.asyncio
    async def test_nothing_to_delete(
        self,
        artist_dir: Path,
        make_artist: Callable[..., Artist],
        write_image: Callable[..., Path],
    ) -> None:
        write_image("folder.jpg", 10, 10, directory=artist_dir)
        result = await ExtraneousImagesFixer().fix(
            make_artist(), _violation(r.RULE_EXTRANEOUS_IMAGES)
        )
        assert result.fixed is False
        assert result.message == "no extraneous files to delete"


class TestLogoTrimFixer:
    """Test logo padding removal."""

    @pytest.mark.asyncio
    async def test_trims_logo_in_place(
        self, artist_dir: Path, make_artist: Callable[..., Artist]
    ) -> None:
        _write_padded_logo(artist_dir / "logo.png")

        result = await LogoTrimFixer().fix(
            make_artist(logo_exists=True), _violation(r.RULE_LOGO_TRIMMABLE)
        )

        assert result.fixed is True
        assert result.message == "trimmed logo from 400x200 to 200x100"
        data = (artist_dir / "logo.png").read_bytes()
        assert image_processor.get_dimensions(data) == (200, 100)
        assert os.listdir(artist_dir) == ["logo.png"]

    @pytest.mark.asyncio
    async def test_no_png_logo(self, make_artist: Callable[..., Artist]) -> None:
        result = await LogoTrimFixer().fix(
            make_artist(logo_exists=True), _violation(r.RULE_LOGO_TRIMMABLE)
        )
        assert result.fixed is False
        assert result.message == "no logo file found on disk"
