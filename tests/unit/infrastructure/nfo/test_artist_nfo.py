"""Tests for artist.nfo rendering and writing."""

import xml.etree.ElementTree as ET
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from catalogaudit.domain.entities import Artist
from catalogaudit.infrastructure.nfo.artist_nfo import (
    NFO_FILENAME,
    ArtistNfo,
    check_file_conflict,
    render_nfo,
    write_artist_nfo,
)


class TestRenderNfo:
    """Test XML rendering."""

    def test_kodi_element_order_and_empty_fields_skipped(self) -> None:
        nfo = ArtistNfo(
            name="Björk",
            biography="Icelandic singer.",
            musicbrainzartistid="87c5dedd-371d-4a53-9f7f-80522fb7f3cb",
            genre=["electronic", "art pop"],
        )

        xml = render_nfo(nfo)

        assert xml.startswith('<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n')
        root = ET.fromstring(xml.split("\n", 1)[1])
        assert root.tag == "artist"
        assert [child.tag for child in root] == [
            "name",
            "musicbrainzartistid",
            "genre",
            "genre",
            "biography",
        ]
        assert [g.text for g in root.findall("genre")] == ["electronic", "art pop"]

    def test_special_characters_are_escaped(self) -> None:
        xml = render_nfo(ArtistNfo(name="Simon & Garfunkel", biography="<b>duo</b>"))
        root = ET.fromstring(xml.split("\n", 1)[1])
        assert root.findtext("name") == "Simon & Garfunkel"
        assert root.findtext("biography") == "<b>duo</b>"

    def test_from_artist_maps_fields(self) -> None:
        artist = Artist(
            name="Nina Simone",
            sort_name="Simone, Nina",
            audiodb_id="111",
            styles=["soul"],
            born="1933-02-21",
        )
        nfo = ArtistNfo.from_artist(artist)
        assert nfo.sortname == "Simone, Nina"
        assert nfo.audiodbartistid == "111"
        assert nfo.style == ["soul"]
        assert nfo.born == "1933-02-21"


class TestWriteArtistNfo:
    """Test writing artist.nfo into the artist folder."""

    @pytest.mark.asyncio
    async def test_writes_file_and_sets_flag(
        self, artist_dir: Path, make_artist: Callable[..., Artist]
    ) -> None:
        artist = make_artist(biography="A test.")
        before = artist.updated_at

        path = await write_artist_nfo(artist)

        assert path == artist_dir / NFO_FILENAME
        assert "<biography>A test.</biography>" in path.read_text(encoding="utf-8")
        assert artist.nfo_exists is True
        assert artist.updated_at >= before

    @pytest.mark.asyncio
    async def test_previous_content_is_snapshotted(
        self, artist_dir: Path, make_artist: Callable[..., Artist]
    ) -> None:
        (artist_dir / NFO_FILENAME).write_text("<artist><name>old</name></artist>")
        snapshots = AsyncMock()
        artist = make_artist()

        await write_artist_nfo(artist, snapshots)

        snapshots.save.assert_awaited_once_with(artist.id, "<artist><name>old</name></artist>")

    @pytest.mark.asyncio
    async def test_no_snapshot_for_new_file(self, make_artist: Callable[..., Artist]) -> None:
        snapshots = AsyncMock()
        await write_artist_nfo(make_artist(), snapshots)
        snapshots.save.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_artist_without_path_raises(self) -> None:
        with pytest.raises(ValueError, match="has no path"):
            await write_artist_nfo(Artist(name="Nowhere"))


class TestCheckFileConflict:
    """Test external modification detection."""

    def test_missing_file_is_not_a_conflict(self, tmp_path: Path) -> None:
        result = check_file_conflict(tmp_path / NFO_FILENAME, datetime.now(UTC))
        assert result.has_conflict is False
        assert result.last_modified is None

    def test_file_modified_after_since_conflicts(self, tmp_path: Path) -> None:
        nfo = tmp_path / NFO_FILENAME
        nfo.write_text("<artist/>")

        result = check_file_conflict(nfo, datetime.now(UTC) - timedelta(hours=1))

        assert result.has_conflict is True
        assert "modified externally" in result.reason

    def test_file_older_than_since_is_fine(self, tmp_path: Path) -> None:
        nfo = tmp_path / NFO_FILENAME
        nfo.write_text("<artist/>")

        naive_future = datetime.now(UTC).replace(tzinfo=None) + timedelta(hours=1)
        result = check_file_conflict(nfo, naive_future)

        assert result.has_conflict is False
        assert result.last_modified is not None
