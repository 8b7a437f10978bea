"""Kodi-compatible artist.nfo rendering and writing.

Hey future me - media servers (Kodi, Emby, Jellyfin) all read the same artist.nfo layout, and
Kodi is picky about element ORDER. render_nfo() always writes the fields in Kodi's order and
skips empty ones. Before any overwrite, the previous file content goes into the NFO snapshot
table so a bad metadata fix can be undone by hand.
"""

import asyncio
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from catalogaudit.domain.entities import Artist
from catalogaudit.domain.ports import INfoSnapshotRepository
from catalogaudit.infrastructure.filesystem import write_file_atomic

logger = logging.getLogger(__name__)

NFO_FILENAME = "artist.nfo"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'


@dataclass
class ArtistNfo:
    """The fields of an artist.nfo document."""

    name: str = ""
    sortname: str = ""
    type: str = ""
    gender: str = ""
    disambiguation: str = ""
    musicbrainzartistid: str = ""
    audiodbartistid: str = ""
    discogsartistid: str = ""
    wikidataid: str = ""
    deezerartistid: str = ""
    genre: list[str] = field(default_factory=list)
    style: list[str] = field(default_factory=list)
    mood: list[str] = field(default_factory=list)
    yearsactive: str = ""
    born: str = ""
    formed: str = ""
    died: str = ""
    disbanded: str = ""
    biography: str = ""

    @classmethod
    def from_artist(cls, artist: Artist) -> "ArtistNfo":
        return cls(
            name=artist.name,
            sortname=artist.sort_name,
            type=artist.type,
            gender=artist.gender,
            disambiguation=artist.disambiguation,
            musicbrainzartistid=artist.musicbrainz_id,
            audiodbartistid=artist.audiodb_id,
            discogsartistid=artist.discogs_id,
            wikidataid=artist.wikidata_id,
            deezerartistid=artist.deezer_id,
            genre=list(artist.genres),
            style=list(artist.styles),
            mood=list(artist.moods),
            yearsactive=artist.years_active,
            born=artist.born,
            formed=artist.formed,
            died=artist.died,
            disbanded=artist.disbanded,
            biography=artist.biography,
        )


# Kodi element order
_ELEMENT_ORDER = (
    "name",
    "sortname",
    "type",
    "gender",
    "disambiguation",
    "musicbrainzartistid",
    "audiodbartistid",
    "discogsartistid",
    "wikidataid",
    "deezerartistid",
    "genre",
    "style",
    "mood",
    "yearsactive",
    "born",
    "formed",
    "died",
    "disbanded",
    "biography",
)


def render_nfo(nfo: ArtistNfo) -> str:
    """Serialize to XML with a declaration. Empty fields produce no element."""
    root = ET.Element("artist")
    for tag in _ELEMENT_ORDER:
        value = getattr(nfo, tag)
        values = value if isinstance(value, list) else [value]
        for item in values:
            if item:
                ET.SubElement(root, tag).text = item
    ET.indent(root, space="  ")
    return XML_DECLARATION + ET.tostring(root, encoding="unicode") + "\n"


@dataclass
class ConflictCheck:
    has_conflict: bool
    reason: str = ""
    last_modified: datetime | None = None


def check_file_conflict(nfo_path: str | Path, since: datetime) -> ConflictCheck:
    """Detect an NFO modified by someone else after `since`.

    A missing file is never a conflict.
    """
    try:
        mtime = Path(nfo_path).stat().st_mtime
    except OSError:
        return ConflictCheck(has_conflict=False)

    modified = datetime.fromtimestamp(mtime, tz=UTC)
    if since.tzinfo is None:
        since = since.replace(tzinfo=UTC)
    if modified > since:
        return ConflictCheck(
            has_conflict=True,
            reason="file modified externally since last write",
            last_modified=modified,
        )
    return ConflictCheck(has_conflict=False, last_modified=modified)


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return None


async def write_artist_nfo(
    artist: Artist, snapshot_repo: INfoSnapshotRepository | None = None
) -> Path:
    """Write artist.nfo into the artist folder and set artist.nfo_exists.

    The previous content, if any, is saved through snapshot_repo first.

    Raises:
        ValueError: If the artist has no path
        OSError: If the file cannot be written
    """
    if not artist.path:
        raise ValueError(f"artist {artist.name!r} has no path")

    nfo_path = Path(artist.path) / NFO_FILENAME
    if snapshot_repo is not None:
        previous = await asyncio.to_thread(_read_text, nfo_path)
        if previous:
            await snapshot_repo.save(artist.id, previous)

    content = render_nfo(ArtistNfo.from_artist(artist))
    await asyncio.to_thread(write_file_atomic, nfo_path, content)
    artist.nfo_exists = True
    artist.touch()
    logger.info("Wrote %s for artist %s", nfo_path, artist.name)
    return nfo_path
