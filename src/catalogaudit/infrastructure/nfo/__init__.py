"""artist.nfo rendering, conflict detection and writing."""

from catalogaudit.infrastructure.nfo.artist_nfo import (
    NFO_FILENAME,
    ArtistNfo,
    ConflictCheck,
    check_file_conflict,
    render_nfo,
    write_artist_nfo,
)

__all__ = [
    "NFO_FILENAME",
    "ArtistNfo",
    "ConflictCheck",
    "check_file_conflict",
    "render_nfo",
    "write_artist_nfo",
]
