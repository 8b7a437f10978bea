"""Fixer strategies for rule violations.

Hey future me - the pipeline walks its fixer list IN ORDER and uses the first one whose
can_fix() says yes. supports_candidate_discovery is the capability flag manual mode relies on:
only fixers that can hand back a candidate list without touching the disk (the image fixer)
are ever invoked for a manual-mode rule. Everything else would write to the library, which
is exactly what "manual" promises not to do.
"""

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path

from catalogaudit.application.services.rules.checkers import find_png_logo
from catalogaudit.domain.entities import Artist, FixResult, Violation
from catalogaudit.domain.entities import rules as r
from catalogaudit.domain.ports import IMetadataProvider, INfoSnapshotRepository
from catalogaudit.domain.value_objects import ImageNaming, ImageType
from catalogaudit.infrastructure.imaging import image_processor, image_store
from catalogaudit.infrastructure.nfo import NFO_FILENAME, check_file_conflict, write_artist_nfo

logger = logging.getLogger(__name__)


class Fixer(ABC):
    """Remediates one or more kinds of violation."""

    @abstractmethod
    def can_fix(self, violation: Violation) -> bool:
        """Return True if this fixer handles the violation's rule."""
        pass

    @abstractmethod
    async def fix(self, artist: Artist, violation: Violation) -> FixResult:
        """Attempt the fix.

        Returns FixResult(fixed=False, ...) when the fix does not apply.
        Raises when something unexpected goes wrong; the pipeline turns
        that into a "fix failed" result.
        """
        pass

    @property
    def supports_candidate_discovery(self) -> bool:
        """True if fix() honors config.discovery_only and only returns candidates."""
        return False


class NFOFixer(Fixer):
    """Creates a missing artist.nfo from the artist's current metadata."""

    def __init__(self, snapshot_repo: INfoSnapshotRepository | None = None) -> None:
        self._snapshot_repo = snapshot_repo

    def can_fix(self, violation: Violation) -> bool:
        return violation.rule_id == r.RULE_NFO_EXISTS

    async def fix(self, artist: Artist, violation: Violation) -> FixResult:
        if not artist.path:
            return FixResult(r.RULE_NFO_EXISTS, False, "artist has no path")

        target = Path(artist.path) / NFO_FILENAME
        conflict = await asyncio.to_thread(check_file_conflict, target, artist.updated_at)
        if conflict.has_conflict:
            return FixResult(
                r.RULE_NFO_EXISTS, False, f"NFO conflict for {artist.name}: {conflict.reason}"
            )

        await write_artist_nfo(artist, self._snapshot_repo)
        return FixResult(r.RULE_NFO_EXISTS, True, f"created artist.nfo for {artist.name}")


class MetadataFixer(Fixer):
    """Fills a missing MusicBrainz ID or biography from the metadata provider.

    Only empty fields are written. An existing artist.nfo is rewritten so the
    file on disk matches (previous content is snapshotted first).
    """

    def __init__(
        self,
        provider: IMetadataProvider,
        snapshot_repo: INfoSnapshotRepository | None = None,
    ) -> None:
        self._provider = provider
        self._snapshot_repo = snapshot_repo

    def can_fix(self, violation: Violation) -> bool:
        return violation.rule_id in (r.RULE_NFO_HAS_MBID, r.RULE_BIO_EXISTS)

    async def fix(self, artist: Artist, violation: Violation) -> FixResult:
        if violation.rule_id == r.RULE_NFO_HAS_MBID:
            return await self._fix_mbid(artist)
        if violation.rule_id == r.RULE_BIO_EXISTS:
            return await self._fix_bio(artist)
        raise ValueError(f"unsupported rule: {violation.rule_id}")

    async def _fix_mbid(self, artist: Artist) -> FixResult:
        if artist.musicbrainz_id:
            return FixResult(r.RULE_NFO_HAS_MBID, False, "artist already has a MusicBrainz ID")

        results = await self._provider.search(artist.name)
        if not results:
            return FixResult(
                r.RULE_NFO_HAS_MBID, False, f"no provider results for {artist.name}"
            )

        with_mbid = [result for result in results if result.musicbrainz_id]
        if not with_mbid:
            return FixResult(
                r.RULE_NFO_HAS_MBID, False, "no results with MusicBrainz ID found"
            )
        # max() keeps the first of equal scores, i.e. the provider's own ranking
        best = max(with_mbid, key=lambda result: result.score)

        artist.musicbrainz_id = best.musicbrainz_id
        artist.touch()
        await self._rewrite_nfo(artist)
        return FixResult(
            r.RULE_NFO_HAS_MBID,
            True,
            f"set MBID to {best.musicbrainz_id} for {artist.name}",
        )

    async def _fix_bio(self, artist: Artist) -> FixResult:
        result = await self._provider.fetch_metadata(artist.musicbrainz_id, artist.name)
        if result.metadata is None or not result.metadata.biography:
            return FixResult(r.RULE_BIO_EXISTS, False, f"no biography found for {artist.name}")

        artist.biography = result.metadata.biography
        artist.touch()
        await self._rewrite_nfo(artist)
        return FixResult(r.RULE_BIO_EXISTS, True, f"populated biography for {artist.name}")

    async def _rewrite_nfo(self, artist: Artist) -> None:
        if not artist.nfo_exists or not artist.path:
            return
        try:
            await write_artist_nfo(artist, self._snapshot_repo)
        except OSError as e:
            # the metadata itself is fixed in the DB; the file catches up on the next write
            logger.warning("Could not rewrite artist.nfo for %s: %s", artist.name, e)


class ExtraneousImagesFixer(Fixer):
    """Deletes image files that match no name of the active naming profile."""

    def __init__(self, naming: ImageNaming | None = None) -> None:
        self._naming = naming or ImageNaming()

    def can_fix(self, violation: Violation) -> bool:
        return violation.rule_id == r.RULE_EXTRANEOUS_IMAGES

    async def fix(self, artist: Artist, violation: Violation) -> FixResult:
        if not artist.path:
            return FixResult(r.RULE_EXTRANEOUS_IMAGES, False, "artist has no path")

        deleted = await asyncio.to_thread(self._delete_extraneous, artist.path)
        if not deleted:
            return FixResult(r.RULE_EXTRANEOUS_IMAGES, False, "no extraneous files to delete")
        return FixResult(
            r.RULE_EXTRANEOUS_IMAGES,
            True,
            f"deleted {len(deleted)} extraneous file(s): {', '.join(deleted)}",
        )

    def _delete_extraneous(self, artist_path: str) -> list[str]:
        deleted: list[str] = []
        for name in image_store.find_extraneous_images(self._naming, artist_path):
            target = os.path.join(artist_path, name)
            try:
                os.remove(target)
            except OSError as e:
                logger.warning("Failed to delete extraneous image %s: %s", target, e)
                continue
            logger.info("Deleted extraneous image %s", target)
            deleted.append(name)
        return deleted


class LogoTrimFixer(Fixer):
    """Crops transparent padding from the PNG logo."""

    def __init__(self, naming: ImageNaming | None = None) -> None:
        self._naming = naming or ImageNaming()

    def can_fix(self, violation: Violation) -> bool:
        return violation.rule_id == r.RULE_LOGO_TRIMMABLE

    async def fix(self, artist: Artist, violation: Violation) -> FixResult:
        if not artist.path:
            return FixResult(r.RULE_LOGO_TRIMMABLE, False, "artist has no path")

        logo_path = await asyncio.to_thread(find_png_logo, self._naming, artist.path)
        if logo_path is None:
            return FixResult(r.RULE_LOGO_TRIMMABLE, False, "no logo file found on disk")

        original, trimmed = await asyncio.to_thread(self._trim, artist.path, logo_path)
        return FixResult(
            r.RULE_LOGO_TRIMMABLE,
            True,
            f"trimmed logo from {original[0]}x{original[1]} to {trimmed[0]}x{trimmed[1]}",
        )

    @staticmethod
    def _trim(artist_path: str, logo_path: str) -> tuple[tuple[int, int], tuple[int, int]]:
        data = Path(logo_path).read_bytes()
        trimmed_data, original, trimmed = image_processor.trim_alpha(data)
        old_name = os.path.basename(logo_path)
        saved = image_store.save_image(artist_path, ImageType.LOGO, trimmed_data, [old_name])

        # Logo.PNG saved as Logo.png: on a case-sensitive filesystem the old file is a duplicate
        new_path = os.path.join(artist_path, saved[0])
        if saved[0] != old_name and saved[0].lower() == old_name.lower():
            if os.path.exists(logo_path) and not os.path.samefile(logo_path, new_path):
                os.remove(logo_path)
        return original, trimmed
