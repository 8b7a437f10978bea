"""Bulk executor - runs ONE bulk job at a time in the background.

Hey future me - "one at a time" is enforced by the _CurrentJob register, not by the database.
start() claims the slot under the lock, the background task releases it in a finally. If the
task dies in any way (cancel, crash, DB gone) the slot is freed and the next start() works.
Do NOT move the release out of the finally.

Every step opens its own session_scope: the job can run for an hour while the API reads the
same tables, so we never hold one session (and SQLite's write lock) for the whole run.

FLOW:
    start(job) ─► claim slot ─► task: mark running ─► list targets ─► per artist:
        check cancel ─► apply type policy ─► append item ─► progress every N
    ─► completed / canceled / failed ─► publish bulk.completed ─► release slot
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError

from catalogaudit.application.services.rules.image_fixer import (
    MAX_IMAGE_DIMENSION,
    Downloader,
    apply_image_candidate,
)
from catalogaudit.domain.entities import (
    Artist,
    BulkItemStatus,
    BulkJob,
    BulkJobItem,
    BulkJobMode,
    BulkJobStatus,
    BulkJobType,
    Event,
    EventType,
)
from catalogaudit.domain.exceptions import (
    BulkJobConflictError,
    DomainException,
    NoBulkJobRunningError,
)
from catalogaudit.domain.ports import (
    FetchResult,
    IEventPublisher,
    IMetadataProvider,
    INfoSnapshotRepository,
)
from catalogaudit.domain.value_objects import ImageNaming, ImageType
from catalogaudit.infrastructure.nfo import write_artist_nfo
from catalogaudit.infrastructure.observability.logger_template import log_operation
from catalogaudit.infrastructure.persistence import (
    ArtistRepository,
    BulkJobRepository,
    Database,
    NfoSnapshotRepository,
)

logger = logging.getLogger(__name__)

DEFAULT_PROGRESS_EVERY = 10
_LIST_PAGE_SIZE = 500
# Banners are not part of the bulk image fetch
_BULK_IMAGE_TYPES = (ImageType.THUMB, ImageType.FANART, ImageType.LOGO)


@dataclass
class _CurrentJob:
    job_id: str
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    task: asyncio.Task[None] | None = None


class BulkExecutor:
    """Runs bulk jobs asynchronously, at most one at a time."""

    def __init__(
        self,
        db: Database,
        provider: IMetadataProvider,
        naming: ImageNaming | None = None,
        event_publisher: IEventPublisher | None = None,
        progress_every: int = DEFAULT_PROGRESS_EVERY,
        downloader: Downloader | None = None,
        max_dimension: int = MAX_IMAGE_DIMENSION,
    ) -> None:
        if progress_every <= 0:
            raise ValueError("progress_every must be positive")
        self._db = db
        self._provider = provider
        self._naming = naming or ImageNaming()
        self._events = event_publisher
        self._progress_every = progress_every
        self._downloader = downloader
        self._max_dimension = max_dimension
        self._lock = asyncio.Lock()
        self._current: _CurrentJob | None = None

    @property
    def current_job_id(self) -> str | None:
        current = self._current
        return current.job_id if current else None

    async def start(self, job: BulkJob) -> None:
        """Run the job in a background task.

        Raises:
            BulkJobConflictError: Another job is running (the running job is untouched)
        """
        async with self._lock:
            if self._current is not None:
                raise BulkJobConflictError(self._current.job_id)
            current = _CurrentJob(job_id=job.id)
            self._current = current
            current.task = asyncio.create_task(
                self._run(job, current), name=f"bulk-job-{job.id}"
            )
        logger.info("Started bulk job %s (%s, %s)", job.id, job.type.value, job.mode.value)

    async def cancel(self) -> str:
        """Ask the running job to stop after the current artist. Returns its id.

        Raises:
            NoBulkJobRunningError: Nothing is running
        """
        async with self._lock:
            if self._current is None:
                raise NoBulkJobRunningError()
            self._current.cancel_event.set()
            logger.info("Cancel requested for bulk job %s", self._current.job_id)
            return self._current.job_id

    async def wait(self) -> None:
        """Wait for the running job (if any) to finish."""
        current = self._current
        if current is not None and current.task is not None:
            await asyncio.shield(current.task)

    async def shutdown(self) -> None:
        """Cancel the running job and wait for it. Used on application shutdown."""
        current = self._current
        if current is None:
            return
        current.cancel_event.set()
        if current.task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await current.task

    def get_status(self) -> dict[str, object]:
        return {"running": self._current is not None, "job_id": self.current_job_id}

    async def _run(self, job: BulkJob, current: _CurrentJob) -> None:
        try:
            async with log_operation(
                logger, "bulk.run", job_id=job.id, job_type=job.type.value
            ):
                await self._execute(job, current.cancel_event)
        except Exception as e:
            # logged by log_operation, the job row still has to leave "running"
            if job.status == BulkJobStatus.RUNNING:
                await self._finish(job, BulkJobStatus.FAILED, str(e))
        finally:
            async with self._lock:
                if self._current is current:
                    self._current = None

    async def _execute(self, job: BulkJob, cancel_event: asyncio.Event) -> None:
        job.start()
        try:
            await self._save_job(job)
        except SQLAlchemyError as e:
            logger.error("Could not mark bulk job %s running: %s", job.id, e)
            return

        try:
            artists = await self._list_targets(job)
        except SQLAlchemyError as e:
            await self._finish(job, BulkJobStatus.FAILED, f"listing artists: {e}")
            return

        job.set_total(len(artists))
        await self._save_progress(job)

        for artist in artists:
            if cancel_event.is_set():
                await self._finish(job, BulkJobStatus.CANCELED)
                return

            status, message = await self._process_artist(artist, job)
            job.record_item(status)
            await self._add_item(
                BulkJobItem(
                    job_id=job.id,
                    artist_id=artist.id,
                    artist_name=artist.name,
                    status=status,
                    message=message,
                )
            )
            if job.processed_items % self._progress_every == 0:
                await self._save_progress(job)

        await self._finish(job, BulkJobStatus.COMPLETED)

    async def _save_job(self, job: BulkJob) -> None:
        async with self._db.session_scope() as session:
            await BulkJobRepository(session).update(job)

    async def _save_progress(self, job: BulkJob) -> None:
        try:
            await self._save_job(job)
        except SQLAlchemyError as e:
            logger.warning("Could not save progress of bulk job %s: %s", job.id, e)

    async def _add_item(self, item: BulkJobItem) -> None:
        try:
            async with self._db.session_scope() as session:
                await BulkJobRepository(session).add_item(item)
        except SQLAlchemyError as e:
            logger.warning("Could not record bulk item for %s: %s", item.artist_name, e)

    async def _list_targets(self, job: BulkJob) -> list[Artist]:
        async with self._db.session_scope() as session:
            repo = ArtistRepository(session)
            if job.artist_ids:
                artists = await repo.list_by_ids(job.artist_ids)
                return [artist for artist in artists if not artist.is_excluded]

            artists: list[Artist] = []
            offset = 0
            while True:
                page = await repo.list_artists(
                    offset=offset, limit=_LIST_PAGE_SIZE, sort="name", include_excluded=False
                )
                artists.extend(page)
                if len(page) < _LIST_PAGE_SIZE:
                    return artists
                offset += _LIST_PAGE_SIZE

    async def _finish(self, job: BulkJob, status: BulkJobStatus, error: str = "") -> None:
        if status == BulkJobStatus.COMPLETED:
            job.complete()
        elif status == BulkJobStatus.CANCELED:
            job.cancel()
        else:
            job.fail(error)

        try:
            await self._save_job(job)
        except SQLAlchemyError as e:
            logger.error("Could not finish bulk job %s: %s", job.id, e)

        logger.info(
            "Bulk job %s %s: %d/%d processed, %d fixed, %d skipped, %d failed",
            job.id,
            job.status.value,
            job.processed_items,
            job.total_items,
            job.fixed_items,
            job.skipped_items,
            job.failed_items,
        )

        if self._events is not None:
            self._events.publish(
                Event(
                    EventType.BULK_COMPLETED,
                    {
                        "job_id": job.id,
                        "type": job.type.value,
                        "status": job.status.value,
                        "total_items": job.total_items,
                        "processed_items": job.processed_items,
                        "failed_items": job.failed_items,
                    },
                )
            )

    async def _process_artist(
        self, artist: Artist, job: BulkJob
    ) -> tuple[BulkItemStatus, str]:
        try:
            async with self._db.session_scope() as session:
                artist_repo = ArtistRepository(session)
                snapshots = NfoSnapshotRepository(session)
                if job.type == BulkJobType.FETCH_METADATA:
                    status, message = await self._fetch_metadata(artist, job.mode, snapshots)
                elif job.type == BulkJobType.FETCH_IMAGES:
                    status, message = await self._fetch_images(artist, job.mode)
                else:
                    return BulkItemStatus.FAILED, f"unknown job type: {job.type}"
                await artist_repo.update(artist)
                return status, message
        except SQLAlchemyError as e:
            logger.warning("Saving %s failed: %s", artist.name, e)
            return BulkItemStatus.FAILED, f"update failed: {e}"
        except Exception as e:
            # one artist's provider error is that item's failure, the job goes on
            logger.warning(
                "Bulk %s failed for %s: %s", job.type.value, artist.name, e, exc_info=True
            )
            return BulkItemStatus.FAILED, f"fetch failed: {e}"

    async def _fetch_metadata(
        self,
        artist: Artist,
        mode: BulkJobMode,
        snapshots: INfoSnapshotRepository,
    ) -> tuple[BulkItemStatus, str]:
        if artist.musicbrainz_id and artist.biography:
            return BulkItemStatus.SKIPPED, "already has MBID and biography"

        try:
            result = await self._provider.fetch_metadata(artist.musicbrainz_id, artist.name)
        except DomainException as e:
            return BulkItemStatus.FAILED, f"fetch failed: {e.message}"

        metadata = result.metadata
        if metadata is None:
            return BulkItemStatus.SKIPPED, "no metadata returned"

        changed = False
        if not artist.musicbrainz_id and metadata.musicbrainz_id:
            if mode == BulkJobMode.MANUAL:
                return BulkItemStatus.SKIPPED, "manual mode: skipped MBID assignment"
            artist.musicbrainz_id = metadata.musicbrainz_id
            changed = True

        for attr in ("biography", "audiodb_id", "discogs_id", "wikidata_id"):
            value = getattr(metadata, attr)
            if not getattr(artist, attr) and value:
                setattr(artist, attr, value)
                changed = True
        if not artist.genres and metadata.genres:
            artist.genres = list(metadata.genres)
            changed = True

        if not changed:
            return BulkItemStatus.SKIPPED, "no new metadata to apply"

        artist.touch()
        if artist.nfo_exists and artist.path:
            try:
                await write_artist_nfo(artist, snapshots)
            except OSError as e:
                logger.warning("Could not rewrite artist.nfo for %s: %s", artist.name, e)
        return BulkItemStatus.FIXED, "metadata updated"

    async def _fetch_images(
        self, artist: Artist, mode: BulkJobMode
    ) -> tuple[BulkItemStatus, str]:
        if not artist.musicbrainz_id:
            if mode in (BulkJobMode.MANUAL, BulkJobMode.DISAMBIGUATE):
                return BulkItemStatus.SKIPPED, "no MBID"
            try:
                results = await self._provider.search(artist.name)
            except DomainException as e:
                logger.debug("Search for %s failed: %s", artist.name, e)
                results = []
            if not results:
                return BulkItemStatus.SKIPPED, "no MBID and provider search found nothing"
            mbid = next((r.musicbrainz_id for r in results if r.musicbrainz_id), "")
            if not mbid:
                return BulkItemStatus.SKIPPED, "no MBID found from providers"
            artist.musicbrainz_id = mbid
            artist.touch()

        needed = [t for t in _BULK_IMAGE_TYPES if not artist.has_image(t)]
        if not needed:
            return BulkItemStatus.SKIPPED, "all images present"
        if not artist.path:
            return BulkItemStatus.SKIPPED, "artist has no path"

        provider_ids = {"deezer": artist.deezer_id} if artist.deezer_id else None
        try:
            result = await self._provider.fetch_images(artist.musicbrainz_id, provider_ids)
        except DomainException as e:
            return BulkItemStatus.FAILED, f"image fetch failed: {e.message}"

        fixed = 0
        for image_type in needed:
            if await self._save_best_image(artist, image_type, result):
                fixed += 1

        if fixed == 0:
            return BulkItemStatus.SKIPPED, "no suitable images found"
        artist.touch()
        return BulkItemStatus.FIXED, f"saved {fixed} image(s)"

    async def _save_best_image(
        self, artist: Artist, image_type: ImageType, result: FetchResult
    ) -> bool:
        candidates = [image for image in result.images if image.type == image_type.value]
        candidates.sort(key=lambda image: (-image.likes, -image.area))
        if not candidates:
            return False

        names = self._naming.names_for_type(image_type)
        for candidate in candidates:
            try:
                await apply_image_candidate(
                    artist,
                    image_type,
                    candidate.url,
                    file_names=names,
                    downloader=self._downloader,
                    max_dimension=self._max_dimension,
                )
            except (DomainException, OSError, ValueError) as e:
                logger.debug("Bulk image candidate %s failed: %s", candidate.url, e)
                continue
            return True
        return False

