"""Session-scoped pipeline runs.

Hey future me - Pipeline itself only knows ports. Something has to open a DB session, build
the SQLAlchemy repositories and the fixer list, run, and commit. That is this class. The
scheduler worker and the API both go through it, so a run always gets a fresh session and a
fresh ImageFixer (whose provider image cache lives exactly as long as one run).
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from catalogaudit.application.services.rules.engine import Engine
from catalogaudit.application.services.rules.fixers import (
    ExtraneousImagesFixer,
    Fixer,
    LogoTrimFixer,
    MetadataFixer,
    NFOFixer,
)
from catalogaudit.application.services.rules.image_fixer import (
    MAX_IMAGE_DIMENSION,
    Downloader,
    ImageFixer,
)
from catalogaudit.application.services.rules.pipeline import DEFAULT_PAGE_SIZE, Pipeline
from catalogaudit.application.services.rules.rule_service import (
    RuleService,
    compute_library_health,
)
from catalogaudit.domain.entities import (
    Artist,
    ClassicalMode,
    EvaluationResult,
    HealthSnapshot,
    RunResult,
)
from catalogaudit.domain.exceptions import EntityNotFoundException
from catalogaudit.domain.ports import IEventPublisher, IMetadataProvider
from catalogaudit.domain.value_objects import ImageNaming
from catalogaudit.infrastructure.imaging import image_processor
from catalogaudit.infrastructure.persistence import (
    AppSettingsRepository,
    ArtistRepository,
    Database,
    HealthSnapshotRepository,
    NfoSnapshotRepository,
    RuleRepository,
    ViolationRepository,
)

logger = logging.getLogger(__name__)


class ScopedPipelineRunner:
    """Runs the fix pipeline inside one database transaction per call."""

    def __init__(
        self,
        db: Database,
        provider: IMetadataProvider,
        naming: ImageNaming | None = None,
        event_publisher: IEventPublisher | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        classical_default: ClassicalMode = ClassicalMode.SKIP,
        downloader: Downloader | None = None,
        max_dimension: int = MAX_IMAGE_DIMENSION,
        jpeg_quality: int = image_processor.DEFAULT_JPEG_QUALITY,
    ) -> None:
        self._db = db
        self._provider = provider
        self._naming = naming or ImageNaming()
        self._events = event_publisher
        self._page_size = page_size
        self._classical_default = classical_default
        self._downloader = downloader
        self._max_dimension = max_dimension
        self._jpeg_quality = jpeg_quality

    @property
    def naming(self) -> ImageNaming:
        return self._naming

    def build_engine(self, session: AsyncSession) -> Engine:
        return Engine(
            RuleRepository(session),
            AppSettingsRepository(session),
            naming=self._naming,
            classical_default=self._classical_default,
        )

    def build_fixers(self, session: AsyncSession) -> list[Fixer]:
        """Fixers in dispatch order."""
        snapshots = NfoSnapshotRepository(session)
        return [
            NFOFixer(snapshots),
            MetadataFixer(self._provider, snapshots),
            ImageFixer(
                self._provider,
                naming=self._naming,
                downloader=self._downloader,
                max_dimension=self._max_dimension,
                jpeg_quality=self._jpeg_quality,
            ),
            ExtraneousImagesFixer(self._naming),
            LogoTrimFixer(self._naming),
        ]

    def build_pipeline(self, session: AsyncSession) -> Pipeline:
        return Pipeline(
            self.build_engine(session),
            ArtistRepository(session),
            RuleRepository(session),
            ViolationRepository(session),
            self.build_fixers(session),
            page_size=self._page_size,
            event_publisher=self._events,
        )

    async def run_all(self, stop_event: asyncio.Event | None = None) -> RunResult:
        async with self._db.session_scope() as session:
            return await self.build_pipeline(session).run_all(stop_event)

    async def run_rule(
        self, rule_id: str, stop_event: asyncio.Event | None = None
    ) -> RunResult:
        async with self._db.session_scope() as session:
            return await self.build_pipeline(session).run_rule(rule_id, stop_event)

    async def run_for_artist(self, artist_id: str) -> RunResult:
        async with self._db.session_scope() as session:
            artist = await ArtistRepository(session).get_by_id(artist_id)
            if artist is None:
                raise EntityNotFoundException("Artist", artist_id)
            return await self.build_pipeline(session).run_for_artist(artist)

    async def evaluate_artist(self, artist_id: str) -> EvaluationResult:
        """Evaluate one artist without fixing and persist its health score."""
        async with self._db.session_scope() as session:
            repo = ArtistRepository(session)
            artist = await repo.get_by_id(artist_id)
            if artist is None:
                raise EntityNotFoundException("Artist", artist_id)
            result = await self.build_engine(session).evaluate(artist)
            artist.health_score = result.health_score
            await repo.update(artist)
            return result

    async def record_library_health(self) -> HealthSnapshot:
        """Evaluate every non-excluded artist and record a health snapshot."""
        async with self._db.session_scope() as session:
            repo = ArtistRepository(session)
            artists: list[Artist] = []
            offset = 0
            while True:
                page = await repo.list_artists(
                    offset=offset, limit=self._page_size, include_excluded=False
                )
                artists.extend(page)
                if len(page) < self._page_size:
                    break
                offset += self._page_size

            results = await self.build_engine(session).evaluate_all(artists)
            total, compliant, score = compute_library_health(artists, results)
            service = RuleService(
                RuleRepository(session),
                ViolationRepository(session),
                HealthSnapshotRepository(session),
            )
            snapshot = await service.record_health_snapshot(total, compliant, score)
        logger.info(
            "Library health %.1f (%d of %d artists compliant)", score, compliant, total
        )
        return snapshot
