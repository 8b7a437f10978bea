"""Repository implementations for domain entities."""

from __future__ import annotations

import json
from datetime import UTC, datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from catalogaudit.domain.entities import (
    Artist,
    AutomationMode,
    BulkItemStatus,
    BulkJob,
    BulkJobItem,
    BulkJobMode,
    BulkJobStatus,
    BulkJobType,
    HealthSnapshot,
    Rule,
    RuleConfig,
    RuleViolation,
    Severity,
    ViolationStatus,
)
from catalogaudit.domain.entities.rules import candidates_from_json, candidates_to_json
from catalogaudit.domain.ports import (
    IAppSettingsRepository,
    IArtistRepository,
    IBulkJobRepository,
    IHealthSnapshotRepository,
    INfoSnapshotRepository,
    IRuleRepository,
    IViolationRepository,
)

from .models import (
    AppSettingsModel,
    ArtistModel,
    BulkJobItemModel,
    BulkJobModel,
    HealthSnapshotModel,
    NfoSnapshotModel,
    RuleModel,
    RuleViolationModel,
    ensure_utc_aware,
)

ACTIVE_STATUSES = (ViolationStatus.OPEN.value, ViolationStatus.PENDING_CHOICE.value)


def _dump_list(values: list[str]) -> str | None:
    return json.dumps(values) if values else None


def _load_list(value: str | None) -> list[str]:
    return json.loads(value) if value else []


def _aware(dt: datetime | None) -> datetime | None:
    return ensure_utc_aware(dt) if dt is not None else None


# Hey future me, every repo gets the AsyncSession injected and never commits. The caller's
# Database.session_scope() commits at the end of the unit of work (one request, one pipeline
# run, one bulk-job step). flush() is used where later reads in the same session need the row.
class ArtistRepository(IArtistRepository):
    """SQLAlchemy implementation of Artist repository."""

    _FIELDS = (
        "name",
        "sort_name",
        "type",
        "gender",
        "disambiguation",
        "musicbrainz_id",
        "audiodb_id",
        "discogs_id",
        "wikidata_id",
        "deezer_id",
        "years_active",
        "born",
        "formed",
        "died",
        "disbanded",
        "biography",
        "path",
        "nfo_exists",
        "thumb_exists",
        "fanart_exists",
        "logo_exists",
        "banner_exists",
        "health_score",
        "is_excluded",
        "exclusion_reason",
        "is_classical",
        "updated_at",
    )

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    def _to_values(self, artist: Artist) -> dict[str, object]:
        values: dict[str, object] = {name: getattr(artist, name) for name in self._FIELDS}
        values["genres"] = _dump_list(artist.genres)
        values["styles"] = _dump_list(artist.styles)
        values["moods"] = _dump_list(artist.moods)
        return values

    @staticmethod
    def _to_entity(model: ArtistModel) -> Artist:
        return Artist(
            id=model.id,
            name=model.name,
            sort_name=model.sort_name,
            type=model.type,
            gender=model.gender,
            disambiguation=model.disambiguation,
            musicbrainz_id=model.musicbrainz_id,
            audiodb_id=model.audiodb_id,
            discogs_id=model.discogs_id,
            wikidata_id=model.wikidata_id,
            deezer_id=model.deezer_id,
            genres=_load_list(model.genres),
            styles=_load_list(model.styles),
            moods=_load_list(model.moods),
            years_active=model.years_active,
            born=model.born,
            formed=model.formed,
            died=model.died,
            disbanded=model.disbanded,
            biography=model.biography,
            path=model.path,
            nfo_exists=model.nfo_exists,
            thumb_exists=model.thumb_exists,
            fanart_exists=model.fanart_exists,
            logo_exists=model.logo_exists,
            banner_exists=model.banner_exists,
            health_score=model.health_score,
            is_excluded=model.is_excluded,
            exclusion_reason=model.exclusion_reason,
            is_classical=model.is_classical,
            created_at=ensure_utc_aware(model.created_at),
            updated_at=ensure_utc_aware(model.updated_at),
        )

    async def add(self, artist: Artist) -> None:
        """Add a new artist."""
        model = ArtistModel(id=artist.id, created_at=artist.created_at, **self._to_values(artist))
        self.session.add(model)
        await self.session.flush()

    async def get_by_id(self, artist_id: str) -> Artist | None:
        """Get an artist by ID."""
        model = await self.session.get(ArtistModel, artist_id)
        return self._to_entity(model) if model else None

    async def update(self, artist: Artist) -> None:
        """Update an existing artist."""
        stmt = (
            update(ArtistModel)
            .where(ArtistModel.id == artist.id)
            .values(**self._to_values(artist))
        )
        await self.session.execute(stmt)

    async def list_artists(
        self,
        offset: int = 0,
        limit: int = 200,
        sort: str = "name",
        include_excluded: bool = True,
    ) -> list[Artist]:
        """List artists page by page; id breaks ties so paging is stable."""
        sort_column = {
            "name": ArtistModel.name,
            "updated_at": ArtistModel.updated_at,
            "health_score": ArtistModel.health_score,
        }.get(sort)
        if sort_column is None:
            raise ValueError(f"Unsupported sort column: {sort}")

        stmt = select(ArtistModel).order_by(sort_column, ArtistModel.id)
        if not include_excluded:
            stmt = stmt.where(ArtistModel.is_excluded.is_(False))
        stmt = stmt.offset(offset).limit(limit)

        result = await self.session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars().all()]

    async def list_by_ids(self, artist_ids: list[str]) -> list[Artist]:
        if not artist_ids:
            return []
        stmt = (
            select(ArtistModel)
            .where(ArtistModel.id.in_(artist_ids))
            .order_by(ArtistModel.name, ArtistModel.id)
        )
        result = await self.session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars().all()]


class RuleRepository(IRuleRepository):
    """SQLAlchemy implementation of Rule repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    @staticmethod
    def _to_entity(model: RuleModel) -> Rule:
        return Rule(
            id=model.id,
            name=model.name,
            description=model.description,
            category=model.category,
            enabled=model.enabled,
            automation_mode=AutomationMode.parse(model.automation_mode),
            config=RuleConfig.from_json(model.config),
            created_at=ensure_utc_aware(model.created_at),
            updated_at=ensure_utc_aware(model.updated_at),
        )

    async def list_all(self) -> list[Rule]:
        stmt = select(RuleModel).order_by(RuleModel.category, RuleModel.name)
        result = await self.session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars().all()]

    async def get_by_id(self, rule_id: str) -> Rule | None:
        model = await self.session.get(RuleModel, rule_id)
        return self._to_entity(model) if model else None

    async def update(self, rule: Rule) -> None:
        stmt = (
            update(RuleModel)
            .where(RuleModel.id == rule.id)
            .values(
                enabled=rule.enabled,
                automation_mode=rule.automation_mode.value,
                config=rule.config.to_json(),
                updated_at=datetime.now(UTC),
            )
        )
        await self.session.execute(stmt)

    async def seed(self, rule: Rule) -> None:
        """Insert a built-in rule; on an existing row refresh name/description only.

        enabled, automation_mode and config belong to the user once the row exists.
        """
        model = await self.session.get(RuleModel, rule.id)
        now = datetime.now(UTC)
        if model is None:
            self.session.add(
                RuleModel(
                    id=rule.id,
                    name=rule.name,
                    description=rule.description,
                    category=rule.category,
                    enabled=rule.enabled,
                    automation_mode=rule.automation_mode.value,
                    config=rule.config.to_json(),
                    created_at=now,
                    updated_at=now,
                )
            )
        else:
            model.name = rule.name
            model.description = rule.description
            model.updated_at = now
        await self.session.flush()


class ViolationRepository(IViolationRepository):
    """SQLAlchemy implementation of the violation inbox."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    @staticmethod
    def _to_entity(model: RuleViolationModel) -> RuleViolation:
        return RuleViolation(
            id=model.id,
            rule_id=model.rule_id,
            artist_id=model.artist_id,
            artist_name=model.artist_name,
            severity=model.severity,
            message=model.message,
            fixable=model.fixable,
            status=ViolationStatus(model.status),
            candidates=candidates_from_json(model.candidates),
            dismissed_at=_aware(model.dismissed_at),
            resolved_at=_aware(model.resolved_at),
            created_at=ensure_utc_aware(model.created_at),
            updated_at=ensure_utc_aware(model.updated_at),
        )

    async def upsert(self, violation: RuleViolation) -> None:
        """Insert or overwrite the row keyed by (rule_id, artist_id).

        An existing row keeps its id and created_at, everything else is replaced.
        """
        stmt = select(RuleViolationModel).where(
            RuleViolationModel.rule_id == violation.rule_id,
            RuleViolationModel.artist_id == violation.artist_id,
        )
        model = (await self.session.execute(stmt)).scalar_one_or_none()
        now = datetime.now(UTC)

        if model is None:
            model = RuleViolationModel(
                id=violation.id,
                rule_id=violation.rule_id,
                artist_id=violation.artist_id,
                created_at=violation.created_at,
            )
            self.session.add(model)
        else:
            violation.id = model.id
            violation.created_at = ensure_utc_aware(model.created_at)

        model.artist_name = violation.artist_name
        model.severity = violation.severity
        model.message = violation.message
        model.fixable = violation.fixable
        model.status = violation.status.value
        model.candidates = candidates_to_json(violation.candidates)
        model.dismissed_at = violation.dismissed_at
        model.resolved_at = violation.resolved_at
        model.updated_at = now
        violation.updated_at = now
        await self.session.flush()

    async def get_by_id(self, violation_id: str) -> RuleViolation | None:
        model = await self.session.get(RuleViolationModel, violation_id)
        return self._to_entity(model) if model else None

    async def list_by_status(self, status: str | None = None) -> list[RuleViolation]:
        stmt = select(RuleViolationModel)
        if status == "active":
            stmt = stmt.where(RuleViolationModel.status.in_(ACTIVE_STATUSES))
        elif status:
            stmt = stmt.where(RuleViolationModel.status == ViolationStatus(status).value)
        stmt = stmt.order_by(RuleViolationModel.created_at.desc(), RuleViolationModel.id)

        result = await self.session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars().all()]

    async def set_status(
        self, violation_id: str, status: ViolationStatus
    ) -> RuleViolation | None:
        model = await self.session.get(RuleViolationModel, violation_id)
        if model is None:
            return None

        violation = self._to_entity(model)
        if status == ViolationStatus.DISMISSED:
            violation.dismiss()
        elif status == ViolationStatus.RESOLVED:
            violation.resolve()
        else:
            raise ValueError(f"Cannot set violation status to {status.value}")

        model.status = violation.status.value
        model.candidates = None
        model.dismissed_at = violation.dismissed_at
        model.resolved_at = violation.resolved_at
        model.updated_at = violation.updated_at
        await self.session.flush()
        return violation

    async def bulk_dismiss(self, violation_ids: list[str] | None = None) -> int:
        now = datetime.now(UTC)
        stmt = (
            update(RuleViolationModel)
            .where(RuleViolationModel.status.in_(ACTIVE_STATUSES))
            .values(
                status=ViolationStatus.DISMISSED.value,
                candidates=None,
                dismissed_at=now,
                updated_at=now,
            )
        )
        if violation_ids is not None:
            if not violation_ids:
                return 0
            stmt = stmt.where(RuleViolationModel.id.in_(violation_ids))
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)

    async def count_active_by_severity(self) -> dict[str, int]:
        counts = {severity.value: 0 for severity in Severity}
        stmt = (
            select(RuleViolationModel.severity, func.count())
            .where(RuleViolationModel.status.in_(ACTIVE_STATUSES))
            .group_by(RuleViolationModel.severity)
        )
        for severity, count in (await self.session.execute(stmt)).all():
            if severity in counts:
                counts[severity] = int(count)
        return counts

    async def clear_resolved(self, older_than: datetime) -> int:
        stmt = delete(RuleViolationModel).where(
            RuleViolationModel.status == ViolationStatus.RESOLVED.value,
            RuleViolationModel.resolved_at < older_than,
        )
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)


class BulkJobRepository(IBulkJobRepository):
    """SQLAlchemy implementation of BulkJob repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    @staticmethod
    def _to_entity(model: BulkJobModel) -> BulkJob:
        return BulkJob(
            id=model.id,
            type=BulkJobType(model.type),
            mode=BulkJobMode(model.mode),
            status=BulkJobStatus(model.status),
            total_items=model.total_items,
            processed_items=model.processed_items,
            fixed_items=model.fixed_items,
            skipped_items=model.skipped_items,
            failed_items=model.failed_items,
            error=model.error,
            created_at=ensure_utc_aware(model.created_at),
            started_at=_aware(model.started_at),
            completed_at=_aware(model.completed_at),
        )

    @staticmethod
    def _progress_values(job: BulkJob) -> dict[str, object]:
        return {
            "status": job.status.value,
            "total_items": job.total_items,
            "processed_items": job.processed_items,
            "fixed_items": job.fixed_items,
            "skipped_items": job.skipped_items,
            "failed_items": job.failed_items,
            "error": job.error,
            "started_at": job.started_at,
            "completed_at": job.completed_at,
        }

    async def add(self, job: BulkJob) -> None:
        self.session.add(
            BulkJobModel(
                id=job.id,
                type=job.type.value,
                mode=job.mode.value,
                created_at=job.created_at,
                **self._progress_values(job),
            )
        )
        await self.session.flush()

    async def update(self, job: BulkJob) -> None:
        stmt = (
            update(BulkJobModel)
            .where(BulkJobModel.id == job.id)
            .values(**self._progress_values(job))
        )
        await self.session.execute(stmt)

    async def get_by_id(self, job_id: str) -> BulkJob | None:
        model = await self.session.get(BulkJobModel, job_id)
        return self._to_entity(model) if model else None

    async def list_recent(self, limit: int = 20) -> list[BulkJob]:
        stmt = select(BulkJobModel).order_by(BulkJobModel.created_at.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars().all()]

    async def add_item(self, item: BulkJobItem) -> None:
        self.session.add(
            BulkJobItemModel(
                id=item.id,
                job_id=item.job_id,
                artist_id=item.artist_id,
                artist_name=item.artist_name,
                status=item.status.value,
                message=item.message,
                created_at=item.created_at,
            )
        )
        await self.session.flush()

    async def list_items(self, job_id: str) -> list[BulkJobItem]:
        stmt = (
            select(BulkJobItemModel)
            .where(BulkJobItemModel.job_id == job_id)
            .order_by(BulkJobItemModel.created_at, BulkJobItemModel.id)
        )
        result = await self.session.execute(stmt)
        return [
            BulkJobItem(
                id=model.id,
                job_id=model.job_id,
                artist_id=model.artist_id,
                artist_name=model.artist_name,
                status=BulkItemStatus(model.status),
                message=model.message,
                created_at=ensure_utc_aware(model.created_at),
            )
            for model in result.scalars().all()
        ]


class HealthSnapshotRepository(IHealthSnapshotRepository):
    """SQLAlchemy implementation of health history."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    @staticmethod
    def _to_entity(model: HealthSnapshotModel) -> HealthSnapshot:
        return HealthSnapshot(
            id=model.id,
            total_artists=model.total_artists,
            compliant_artists=model.compliant_artists,
            score=model.score,
            recorded_at=ensure_utc_aware(model.recorded_at),
        )

    async def add(self, snapshot: HealthSnapshot) -> None:
        self.session.add(
            HealthSnapshotModel(
                id=snapshot.id,
                total_artists=snapshot.total_artists,
                compliant_artists=snapshot.compliant_artists,
                score=snapshot.score,
                recorded_at=snapshot.recorded_at,
            )
        )
        await self.session.flush()

    async def list_between(self, start: datetime, end: datetime) -> list[HealthSnapshot]:
        stmt = (
            select(HealthSnapshotModel)
            .where(
                HealthSnapshotModel.recorded_at >= start,
                HealthSnapshotModel.recorded_at <= end,
            )
            .order_by(HealthSnapshotModel.recorded_at)
        )
        result = await self.session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars().all()]

    async def latest(self) -> HealthSnapshot | None:
        stmt = (
            select(HealthSnapshotModel)
            .order_by(HealthSnapshotModel.recorded_at.desc())
            .limit(1)
        )
        model = (await self.session.execute(stmt)).scalar_one_or_none()
        return self._to_entity(model) if model else None


class NfoSnapshotRepository(INfoSnapshotRepository):
    """SQLAlchemy implementation of NFO snapshots."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def save(self, artist_id: str, content: str) -> None:
        self.session.add(NfoSnapshotModel(artist_id=artist_id, content=content))
        await self.session.flush()

    async def list_for_artist(self, artist_id: str) -> list[str]:
        stmt = (
            select(NfoSnapshotModel.content)
            .where(NfoSnapshotModel.artist_id == artist_id)
            .order_by(NfoSnapshotModel.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class AppSettingsRepository(IAppSettingsRepository):
    """SQLAlchemy implementation of runtime key/value settings."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def get_value(self, key: str) -> str | None:
        model = await self.session.get(AppSettingsModel, key)
        return model.value if model else None

    async def set_value(self, key: str, value: str) -> None:
        model = await self.session.get(AppSettingsModel, key)
        if model is None:
            self.session.add(AppSettingsModel(key=key, value=value))
        else:
            model.value = value
        await self.session.flush()
