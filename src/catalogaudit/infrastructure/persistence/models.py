"""SQLAlchemy ORM models for catalog-audit."""

import uuid
from datetime import UTC, datetime

import sqlalchemy as sa
from sqlalchemy import Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite doesn't preserve timezone info! Datetimes come back naive. Run every
# datetime read from the DB through this before comparing with datetime.now(UTC).
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def _uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Hey future me - list fields (genres, styles, moods) are JSON text for SQLite compatibility;
# the repository (de)serializes them. The *_exists flags mirror what is on disk in `path`.
class ArtistModel(Base):
    """SQLAlchemy model for Artist entity."""

    __tablename__ = "artists"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    sort_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    type: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    gender: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    disambiguation: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    musicbrainz_id: Mapped[str] = mapped_column(
        String(36), default="", nullable=False, index=True
    )
    audiodb_id: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    discogs_id: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    wikidata_id: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    deezer_id: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    genres: Mapped[str | None] = mapped_column(Text, nullable=True)
    styles: Mapped[str | None] = mapped_column(Text, nullable=True)
    moods: Mapped[str | None] = mapped_column(Text, nullable=True)
    years_active: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    born: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    formed: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    died: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    disbanded: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    biography: Mapped[str] = mapped_column(Text, default="", nullable=False)
    path: Mapped[str] = mapped_column(String(1024), default="", nullable=False)
    nfo_exists: Mapped[bool] = mapped_column(default=False, nullable=False)
    thumb_exists: Mapped[bool] = mapped_column(default=False, nullable=False)
    fanart_exists: Mapped[bool] = mapped_column(default=False, nullable=False)
    logo_exists: Mapped[bool] = mapped_column(default=False, nullable=False)
    banner_exists: Mapped[bool] = mapped_column(default=False, nullable=False)
    health_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    is_excluded: Mapped[bool] = mapped_column(default=False, nullable=False, index=True)
    exclusion_reason: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    is_classical: Mapped[bool] = mapped_column(default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )


class RuleModel(Base):
    """SQLAlchemy model for Rule. The id is the stable rule identifier."""

    __tablename__ = "rules"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    category: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    enabled: Mapped[bool] = mapped_column(default=True, nullable=False)
    automation_mode: Mapped[str] = mapped_column(
        String(20), default="auto", nullable=False
    )  # auto, manual, disabled
    config: Mapped[str] = mapped_column(Text, default="{}", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )


class RuleViolationModel(Base):
    """SQLAlchemy model for a persisted rule violation (the inbox)."""

    __tablename__ = "rule_violations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    rule_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("rules.id", ondelete="CASCADE"), nullable=False
    )
    artist_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("artists.id", ondelete="CASCADE"), nullable=False
    )
    artist_name: Mapped[str] = mapped_column(String(255), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    fixable: Mapped[bool] = mapped_column(default=False, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default="open", nullable=False, index=True
    )  # open, dismissed, resolved, pending_choice
    candidates: Mapped[str | None] = mapped_column(Text, nullable=True)
    dismissed_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    resolved_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("rule_id", "artist_id", name="uq_rule_violations_rule_artist"),
        Index("ix_rule_violations_created_at", "created_at"),
    )


class BulkJobModel(Base):
    """SQLAlchemy model for BulkJob."""

    __tablename__ = "bulk_jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    mode: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    total_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    processed_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    fixed_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    skipped_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error: Mapped[str] = mapped_column(Text, default="", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )
    started_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )


class BulkJobItemModel(Base):
    """SQLAlchemy model for BulkJobItem."""

    __tablename__ = "bulk_job_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    job_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("bulk_jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    artist_id: Mapped[str] = mapped_column(String(36), nullable=False)
    artist_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    message: Mapped[str] = mapped_column(Text, default="", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )


class HealthSnapshotModel(Base):
    """SQLAlchemy model for a library health snapshot."""

    __tablename__ = "health_history"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    total_artists: Mapped[int] = mapped_column(Integer, nullable=False)
    compliant_artists: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False, index=True
    )


class NfoSnapshotModel(Base):
    """Previous artist.nfo content, saved before a fixer overwrites the file."""

    __tablename__ = "nfo_snapshots"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    artist_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )


class AppSettingsModel(Base):
    """Runtime key/value settings (e.g. rule.classical_mode)."""

    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )
