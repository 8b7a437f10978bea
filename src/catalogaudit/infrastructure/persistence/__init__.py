"""Persistence layer - SQLAlchemy async engine, models and repositories."""

from catalogaudit.infrastructure.persistence.database import Database
from catalogaudit.infrastructure.persistence.repositories import (
    AppSettingsRepository,
    ArtistRepository,
    BulkJobRepository,
    HealthSnapshotRepository,
    NfoSnapshotRepository,
    RuleRepository,
    ViolationRepository,
)

__all__ = [
    "AppSettingsRepository",
    "ArtistRepository",
    "BulkJobRepository",
    "Database",
    "HealthSnapshotRepository",
    "NfoSnapshotRepository",
    "RuleRepository",
    "ViolationRepository",
]
