"""Dependency injection for API endpoints."""

from collections.abc import AsyncGenerator
from typing import cast

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from catalogaudit.application.services.rules.bulk_service import BulkService
from catalogaudit.application.services.rules.inbox_service import InboxService
from catalogaudit.application.services.rules.rule_service import RuleService
from catalogaudit.application.services.rules.runner import ScopedPipelineRunner
from catalogaudit.application.workers.bulk_executor import BulkExecutor
from catalogaudit.config import Settings
from catalogaudit.domain.entities import ClassicalMode
from catalogaudit.infrastructure.persistence import (
    AppSettingsRepository,
    ArtistRepository,
    BulkJobRepository,
    Database,
    HealthSnapshotRepository,
    RuleRepository,
    ViolationRepository,
)


def _state(request: Request, name: str) -> object:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail=f"{name} not initialized")
    return value


def get_app_settings(request: Request) -> Settings:
    return cast(Settings, _state(request, "settings"))


# Hey future me - one session per request, committed by session_scope() when the endpoint
# returns without raising. Services and repositories never commit on their own.
async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    db = cast(Database, _state(request, "db"))
    async with db.session_scope() as session:
        yield session


def get_runner(request: Request) -> ScopedPipelineRunner:
    return cast(ScopedPipelineRunner, _state(request, "runner"))


def get_bulk_executor(request: Request) -> BulkExecutor:
    return cast(BulkExecutor, _state(request, "bulk_executor"))


def get_rule_service(
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_app_settings),
) -> RuleService:
    return RuleService(
        RuleRepository(session),
        ViolationRepository(session),
        HealthSnapshotRepository(session),
        AppSettingsRepository(session),
        classical_default=ClassicalMode(settings.library.classical_mode_default),
    )


def get_bulk_service(session: AsyncSession = Depends(get_db_session)) -> BulkService:
    return BulkService(BulkJobRepository(session))


def get_inbox_service(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
    runner: ScopedPipelineRunner = Depends(get_runner),
    settings: Settings = Depends(get_app_settings),
) -> InboxService:
    return InboxService(
        ViolationRepository(session),
        ArtistRepository(session),
        engine=runner.build_engine(session),
        naming=runner.naming,
        downloader=getattr(request.app.state, "downloader", None),
        max_dimension=settings.images.max_dimension,
    )
