"""Application lifecycle management for startup and shutdown tasks.

Startup order: logging -> database (tables, rule seeding) -> event bus -> bulk executor
-> rule scheduler. Shutdown runs the same list backwards; every step is attempted even if
an earlier one fails, so the database always gets closed.

Everything routes need lives on app.state:
    db, settings, provider, naming, downloader, event_bus, runner, bulk_executor,
    rule_scheduler (None when the scheduler interval is 0)
"""

import functools
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from catalogaudit.application.services.rules.rule_service import RuleService
from catalogaudit.application.services.rules.runner import ScopedPipelineRunner
from catalogaudit.application.workers.bulk_executor import BulkExecutor
from catalogaudit.application.workers.rule_scheduler_worker import RuleSchedulerWorker
from catalogaudit.config import Settings
from catalogaudit.domain.entities import ClassicalMode
from catalogaudit.domain.ports import IMetadataProvider
from catalogaudit.domain.value_objects import ImageNaming
from catalogaudit.infrastructure.events import EventBus
from catalogaudit.infrastructure.integrations.http_pool import HttpClientPool
from catalogaudit.infrastructure.integrations.image_download import fetch_image_url
from catalogaudit.infrastructure.observability import configure_logging
from catalogaudit.infrastructure.persistence import (
    Database,
    RuleRepository,
    ViolationRepository,
)

logger = logging.getLogger(__name__)


async def _seed_rules(db: Database) -> None:
    async with db.session_scope() as session:
        await RuleService(RuleRepository(session), ViolationRepository(session)).seed_defaults()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Reads settings and the metadata provider from app.state (set by create_app).
    """
    settings: Settings = app.state.settings
    provider: IMetadataProvider = app.state.provider

    configure_logging(
        log_level=settings.observability.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting application: %s", settings.app_name)

    db = Database(settings)
    app.state.db = db
    event_bus = EventBus()
    app.state.event_bus = event_bus
    bulk_executor: BulkExecutor | None = None
    scheduler: RuleSchedulerWorker | None = None
    app.state.rule_scheduler = None

    try:
        await db.create_tables()
        await _seed_rules(db)

        naming = ImageNaming.for_profile(settings.library.platform_profile)
        downloader = functools.partial(
            fetch_image_url,
            max_bytes=settings.images.max_download_bytes,
            timeout=settings.images.download_timeout_seconds,
        )
        app.state.naming = naming
        app.state.downloader = downloader

        await event_bus.start()

        runner = ScopedPipelineRunner(
            db,
            provider,
            naming=naming,
            event_publisher=event_bus,
            page_size=settings.rules.page_size,
            classical_default=ClassicalMode(settings.library.classical_mode_default),
            downloader=downloader,
            max_dimension=settings.images.max_dimension,
            jpeg_quality=settings.images.jpeg_quality,
        )
        app.state.runner = runner

        bulk_executor = BulkExecutor(
            db,
            provider,
            naming=naming,
            event_publisher=event_bus,
            progress_every=settings.rules.bulk_progress_every,
            downloader=downloader,
            max_dimension=settings.images.max_dimension,
        )
        app.state.bulk_executor = bulk_executor

        if settings.rules.scheduler_interval_hours > 0:
            scheduler = RuleSchedulerWorker(
                runner, settings.rules.scheduler_interval_hours * 3600
            )
            await scheduler.start()
            app.state.rule_scheduler = scheduler
        else:
            logger.info("Rule scheduler disabled (interval 0)")

        yield

    finally:
        logger.info("Shutting down application")

        if scheduler is not None:
            try:
                await scheduler.stop()
            except Exception as e:
                logger.exception("Error stopping rule scheduler: %s", e)

        if bulk_executor is not None:
            try:
                await bulk_executor.shutdown()
            except Exception as e:
                logger.exception("Error stopping bulk executor: %s", e)

        try:
            await event_bus.stop()
        except Exception as e:
            logger.exception("Error stopping event bus: %s", e)

        try:
            await HttpClientPool.close()
        except Exception as e:
            logger.exception("Error closing HTTP client pool: %s", e)

        try:
            await db.close()
            logger.info("Database connection closed")
        except Exception as e:
            logger.exception("Error closing database: %s", e)
