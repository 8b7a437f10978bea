"""Rule Scheduler Worker - periodically runs every enabled rule over the library.

Hey future me - this is the "set it and forget it" part. Every interval it calls run_all() on
whatever it was given (in production the ScopedPipelineRunner, so every tick gets its own DB
session). A failed tick is logged and the loop keeps going; the next tick starts from scratch.

stop() sets the stop event BEFORE cancelling, so a run in progress sees it between artists
and returns partial results instead of dying in the middle of a file write.
"""

import asyncio
import contextlib
import logging
import time
from datetime import UTC, datetime
from typing import Any, Protocol

from catalogaudit.domain.entities import RunResult
from catalogaudit.infrastructure.observability.logger_template import log_worker_health

logger = logging.getLogger(__name__)

# Health line every N ticks
_HEALTH_LOG_EVERY = 10


class RunsAllRules(Protocol):
    async def run_all(self, stop_event: asyncio.Event | None = None) -> RunResult: ...


class RuleSchedulerWorker:
    """Background worker that runs the fix pipeline on a fixed interval.

    Lifecycle:
    - Created in the application lifespan when rules.scheduler_interval_hours > 0
    - start() spawns the loop task, stop() ends it
    """

    def __init__(self, pipeline: RunsAllRules, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._pipeline = pipeline
        self._interval = interval_seconds
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self._started_at: float | None = None
        self._stats: dict[str, Any] = {
            "cycles_completed": 0,
            "errors_total": 0,
            "last_run_at": None,
            "last_result": None,
        }

    async def start(self) -> None:
        if self._running:
            logger.warning("RuleSchedulerWorker is already running")
            return
        self._running = True
        self._stop_event = asyncio.Event()
        self._started_at = time.monotonic()
        self._task = asyncio.create_task(self._run_loop(), name="rule-scheduler")
        logger.info("RuleSchedulerWorker started (interval=%ss)", self._interval)

    async def stop(self) -> None:
        self._running = False
        self._stop_event.set()
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("RuleSchedulerWorker stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except TimeoutError:
                pass
            if not self._running or self._stop_event.is_set():
                break
            await self.run_once()

    async def run_once(self) -> RunResult | None:
        """One tick. Errors are logged and counted, never raised."""
        logger.info("Rule scheduler running evaluation")
        try:
            result = await self._pipeline.run_all(self._stop_event)
        except Exception as e:
            self._stats["errors_total"] += 1
            logger.error("Scheduled rule evaluation failed: %s", e, exc_info=True)
            return None

        self._stats["cycles_completed"] += 1
        self._stats["last_run_at"] = datetime.now(UTC).isoformat()
        self._stats["last_result"] = {
            "artists_processed": result.artists_processed,
            "violations_found": result.violations_found,
            "fixes_attempted": result.fixes_attempted,
            "fixes_succeeded": result.fixes_succeeded,
        }
        logger.info(
            "Scheduled rule evaluation complete: %d artists, %d violations, %d/%d fixes",
            result.artists_processed,
            result.violations_found,
            result.fixes_succeeded,
            result.fixes_attempted,
        )
        if self._stats["cycles_completed"] % _HEALTH_LOG_EVERY == 0:
            log_worker_health(
                logger,
                "rule_scheduler",
                cycles_completed=self._stats["cycles_completed"],
                errors_total=self._stats["errors_total"],
                uptime_seconds=time.monotonic() - (self._started_at or time.monotonic()),
            )
        return result

    def get_status(self) -> dict[str, Any]:
        return {
            "name": "Rule Scheduler",
            "running": self._running,
            "interval_seconds": self._interval,
            **self._stats,
        }
