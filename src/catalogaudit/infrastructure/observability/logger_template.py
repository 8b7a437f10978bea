"""Shared logging helpers for long-running operations.

USAGE:
    from catalogaudit.infrastructure.observability.logger_template import (
        log_operation,
        log_worker_health,
    )

    async with log_operation(logger, "rules.run_all"):
        result = await pipeline.run_all()

    log_worker_health(logger, "rule_scheduler", cycles_completed=10, errors_total=0, uptime_seconds=3600)
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any


# Yo, this logs {operation}.started / .completed / .failed with duration_ms. On failure it logs
# with exc_info and re-raises, the caller still decides what the error means.
@asynccontextmanager
async def log_operation(
    logger: logging.Logger,
    operation: str,
    **context: Any,
) -> AsyncIterator[None]:
    """Context manager for logging operation start/end with automatic timing.

    Args:
        logger: Module logger
        operation: Operation name (e.g., "rules.run_rule", "bulk.fetch_images")
        **context: Additional fields for every log line (e.g., rule_id="thumb_min_res")
    """
    start = time.monotonic()
    logger.info(f"{operation}.started", extra=context)

    try:
        yield
    except Exception as e:
        duration_ms = int((time.monotonic() - start) * 1000)
        logger.error(
            f"{operation}.failed",
            extra={
                **context,
                "duration_ms": duration_ms,
                "error": str(e),
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )
        raise

    duration_ms = int((time.monotonic() - start) * 1000)
    logger.info(f"{operation}.completed", extra={**context, "duration_ms": duration_ms})


def log_worker_health(
    logger: logging.Logger,
    worker_name: str,
    cycles_completed: int,
    errors_total: int,
    uptime_seconds: float,
    extra_stats: dict[str, Any] | None = None,
) -> None:
    """Log worker health status in consistent format.

    Args:
        logger: Logger instance
        worker_name: Worker identifier (e.g., "rule_scheduler")
        cycles_completed: Total cycles completed since start
        errors_total: Total errors encountered since start
        uptime_seconds: Seconds since worker started
        extra_stats: Optional dict of additional stats to include in log
    """
    log_data: dict[str, Any] = {
        "worker": worker_name,
        "cycles_completed": cycles_completed,
        "errors_total": errors_total,
        "uptime_seconds": int(uptime_seconds),
    }
    if extra_stats:
        log_data.update(extra_stats)

    logger.info("worker.health", extra=log_data)
