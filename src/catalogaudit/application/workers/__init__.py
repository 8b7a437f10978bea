"""Worker system - background jobs."""

from catalogaudit.application.workers.bulk_executor import BulkExecutor
from catalogaudit.application.workers.rule_scheduler_worker import RuleSchedulerWorker

__all__ = ["BulkExecutor", "RuleSchedulerWorker"]
