"""Rules - evaluation, fixing and the violation inbox.

Hey future me - the flow is checkers (what is wrong) -> Engine (which enabled rules fail) ->
Pipeline (what to do about it, per automation mode) -> fixers (actually doing it).
RuleService, BulkService and InboxService are what the API talks to.
"""

from catalogaudit.application.services.rules.bulk_service import BulkService
from catalogaudit.application.services.rules.checkers import build_checkers, default_rules
from catalogaudit.application.services.rules.engine import Engine, get_classical_mode
from catalogaudit.application.services.rules.fixers import (
    ExtraneousImagesFixer,
    Fixer,
    LogoTrimFixer,
    MetadataFixer,
    NFOFixer,
)
from catalogaudit.application.services.rules.image_fixer import (
    ImageFixer,
    apply_image_candidate,
)
from catalogaudit.application.services.rules.inbox_service import InboxService
from catalogaudit.application.services.rules.pipeline import (
    Pipeline,
    decide_persisted_status,
)
from catalogaudit.application.services.rules.rule_service import (
    RuleService,
    compute_library_health,
)
from catalogaudit.application.services.rules.runner import ScopedPipelineRunner

__all__ = [
    "BulkService",
    "Engine",
    "ExtraneousImagesFixer",
    "Fixer",
    "ImageFixer",
    "InboxService",
    "LogoTrimFixer",
    "MetadataFixer",
    "NFOFixer",
    "Pipeline",
    "RuleService",
    "ScopedPipelineRunner",
    "apply_image_candidate",
    "build_checkers",
    "compute_library_health",
    "decide_persisted_status",
    "default_rules",
    "get_classical_mode",
]
