"""Rule, violation and evaluation entities."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

# Rule identifiers. These are stable: they are primary keys of the rules table
# and keys of persisted violations.
RULE_NFO_EXISTS = "nfo_exists"
RULE_NFO_HAS_MBID = "nfo_has_mbid"
RULE_THUMB_EXISTS = "thumb_exists"
RULE_THUMB_SQUARE = "thumb_square"
RULE_THUMB_MIN_RES = "thumb_min_res"
RULE_FANART_EXISTS = "fanart_exists"
RULE_LOGO_EXISTS = "logo_exists"
RULE_BIO_EXISTS = "bio_exists"
RULE_FANART_MIN_RES = "fanart_min_res"
RULE_FANART_ASPECT = "fanart_aspect"
RULE_LOGO_MIN_RES = "logo_min_res"
RULE_BANNER_EXISTS = "banner_exists"
RULE_BANNER_MIN_RES = "banner_min_res"
RULE_ARTIST_ID_MISMATCH = "artist_id_mismatch"
RULE_LOGO_TRIMMABLE = "logo_trimmable"
RULE_EXTRANEOUS_IMAGES = "extraneous_images"


class AutomationMode(str, Enum):
    """How the fix pipeline treats violations of a rule."""

    AUTO = "auto"
    MANUAL = "manual"
    DISABLED = "disabled"

    @classmethod
    def parse(cls, value: str | AutomationMode | None) -> AutomationMode:
        """Parse a stored mode; legacy "inbox"/"notify" mean manual, empty means auto."""
        if isinstance(value, AutomationMode):
            return value
        if not value:
            return cls.AUTO
        normalized = value.strip().lower()
        if normalized in ("inbox", "notify"):
            return cls.MANUAL
        try:
            return cls(normalized)
        except ValueError as e:
            raise ValueError(f"Unknown automation mode: {value}") from e


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ViolationStatus(str, Enum):
    """Lifecycle of a persisted violation."""

    OPEN = "open"
    DISMISSED = "dismissed"
    RESOLVED = "resolved"
    PENDING_CHOICE = "pending_choice"


class ClassicalMode(str, Enum):
    """How classical-music artists are evaluated."""

    SKIP = "skip"  # no evaluation, health 100
    COMPOSER = "composer"
    PERFORMER = "performer"


@dataclass
class RuleConfig:
    """Acceptance criteria of a rule.

    Zero values mean "use the checker default" and are omitted when
    serialized. discovery_only is set by the pipeline for a single fix
    attempt and is never persisted.
    """

    min_width: int = 0
    min_height: int = 0
    aspect_ratio: float = 0.0
    tolerance: float = 0.0
    min_length: int = 0
    severity: str = ""
    threshold_percent: float = 0.0
    select_best_candidate: bool = False
    discovery_only: bool = False

    _PERSISTED = (
        "min_width",
        "min_height",
        "aspect_ratio",
        "tolerance",
        "min_length",
        "severity",
        "threshold_percent",
        "select_best_candidate",
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            name: getattr(self, name) for name in self._PERSISTED if getattr(self, name)
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> RuleConfig:
        if not data:
            return cls()
        return cls(**{k: v for k, v in data.items() if k in cls._PERSISTED})

    @classmethod
    def from_json(cls, data: str | None) -> RuleConfig:
        if not data or data == "{}":
            return cls()
        return cls.from_dict(json.loads(data))

    def copy(self) -> RuleConfig:
        return RuleConfig(
            **{name: getattr(self, name) for name in self._PERSISTED},
            discovery_only=self.discovery_only,
        )

    @property
    def effective_severity(self) -> str:
        return self.severity or Severity.WARNING.value


@dataclass
class Rule:
    """A compliance rule. Created by seeding, configured by the user, never deleted."""

    id: str
    name: str
    description: str = ""
    category: str = ""
    enabled: bool = True
    automation_mode: AutomationMode = AutomationMode.AUTO
    config: RuleConfig = field(default_factory=RuleConfig)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class Violation:
    """A single rule failure for an artist, produced by a checker."""

    rule_id: str
    rule_name: str
    category: str
    severity: str
    message: str
    fixable: bool
    config: RuleConfig | None = None


@dataclass(frozen=True)
class ImageCandidate:
    """An image offered by a provider. 0x0 means the provider did not declare dimensions."""

    url: str
    width: int = 0
    height: int = 0
    source: str = ""
    image_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "width": self.width,
            "height": self.height,
            "source": self.source,
            "image_type": self.image_type,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ImageCandidate:
        return cls(
            url=data["url"],
            width=int(data.get("width") or 0),
            height=int(data.get("height") or 0),
            source=data.get("source", ""),
            image_type=data.get("image_type", ""),
        )


def candidates_to_json(candidates: list[ImageCandidate]) -> str | None:
    if not candidates:
        return None
    return json.dumps([c.to_dict() for c in candidates])


def candidates_from_json(data: str | None) -> list[ImageCandidate]:
    if not data:
        return []
    return [ImageCandidate.from_dict(item) for item in json.loads(data)]


# Hey future me - the candidates/status invariant lives HERE, not in the pipeline. A pending_choice
# row without candidates is useless to the UI (nothing to pick), and candidates on any other status
# are stale. Every transition goes through a method that keeps both fields in sync.
@dataclass
class RuleViolation:
    """A persisted violation in the inbox, keyed by (rule_id, artist_id)."""

    rule_id: str
    artist_id: str
    artist_name: str
    severity: str
    message: str
    fixable: bool
    status: ViolationStatus = ViolationStatus.OPEN
    candidates: list[ImageCandidate] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid4()))
    dismissed_at: datetime | None = None
    resolved_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        """Validate status/candidates consistency."""
        self.status = ViolationStatus(self.status)
        if self.status == ViolationStatus.PENDING_CHOICE and not self.candidates:
            raise ValueError("pending_choice violation requires at least one candidate")
        if self.status != ViolationStatus.PENDING_CHOICE and self.candidates:
            raise ValueError(f"{self.status.value} violation cannot carry candidates")

    @property
    def is_active(self) -> bool:
        return self.status in (ViolationStatus.OPEN, ViolationStatus.PENDING_CHOICE)

    def dismiss(self) -> None:
        self.status = ViolationStatus.DISMISSED
        self.candidates = []
        self.dismissed_at = datetime.now(UTC)
        self.updated_at = self.dismissed_at

    def resolve(self) -> None:
        self.status = ViolationStatus.RESOLVED
        self.candidates = []
        self.resolved_at = datetime.now(UTC)
        self.updated_at = self.resolved_at


@dataclass
class EvaluationResult:
    """Outcome of running all enabled rules against one artist."""

    artist_id: str
    artist_name: str
    violations: list[Violation] = field(default_factory=list)
    rules_passed: int = 0
    rules_total: int = 0
    health_score: float = 100.0

    @staticmethod
    def compute_health_score(passed: int, total: int) -> float:
        """round(passed / total * 100, 1); an artist with nothing to check is fully healthy."""
        if total <= 0:
            return 100.0
        return round(passed / total * 100, 1)


@dataclass
class FixResult:
    """Outcome of one fix attempt."""

    rule_id: str
    fixed: bool
    message: str
    candidates: list[ImageCandidate] = field(default_factory=list)


@dataclass
class RunResult:
    """Aggregate outcome of a pipeline run."""

    artists_processed: int = 0
    violations_found: int = 0
    fixes_attempted: int = 0
    fixes_succeeded: int = 0
    results: list[FixResult] = field(default_factory=list)


@dataclass
class HealthSnapshot:
    """A recorded library-wide health score."""

    total_artists: int
    compliant_artists: int
    score: float
    id: str = field(default_factory=lambda: str(uuid4()))
    recorded_at: datetime = field(default_factory=lambda: datetime.now(UTC))
