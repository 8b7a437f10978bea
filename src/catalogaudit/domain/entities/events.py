"""Application events."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class EventType(str, Enum):
    ARTIST_NEW = "artist.new"
    METADATA_FIXED = "metadata.fixed"
    REVIEW_NEEDED = "review.needed"
    RULE_VIOLATION = "rule.violation"
    BULK_COMPLETED = "bulk.completed"
    SCAN_COMPLETED = "scan.completed"


@dataclass
class Event:
    """A published event. A missing timestamp is filled in by the bus."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime | None = None
