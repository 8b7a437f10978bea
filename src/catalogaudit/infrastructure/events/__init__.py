"""Application event bus."""

from catalogaudit.infrastructure.events.event_bus import EventBus, EventHandler

__all__ = ["EventBus", "EventHandler"]
