"""Activity logging for character sessions."""

from sidekick.observability.activity_log import (
    ActivityLog,
    EventType,
    LevelUpEvent,
    LogEvent,
    ResourceEvent,
    RestEvent,
    RollEvent,
    SelectionEvent,
    event_from_dict,
)

__all__ = [
    "ActivityLog",
    "EventType",
    "LevelUpEvent",
    "LogEvent",
    "ResourceEvent",
    "RestEvent",
    "RollEvent",
    "SelectionEvent",
    "event_from_dict",
]
