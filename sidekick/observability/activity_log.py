"""
Activity log for character sessions.

Records rolls, resource changes, selections, level-ups and rests as typed
events. Each CharacterService owns its own log instance; the log is bounded
and drops the oldest events once it is full.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional
import json
import logging

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Types of events that can be logged."""

    ROLL = "roll"
    RESOURCE = "resource"
    SELECTION = "selection"
    LEVEL_UP = "level_up"
    REST = "rest"
    CUSTOM = "custom"


@dataclass
class LogEvent:
    """Base class for all logged events."""

    # Subclasses set event_type in __post_init__
    event_type: EventType = EventType.CUSTOM
    timestamp: datetime = field(default_factory=datetime.now)
    sequence_number: int = 0
    character_id: str = ""
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "sequence_number": self.sequence_number,
            "character_id": self.character_id,
            "context": self.context,
        }

    @classmethod
    def _base_kwargs(cls, data: dict[str, Any]) -> dict[str, Any]:
        return {
            "timestamp": datetime.fromisoformat(data["timestamp"]),
            "sequence_number": data.get("sequence_number", 0),
            "character_id": data.get("character_id", ""),
            "context": data.get("context", {}),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LogEvent":
        return cls(event_type=EventType(data["event_type"]), **cls._base_kwargs(data))


@dataclass
class RollEvent(LogEvent):
    """A dice formula evaluation."""

    formula: str = ""
    rolls: list[int] = field(default_factory=list)
    total: int = 0
    breakdown: str = ""
    is_critical: bool = False
    is_fumble: bool = False
    reason: str = ""

    def __post_init__(self):
        self.event_type = EventType.ROLL

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update({
            "formula": self.formula,
            "rolls": self.rolls,
            "total": self.total,
            "breakdown": self.breakdown,
            "is_critical": self.is_critical,
            "is_fumble": self.is_fumble,
            "reason": self.reason,
        })
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RollEvent":
        return cls(
            formula=data.get("formula", ""),
            rolls=data.get("rolls", []),
            total=data.get("total", 0),
            breakdown=data.get("breakdown", ""),
            is_critical=data.get("is_critical", False),
            is_fumble=data.get("is_fumble", False),
            reason=data.get("reason", ""),
            **cls._base_kwargs(data),
        )

    def __str__(self) -> str:
        flags = " CRIT" if self.is_critical else ""
        flags += " FUMBLE" if self.is_fumble else ""
        reason = f" ({self.reason})" if self.reason else ""
        return f"[ROLL] {self.breakdown}{flags}{reason}"


@dataclass
class ResourceEvent(LogEvent):
    """A resource spend, restore or explicit set."""

    resource_id: str = ""
    action: str = ""            # spend, restore, set
    amount: int = 0
    old_value: int = 0
    new_value: int = 0

    def __post_init__(self):
        self.event_type = EventType.RESOURCE

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update({
            "resource_id": self.resource_id,
            "action": self.action,
            "amount": self.amount,
            "old_value": self.old_value,
            "new_value": self.new_value,
        })
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResourceEvent":
        return cls(
            resource_id=data.get("resource_id", ""),
            action=data.get("action", ""),
            amount=data.get("amount", 0),
            old_value=data.get("old_value", 0),
            new_value=data.get("new_value", 0),
            **cls._base_kwargs(data),
        )

    def __str__(self) -> str:
        return f"[RESOURCE] {self.action} {self.amount} {self.resource_id}: {self.old_value} -> {self.new_value}"


@dataclass
class SelectionEvent(LogEvent):
    """A trait selection added or removed."""

    trait_id: str = ""
    action: str = ""            # add, remove, nested
    option_id: str = ""

    def __post_init__(self):
        self.event_type = EventType.SELECTION

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update({
            "trait_id": self.trait_id,
            "action": self.action,
            "option_id": self.option_id,
        })
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SelectionEvent":
        return cls(
            trait_id=data.get("trait_id", ""),
            action=data.get("action", ""),
            option_id=data.get("option_id", ""),
            **cls._base_kwargs(data),
        )

    def __str__(self) -> str:
        return f"[SELECTION] {self.action} {self.option_id} on {self.trait_id}"


@dataclass
class LevelUpEvent(LogEvent):
    """A character advanced a level."""

    old_level: int = 0
    new_level: int = 0
    hp_gained: int = 0

    def __post_init__(self):
        self.event_type = EventType.LEVEL_UP

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update({
            "old_level": self.old_level,
            "new_level": self.new_level,
            "hp_gained": self.hp_gained,
        })
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LevelUpEvent":
        return cls(
            old_level=data.get("old_level", 0),
            new_level=data.get("new_level", 0),
            hp_gained=data.get("hp_gained", 0),
            **cls._base_kwargs(data),
        )

    def __str__(self) -> str:
        return f"[LEVEL UP] {self.old_level} -> {self.new_level} (+{self.hp_gained} HP)"


@dataclass
class RestEvent(LogEvent):
    """A turn end, encounter end or safe rest."""

    condition: str = ""
    reset_resources: list[str] = field(default_factory=list)

    def __post_init__(self):
        self.event_type = EventType.REST

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update({
            "condition": self.condition,
            "reset_resources": self.reset_resources,
        })
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RestEvent":
        return cls(
            condition=data.get("condition", ""),
            reset_resources=data.get("reset_resources", []),
            **cls._base_kwargs(data),
        )

    def __str__(self) -> str:
        return f"[REST] {self.condition}"


EVENT_CLASSES: dict[EventType, type] = {
    EventType.ROLL: RollEvent,
    EventType.RESOURCE: ResourceEvent,
    EventType.SELECTION: SelectionEvent,
    EventType.LEVEL_UP: LevelUpEvent,
    EventType.REST: RestEvent,
}


def event_from_dict(data: dict[str, Any]) -> LogEvent:
    event_class = EVENT_CLASSES.get(EventType(data["event_type"]), LogEvent)
    return event_class.from_dict(data)


class ActivityLog:
    """
    Bounded, in-memory log of character activity.

    Usage:
        log = ActivityLog(limit=100)
        log.subscribe(print)
        log.log_roll("1d20", [14], 14, "1d20 [14] = 14")
    """

    def __init__(self, limit: int = 100):
        self.limit = limit
        self._events: list[LogEvent] = []
        self._sequence: int = 0
        self._subscribers: list[Callable[[LogEvent], None]] = []

    def clear(self) -> None:
        self._events = []
        self._sequence = 0
        logger.debug("Activity log cleared")

    def subscribe(self, callback: Callable[[LogEvent], None]) -> None:
        """Subscribe to receive events as they are logged."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[LogEvent], None]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _log_event(self, event: LogEvent) -> LogEvent:
        self._sequence += 1
        event.sequence_number = self._sequence
        self._events.append(event)
        if self.limit > 0 and len(self._events) > self.limit:
            del self._events[: len(self._events) - self.limit]

        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception as e:
                logger.warning(f"Subscriber error: {e}")
        return event

    def log_roll(
        self,
        formula: str,
        rolls: list[int],
        total: int,
        breakdown: str,
        is_critical: bool = False,
        is_fumble: bool = False,
        reason: str = "",
        character_id: str = "",
    ) -> RollEvent:
        """Log a dice roll."""
        return self._log_event(RollEvent(
            formula=formula,
            rolls=list(rolls),
            total=total,
            breakdown=breakdown,
            is_critical=is_critical,
            is_fumble=is_fumble,
            reason=reason,
            character_id=character_id,
        ))

    def log_resource(
        self,
        resource_id: str,
        action: str,
        amount: int,
        old_value: int,
        new_value: int,
        character_id: str = "",
    ) -> ResourceEvent:
        return self._log_event(ResourceEvent(
            resource_id=resource_id,
            action=action,
            amount=amount,
            old_value=old_value,
            new_value=new_value,
            character_id=character_id,
        ))

    def log_selection(
        self, trait_id: str, action: str, option_id: str = "", character_id: str = ""
    ) -> SelectionEvent:
        return self._log_event(SelectionEvent(
            trait_id=trait_id, action=action, option_id=option_id, character_id=character_id
        ))

    def log_level_up(
        self, old_level: int, new_level: int, hp_gained: int = 0, character_id: str = ""
    ) -> LevelUpEvent:
        return self._log_event(LevelUpEvent(
            old_level=old_level, new_level=new_level, hp_gained=hp_gained, character_id=character_id
        ))

    def log_rest(
        self, condition: str, reset_resources: Optional[list[str]] = None, character_id: str = ""
    ) -> RestEvent:
        return self._log_event(RestEvent(
            condition=condition,
            reset_resources=list(reset_resources or []),
            character_id=character_id,
        ))

    def get_events(
        self,
        event_type: Optional[EventType] = None,
        since_sequence: int = 0,
    ) -> list[LogEvent]:
        """
        Get logged events.

        Args:
            event_type: Filter by event type (None = all)
            since_sequence: Only events after this sequence number
        """
        events = [e for e in self._events if e.sequence_number > since_sequence]
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        return events

    def get_rolls(self) -> list[RollEvent]:
        return [e for e in self._events if isinstance(e, RollEvent)]

    def get_event_count(self) -> int:
        return len(self._events)

    def to_dict(self) -> dict[str, Any]:
        return {
            "limit": self.limit,
            "sequence": self._sequence,
            "events": [e.to_dict() for e in self._events],
        }

    def export_json(self, indent: int = 2) -> str:
        """Serialize the log to JSON."""
        return json.dumps(self.to_dict(), indent=indent, default=str)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActivityLog":
        log = cls(limit=data.get("limit", 100))
        log._sequence = data.get("sequence", 0)
        log._events = [event_from_dict(e) for e in data.get("events", [])]
        return log

    def format_log(self, max_events: Optional[int] = None) -> str:
        """Format the most recent events as readable lines."""
        events = self._events[-max_events:] if max_events else self._events
        return "\n".join(f"#{e.sequence_number} {e}" for e in events)
