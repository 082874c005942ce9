# pathway/triggers/events.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class EventType(str, Enum):
    LIFE_EVENT = "life_event"
    EMOTIONAL_TONE_FLAG = "emotional_tone_flag"
    ACTIVITY_GAP = "activity_gap"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class TriggerEvent:
    user_id: str
    event_type: EventType
    payload: Dict[str, Any] = field(default_factory=dict)
    priority: Priority = Priority.MEDIUM

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "event_type": self.event_type.value,
            "payload": dict(self.payload),
            "priority": self.priority.value,
        }
