# pathway/triggers/detector.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from pathway.errors import TransientStorageError
from pathway.intake import rules
from pathway.intake.rules import keyword_pattern
from pathway.triggers.events import EventType, Priority, TriggerEvent

logger = logging.getLogger(__name__)


# Tone -> priority of the emotional_tone_flag it raises.
RISK_TONES: Dict[str, Priority] = {
    rules.TONE_SAD: Priority.HIGH,
    rules.TONE_OVERWHELMED: Priority.MEDIUM,
    rules.TONE_ANGRY: Priority.MEDIUM,
}

LIFE_EVENTS = {
    "jail_release": keyword_pattern(
        "just got out", "got released", "released from jail", "out of prison",
        "jail release", "just came home",
    ),
    "motel_eviction": keyword_pattern("evicted", "eviction", "kicked out of the motel"),
    "job_loss": keyword_pattern("lost my job", "got fired", "laid off", "job loss"),
    "missed_po_appointment": keyword_pattern(
        "missed my parole", "missed my appointment", "missed po appointment",
        exact=("missed my po",),
    ),
    "shelter_intake": keyword_pattern("shelter intake", "going to a shelter", "into a shelter"),
    "child_reunification": keyword_pattern(
        "get my kids back", "custody", "reunification", "see my kids again",
    ),
}

RELATIONSHIP_STRESS = keyword_pattern(
    "fight", "fighting", "cut off", "cut me off", "tired of people", "broke up",
)

# (threshold, payload type, priority), checked independently.
ACTIVITY_GAP_THRESHOLDS: Tuple[Tuple[timedelta, str, Priority], ...] = (
    (timedelta(hours=48), "no_reflection_48hrs", Priority.MEDIUM),
    (timedelta(hours=72), "no_app_login_3days", Priority.HIGH),
)


class TriggerDetector:
    """
    Scans every turn for outreach signals, whatever the conversation is doing.
    """

    def __init__(self, log=None):
        self.log = log

    def detect(self, user_id: str, utterance: str, emotional_tone: str) -> List[TriggerEvent]:
        events: List[TriggerEvent] = []

        priority = RISK_TONES.get(emotional_tone)
        if priority is not None:
            events.append(
                TriggerEvent(
                    user_id=user_id,
                    event_type=EventType.EMOTIONAL_TONE_FLAG,
                    payload={"tone": emotional_tone, "transcript": utterance},
                    priority=priority,
                )
            )

        for event_name, pattern in LIFE_EVENTS.items():
            if pattern.search(utterance):
                events.append(
                    TriggerEvent(
                        user_id=user_id,
                        event_type=EventType.LIFE_EVENT,
                        payload={"event": event_name, "transcript": utterance},
                        priority=Priority.HIGH,
                    )
                )

        if RELATIONSHIP_STRESS.search(utterance):
            events.append(
                TriggerEvent(
                    user_id=user_id,
                    event_type=EventType.EMOTIONAL_TONE_FLAG,
                    payload={"relationship_stress": True, "transcript": utterance},
                    priority=Priority.MEDIUM,
                )
            )

        if events:
            logger.info(
                "Detected %d trigger(s) for %s: %s",
                len(events), user_id, [e.event_type.value for e in events],
            )
        return events

    def check_activity_gaps(
        self,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> List[TriggerEvent]:
        """
        Periodic check, independent of conversational turns.
        A user with no interaction at all trips every threshold.
        """
        if self.log is None:
            return []
        now = now or datetime.now(timezone.utc)

        try:
            last_seen = self.log.last_interaction_at(user_id)
        except TransientStorageError as e:
            logger.error("Error checking activity gaps for %s: %s", user_id, e)
            return []

        events: List[TriggerEvent] = []
        for threshold, gap_type, priority in ACTIVITY_GAP_THRESHOLDS:
            if last_seen is None or now - last_seen >= threshold:
                payload = {"type": gap_type}
                if last_seen is not None:
                    payload["last_seen"] = last_seen.isoformat()
                events.append(
                    TriggerEvent(
                        user_id=user_id,
                        event_type=EventType.ACTIVITY_GAP,
                        payload=payload,
                        priority=priority,
                    )
                )
        return events
