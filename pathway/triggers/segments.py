# pathway/triggers/segments.py
"""
Outreach segments: which message an event should lead to.

Selection only picks the template; whether an event fires at all is the
detector's decision.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pathway.triggers.events import EventType, TriggerEvent


@dataclass(frozen=True)
class Segment:
    name: str
    entry_condition: str
    action: str
    message_template: str


MESSAGE_TEMPLATES = {
    "warm_checkin": (
        "Just checking in, you've been on my mind. "
        "Want to pause and take 2 minutes to reflect with me?"
    ),
    "goal_nudge": "You set a goal that matters. Let's take one small step today. I'll guide you.",
    "healing_prompt": (
        "If a relationship has been heavy, we can talk about it with no judgment. "
        "I'll help you sort it out."
    ),
    "reentry_reset": (
        "Fresh start moments can be messy. Let's build your plan together. "
        "You don't have to figure it all out alone."
    ),
    "milestone_celebration": (
        "You just hit {milestone} points. Every one of those came from you showing up. "
        "Take a second to feel that."
    ),
}

EMOTIONAL_CHECK = Segment(
    name="Emotional Check Needed",
    entry_condition="emotional tone flagged as a risk",
    action="Send caring check-in prompt and offer a journal session",
    message_template=MESSAGE_TEMPLATES["warm_checkin"],
)
POST_RELEASE = Segment(
    name="Post-Jail Release",
    entry_condition="life_event = 'jail_release'",
    action="Send stabilization-focused prompts: housing, immediate needs, mindset",
    message_template=MESSAGE_TEMPLATES["reentry_reset"],
)
GOAL_REMINDER = Segment(
    name="Goal Reminder Needed",
    entry_condition="no reflection or login in 48-72 hrs",
    action="Send nudge to revisit current goal and take a small step",
    message_template=MESSAGE_TEMPLATES["goal_nudge"],
)
RELATIONSHIP_STRESS = Segment(
    name="Relationship Stress Detected",
    entry_condition="text mentions a fight, being cut off, or being tired of people",
    action="Send reflection prompt on healing or boundaries",
    message_template=MESSAGE_TEMPLATES["healing_prompt"],
)
MILESTONE = Segment(
    name="Milestone Reached",
    entry_condition="score crosses 25/50/75/100",
    action="Send celebration message",
    message_template=MESSAGE_TEMPLATES["milestone_celebration"],
)

SEGMENTS = (EMOTIONAL_CHECK, POST_RELEASE, GOAL_REMINDER, RELATIONSHIP_STRESS, MILESTONE)


def match_segment(event: TriggerEvent) -> Optional[Segment]:
    payload = event.payload
    if event.event_type == EventType.EMOTIONAL_TONE_FLAG:
        if payload.get("relationship_stress"):
            return RELATIONSHIP_STRESS
        return EMOTIONAL_CHECK
    if event.event_type == EventType.LIFE_EVENT:
        if "milestone" in payload:
            return MILESTONE
        if payload.get("event") == "jail_release":
            return POST_RELEASE
        return EMOTIONAL_CHECK
    if event.event_type == EventType.ACTIVITY_GAP:
        return GOAL_REMINDER
    return None


def render_message(event: TriggerEvent) -> Optional[str]:
    segment = match_segment(event)
    if segment is None:
        return None
    if "milestone" in event.payload:
        return segment.message_template.format(milestone=event.payload["milestone"])
    return segment.message_template
