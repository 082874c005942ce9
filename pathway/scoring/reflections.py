# pathway/scoring/reflections.py
"""
Life-domain reflections: the prompts offered for each domain and the points
a reflection earns.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from pathway.intake import rules

REFLECTION_SOURCE = "domain_reflection"

BASE_POINTS = 2
ACTION_STEP_POINTS = 3
BREAKTHROUGH_POINTS = 2
BREAKTHROUGH_TONES = frozenset({rules.TONE_HOPEFUL})


@dataclass(frozen=True)
class ReflectionDomain:
    key: str
    title: str
    purpose: str
    prompts: Tuple[str, ...]


REFLECTION_DOMAINS: Tuple[ReflectionDomain, ...] = (
    ReflectionDomain(
        key="housing",
        title="Housing",
        purpose="Understand housing stability, needs, and progress",
        prompts=(
            "How safe and stable is your current living situation?",
            "What would better housing look like for you?",
            "Have you had to move recently or are worried about it?",
        ),
    ),
    ReflectionDomain(
        key="employment",
        title="Employment",
        purpose="Track job goals, search efforts, stability, and barriers",
        prompts=(
            "What kind of work would feel like a good fit right now?",
            "Are you looking for work, already working, or in between?",
            "What's one thing you could do to move forward this week?",
        ),
    ),
    ReflectionDomain(
        key="health",
        title="Health",
        purpose="Check in on physical and mental health needs and coping strategies",
        prompts=(
            "How's your body been feeling lately? Anything you're ignoring?",
            "What's been affecting your mood the most this week?",
            "Who supports you when you're not feeling okay?",
        ),
    ),
    ReflectionDomain(
        key="legal_justice",
        title="Legal & Justice",
        purpose="Address supervision, court, paperwork, and related stress",
        prompts=(
            "Any upcoming court or PO appointments this week?",
            "What's the most frustrating part of your justice involvement right now?",
            "Need help figuring out any paperwork, fines, or documents?",
        ),
    ),
    ReflectionDomain(
        key="relationships",
        title="Relationships",
        purpose="Explore support networks, conflicts, family connections",
        prompts=(
            "Who's had your back lately?",
            "Any tension or breakdowns in relationships this week?",
            "Want to work on trust, boundaries, or communication?",
        ),
    ),
)

DEFAULT_PROMPTS: Tuple[str, ...] = (
    "How are things going in this area?",
    "What's one step you could take this week?",
    "Any support or resources you need?",
)


def domain_key(name: str) -> str:
    """'Legal & Justice' -> 'legal_justice'."""
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")


def find_domain(name: str) -> Optional[ReflectionDomain]:
    key = domain_key(name)
    for domain in REFLECTION_DOMAINS:
        if key in (domain.key, domain_key(domain.title)):
            return domain
    return None


def domain_prompts(name: str) -> Tuple[str, ...]:
    domain = find_domain(name)
    return domain.prompts if domain is not None else DEFAULT_PROMPTS


def reflection_points(has_action_step: bool, emotional_tone: str) -> int:
    points = BASE_POINTS
    if has_action_step:
        points += ACTION_STEP_POINTS
    if emotional_tone in BREAKTHROUGH_TONES:
        points += BREAKTHROUGH_POINTS
    return points
