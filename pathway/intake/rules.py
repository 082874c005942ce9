# pathway/intake/rules.py
"""
Keyword rule ladders used to read free text.

Every ladder is an ordered list of rules evaluated first-match-wins, so each
one can be tested on its own and reordered without touching the caller.
Matching is case-insensitive. A phrase must start on a word boundary but may
run on into a longer word, so "homeless" also matches "homelessness" and
"fight" matches "fights". Short words that would collide with unrelated
words ("mad" in "made") go in `exact` and match whole words only.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple


def _inflected(phrase: str) -> str:
    # "emergency" should also catch "emergencies".
    if len(phrase) > 2 and phrase.endswith("y") and phrase[-2].isalpha():
        return re.escape(phrase[:-1]) + "(?:y|ies)"
    return re.escape(phrase)


def keyword_pattern(*phrases: str, exact: Iterable[str] = ()) -> re.Pattern:
    alternatives = [_inflected(p) for p in phrases]
    alternatives += [rf"{re.escape(w)}\b" for w in exact]
    return re.compile(rf"\b(?:{'|'.join(alternatives)})", re.IGNORECASE)


@dataclass(frozen=True)
class Rule:
    pattern: re.Pattern
    label: str

    def matches(self, text: str) -> bool:
        return bool(self.pattern.search(text))


class RuleLadder:
    """
    First matching rule decides the label; `default` when nothing matches.
    """

    def __init__(self, rules: Sequence[Rule], default: str):
        self.rules = tuple(rules)
        self.default = default

    def classify(self, text: str) -> str:
        for rule in self.rules:
            if rule.matches(text):
                return rule.label
        return self.default

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(r.label for r in self.rules) + (self.default,)


@dataclass(frozen=True)
class TagRule:
    pattern: re.Pattern
    tags: Tuple[str, ...]
    # Step keys the rule applies to; empty means every step.
    steps: FrozenSet[str] = frozenset()

    def applies_to(self, step_key: Optional[str]) -> bool:
        return not self.steps or step_key in self.steps


class TagCollector:
    """
    Unlike a ladder, every matching rule contributes its tags.
    Order of first appearance is kept and duplicates are dropped.
    """

    def __init__(self, rules: Iterable[TagRule]):
        self.rules = tuple(rules)

    def collect(self, text: str, step_key: Optional[str] = None) -> List[str]:
        tags: List[str] = []
        for rule in self.rules:
            if not rule.applies_to(step_key):
                continue
            if rule.pattern.search(text):
                for tag in rule.tags:
                    if tag not in tags:
                        tags.append(tag)
        return tags


# ----------------------------------------------------------------------
# Severity
# ----------------------------------------------------------------------

SEVERITY_HIGH = "high"
SEVERITY_MEDIUM = "medium"
SEVERITY_LOW = "low"

SEVERITY_LADDER = RuleLadder(
    rules=[
        Rule(
            keyword_pattern(
                "homeless", "suicidal", "kill myself", "emergency", "no food",
                "unsafe", "not safe", "sleeping in my car", "sleeping in a car",
                "living in my car", "on the street", "overdose",
            ),
            SEVERITY_HIGH,
        ),
        Rule(
            keyword_pattern(
                "struggling", "worried", "need help", "unstable", "behind on rent",
                "couch surfing", "can't afford",
            ),
            SEVERITY_MEDIUM,
        ),
    ],
    default=SEVERITY_LOW,
)


# ----------------------------------------------------------------------
# Emotional tone
# ----------------------------------------------------------------------

TONE_ANGRY = "angry"
TONE_SAD = "sad"
TONE_ANXIOUS = "anxious"
TONE_HOPEFUL = "hopeful"
TONE_OVERWHELMED = "overwhelmed"
TONE_NEUTRAL = "neutral"

TONE_LADDER = RuleLadder(
    rules=[
        Rule(keyword_pattern("angry", "pissed", "furious", exact=("mad",)), TONE_ANGRY),
        Rule(
            keyword_pattern("depressed", "hopeless", "lonely", exact=("sad", "down")),
            TONE_SAD,
        ),
        Rule(keyword_pattern("anxious", "worried", "scared", "nervous"), TONE_ANXIOUS),
        Rule(
            keyword_pattern("hope", "better", "excited", "determined", exact=("good",)),
            TONE_HOPEFUL,
        ),
        Rule(keyword_pattern("overwhelmed", "too much", "can't handle"), TONE_OVERWHELMED),
    ],
    default=TONE_NEUTRAL,
)


# ----------------------------------------------------------------------
# Referral tags
# ----------------------------------------------------------------------

HOUSING_STEPS = frozenset({"housing", "immediate_needs"})

REFERRAL_RULES = TagCollector(
    [
        # housing
        TagRule(
            keyword_pattern(
                "homeless", "couch surfing", "no place", "shelter", "on the street",
                "sleeping in my car", "sleeping in a car", "living in my car",
                exact=("my car",),
            ),
            ("emergency_housing", "housing_referral"),
            HOUSING_STEPS,
        ),
        TagRule(
            keyword_pattern("eviction", "evicted", "landlord"),
            ("landlord_mediation", "legal_housing_support"),
            HOUSING_STEPS,
        ),
        # employment
        TagRule(
            keyword_pattern("no job", "unemployed", "lost my job"),
            ("employment_referral",),
            frozenset({"employment"}),
        ),
        TagRule(
            keyword_pattern("tools", "equipment"),
            ("work_equipment_support",),
            frozenset({"employment"}),
        ),
        TagRule(
            keyword_pattern("resume", "interview"),
            ("job_search_support",),
            frozenset({"employment"}),
        ),
        # mental_health
        TagRule(
            keyword_pattern("therapy", "therapist", "counseling", "counselor"),
            ("mental_health_referral",),
            frozenset({"health_mental"}),
        ),
        TagRule(
            keyword_pattern("depression", "anxiety", "depressed"),
            ("mental_health_support",),
            frozenset({"health_mental"}),
        ),
        # legal
        TagRule(
            keyword_pattern("court", "legal", "lawyer", "warrant"),
            ("legal_support",),
            frozenset({"justice_context"}),
        ),
        TagRule(
            keyword_pattern("parole", "probation", exact=("po",)),
            ("supervision_support",),
            frozenset({"justice_context"}),
        ),
    ]
)


def classify_severity(text: str) -> str:
    return SEVERITY_LADDER.classify(text)


def classify_tone(text: str) -> str:
    return TONE_LADDER.classify(text)


def referral_tags(text: str, step_key: Optional[str] = None) -> List[str]:
    return REFERRAL_RULES.collect(text, step_key)
