"""
Keyword rule ladders: severity, emotional tone and referral tags.
"""

import re

from pathway.intake import rules
from pathway.intake.rules import Rule, RuleLadder, TagCollector, TagRule, keyword_pattern


def test_ladder_first_match_wins():
    ladder = RuleLadder(
        [
            Rule(re.compile("a"), "first"),
            Rule(re.compile("b"), "second"),
        ],
        default="none",
    )
    assert ladder.classify("ab") == "first"
    assert ladder.classify("b") == "second"
    assert ladder.classify("c") == "none"
    assert ladder.labels == ("first", "second", "none")


def test_keyword_pattern_matches_longer_word_forms():
    pattern = keyword_pattern("homeless", "emergency", "fight")
    assert pattern.search("I'm experiencing homelessness")
    assert pattern.search("we had two emergencies")
    assert pattern.search("so many Fights lately")
    assert not pattern.search("a firefight on tv")


def test_exact_words_match_whole_words_only():
    pattern = keyword_pattern(exact=("mad",))
    assert pattern.search("I'm so MAD right now")
    assert not pattern.search("I made dinner")

    supervision = keyword_pattern("parole", exact=("po",))
    assert supervision.search("my PO wants a check-in")
    assert not supervision.search("people at the post office")


def test_severity_high_beats_medium():
    assert rules.classify_severity("I'm struggling and homeless") == "high"
    assert rules.classify_severity("I'm struggling a bit") == "medium"
    assert rules.classify_severity("Things are fine") == "low"


def test_severity_is_deterministic_regardless_of_order():
    text = "I'm sleeping in my car, it's not safe"
    first = [rules.classify_severity(text) for _ in range(3)]
    rules.classify_severity("something else entirely")
    assert first == ["high", "high", "high"]
    assert rules.classify_severity(text) == "high"


def test_tone_ladder_priority():
    assert rules.classify_tone("I'm angry and sad") == "angry"
    assert rules.classify_tone("feeling down and worried") == "sad"
    assert rules.classify_tone("kind of scared") == "anxious"
    assert rules.classify_tone("I have hope") == "hopeful"
    assert rules.classify_tone("it's all too much") == "overwhelmed"
    assert rules.classify_tone("I went to the store") == "neutral"


def test_referral_tags_for_car_sleeping_on_immediate_needs():
    tags = rules.referral_tags("I'm sleeping in my car, it's not safe", "immediate_needs")
    assert "emergency_housing" in tags
    assert "housing_referral" in tags


def test_referral_tags_are_scoped_to_their_steps():
    assert rules.referral_tags("I'm homeless", "employment") == []
    assert rules.referral_tags("I'm unemployed", "employment") == ["employment_referral"]
    assert rules.referral_tags("court next week and I'm on probation", "justice_context") == [
        "legal_support",
        "supervision_support",
    ]
    assert rules.referral_tags("I'd like therapy for my anxiety", "health_mental") == [
        "mental_health_referral",
        "mental_health_support",
    ]


def test_tag_collector_drops_duplicates():
    collector = TagCollector(
        [
            TagRule(keyword_pattern("x"), ("one", "two")),
            TagRule(keyword_pattern("y"), ("two", "three")),
        ]
    )
    assert collector.collect("x y") == ["one", "two", "three"]


def test_inflected_forms_reach_every_ladder():
    assert rules.classify_severity("I'm experiencing homelessness") == "high"
    assert rules.classify_severity("we had two emergencies") == "high"
    assert rules.classify_severity("I feel unsafe here") == "high"
    assert rules.classify_tone("I'm feeling hopeless") == "sad"
    assert rules.classify_tone("hoping things get better") == "hopeful"
    assert rules.referral_tags("I'm experiencing homelessness", "immediate_needs") == [
        "emergency_housing",
        "housing_referral",
    ]
    assert rules.referral_tags("my therapist moved away", "health_mental") == [
        "mental_health_referral",
    ]
