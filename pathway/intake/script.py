# pathway/intake/script.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from pathway.errors import MalformedScriptReference
from pathway.intake.stages import IntakePhase


@dataclass(frozen=True)
class IntakeStep:
    key: str
    prompt: str
    # Lower-case substring of the prompt used to recognise it in the log.
    marker: str
    points: int
    category: str
    fields: Tuple[str, ...]


@dataclass(frozen=True)
class Phase:
    phase: IntakePhase
    title: str
    description: str
    steps: Tuple[IntakeStep, ...]


class IntakeScript:
    """
    Immutable catalog of the self-discovery intake.

    Phases and steps are kept in canonical order; the flattened step list
    is the only progression the session is allowed to follow.
    """

    def __init__(
        self,
        version: str,
        phases: Tuple[Phase, ...],
        transitions: Dict[Tuple[IntakePhase, IntakePhase], str],
        acknowledgments: Dict[str, str],
    ):
        self.version = version
        self.phases = phases
        self._transitions = dict(transitions)
        self._acknowledgments = dict(acknowledgments)

        self._steps: Tuple[IntakeStep, ...] = tuple(
            step for phase in phases for step in phase.steps
        )
        self._index: Dict[str, int] = {}
        self._phase_of: Dict[str, IntakePhase] = {}
        for phase in phases:
            for step in phase.steps:
                if step.key in self._index:
                    raise ValueError(f"Duplicate step key in intake script: {step.key}")
                self._index[step.key] = len(self._index)
                self._phase_of[step.key] = phase.phase

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def steps(self) -> Tuple[IntakeStep, ...]:
        return self._steps

    def __len__(self) -> int:
        return len(self._steps)

    def step(self, key: str) -> IntakeStep:
        index = self.index_of(key)
        return self._steps[index]

    def step_at(self, index: int) -> Optional[IntakeStep]:
        if 0 <= index < len(self._steps):
            return self._steps[index]
        return None

    def index_of(self, key: str) -> int:
        try:
            return self._index[key]
        except KeyError:
            raise MalformedScriptReference(key) from None

    def phase_of(self, key: str) -> IntakePhase:
        try:
            return self._phase_of[key]
        except KeyError:
            raise MalformedScriptReference(key) from None

    def transition(self, answered: IntakeStep, upcoming: IntakeStep) -> str:
        """
        Sentence to put in front of the next prompt when it opens a new phase.
        Empty string when both steps share a phase.
        """
        current_phase = self.phase_of(answered.key)
        next_phase = self.phase_of(upcoming.key)
        if current_phase == next_phase:
            return ""
        return self._transitions.get((current_phase, next_phase), "")

    def acknowledgment(self, step: IntakeStep) -> str:
        return self._acknowledgments.get(step.key, DEFAULT_ACKNOWLEDGMENT)

    def validate_prefix(self, keys: List[str]) -> None:
        """
        Raise MalformedScriptReference unless `keys` is exactly the first
        len(keys) steps of the script.
        """
        for position, key in enumerate(keys):
            if self.index_of(key) != position:
                raise MalformedScriptReference(key)


DEFAULT_ACKNOWLEDGMENT = "I hear you. Keep going."

COMPLETION_BONUS = 5

# Recognised by the reconstructor as the end of a session.
COMPLETION_MARKER = "not carrying this alone anymore"

COMPLETION_TEMPLATE = (
    "You showed up. You got real about your life, your dreams, and what you need. "
    "That's everything.\n\n"
    "Your 30-day goal: {primary_goal}\n"
    "Your next step: {first_action_step}\n\n"
    "I've saved everything you shared. This isn't just information, it's your roadmap. "
    "I'll be here to walk with you, step by step, as you build the life you described.\n\n"
    "You're not carrying this alone anymore."
)

GROUNDING_RESPONSE = (
    "Let's take this step by step. What's most important to you right now?"
)

REPROMPT_PREFIX = "Take your time. Whenever you're ready: "


SELF_DISCOVERY = Phase(
    phase=IntakePhase.SELF_DISCOVERY,
    title="Self-Discovery",
    description="Ground the user in purpose, identity, and possibility",
    steps=(
        IntakeStep(
            key="personal_basics",
            prompt=(
                "Let's start with the basics. What would you like me to call you, "
                "and what are the top 3 things you care about right now?"
            ),
            marker="call you",
            points=1,
            category="personal_info",
            fields=("preferred_name", "core_values"),
        ),
        IntakeStep(
            key="justice_context",
            prompt=(
                "Can you tell me about where you're at with any legal stuff? "
                "Are you on parole, probation, or dealing with court dates?"
            ),
            marker="legal stuff",
            points=2,
            category="justice_history",
            fields=("legal_supervision", "outstanding_legal_issues"),
        ),
        IntakeStep(
            key="immediate_needs",
            prompt=(
                "Let's talk about your first priorities. Where are you staying right now, "
                "and do you have what you need: food, phone, transportation?"
            ),
            marker="staying right now",
            points=2,
            category="immediate_needs",
            fields=("housing_now", "basic_needs_met", "transportation_needs"),
        ),
        IntakeStep(
            key="identity_purpose",
            prompt=(
                "What would you want to experience in life if time and money weren't an issue? "
                "Who are you doing this for?"
            ),
            marker="experience in life",
            points=3,
            category="identity_reflection",
            fields=("life_vision", "motivation_source"),
        ),
    ),
)

GOAL_MAPPING = Phase(
    phase=IntakePhase.GOAL_MAPPING,
    title="Goal Mapping",
    description="Explore each life area: where things are, where they could go, and a 30-day step",
    steps=(
        IntakeStep(
            key="housing",
            prompt=(
                "Tell me about your housing situation: where you are now and where you'd love to be. "
                "What would stable housing look like for you?"
            ),
            marker="housing situation",
            points=3,
            category="housing_goals",
            fields=("current_housing", "housing_vision", "housing_barriers", "housing_30day_goal"),
        ),
        IntakeStep(
            key="employment",
            prompt=(
                "Let's talk about work. What kind of work have you done before, "
                "and what kind of job would light you up now?"
            ),
            marker="talk about work",
            points=3,
            category="employment_goals",
            fields=("work_history", "dream_job", "employment_barriers", "work_30day_goal"),
        ),
        IntakeStep(
            key="health_mental",
            prompt=(
                "How's your mental health and emotional wellbeing? "
                "What would feeling your best look like?"
            ),
            marker="mental health",
            points=3,
            category="mental_health_goals",
            fields=("mental_health_state", "wellness_vision", "therapy_needs"),
        ),
        IntakeStep(
            key="family_relationships",
            prompt=(
                "Tell me about the people who matter to you: family, friends, relationships. "
                "What do you want there?"
            ),
            marker="people who matter",
            points=2,
            category="relationship_goals",
            fields=("important_relationships", "relationship_goals", "family_support"),
        ),
    ),
)

VISION_ACTIVATION = Phase(
    phase=IntakePhase.VISION_ACTIVATION,
    title="Vision Activation",
    description="Help the user envision their future in vivid detail",
    steps=(
        IntakeStep(
            key="future_self",
            prompt=(
                "Imagine the version of you who's already living the life you want. "
                "What's different? How do you feel, what are you doing, who's around you?"
            ),
            marker="version of you",
            points=4,
            category="vision_articulated",
            fields=("future_self_description", "daily_life_vision", "emotional_state"),
        ),
        IntakeStep(
            key="purpose_mission",
            prompt="What are you excited to build, give, or create in the world? What's your why?",
            marker="build, give, or create",
            points=3,
            category="purpose_defined",
            fields=("life_mission", "contribution_goals"),
        ),
    ),
)

SUPPORT_MOMENTUM = Phase(
    phase=IntakePhase.SUPPORT_MOMENTUM,
    title="Support & Momentum Building",
    description="Align on support, connection preferences, and next steps",
    steps=(
        IntakeStep(
            key="support_network",
            prompt=(
                "Who's in your corner right now: people, organizations, or mentors? "
                "And what kind of support would make the biggest difference?"
            ),
            marker="in your corner",
            points=2,
            category="support_assessment",
            fields=("current_support", "needed_support", "referral_preferences"),
        ),
        IntakeStep(
            key="action_commitment",
            prompt=(
                "What's one thing you'd love to get done in the next 30 days that would make "
                "you feel proud? And what's the first small step you could take this week?"
            ),
            marker="next 30 days",
            points=3,
            category="action_commitment",
            fields=("primary_30day_goal", "first_weekly_step"),
        ),
        IntakeStep(
            key="connection_consent",
            prompt=(
                "Would you like me to connect you with people or resources? "
                "And how would you like me to check in with you?"
            ),
            marker="connect you",
            points=1,
            category="engagement_preferences",
            fields=("wants_referrals", "contact_preferences", "check_in_frequency"),
        ),
    ),
)


PHASE_TRANSITIONS: Dict[Tuple[IntakePhase, IntakePhase], str] = {
    (IntakePhase.SELF_DISCOVERY, IntakePhase.GOAL_MAPPING):
        "Now let's explore what you want to build in different areas of your life. ",
    (IntakePhase.GOAL_MAPPING, IntakePhase.VISION_ACTIVATION):
        "You've shared so much. Now let's step into your future vision. ",
    (IntakePhase.VISION_ACTIVATION, IntakePhase.SUPPORT_MOMENTUM):
        "Beautiful. Let's make sure you have the support to make this real. ",
}

ACKNOWLEDGMENTS: Dict[str, str] = {
    "personal_basics": "I'm glad to meet you.",
    "justice_context": "Thanks for being real about that.",
    "immediate_needs": "That's a lot to navigate. You're handling it.",
    "identity_purpose": "I can feel the possibility in that. That's powerful.",
    "housing": "Housing is everything. I hear you.",
    "employment": "Work that lights you up, that matters.",
    "health_mental": "Taking care of your mind is strength.",
    "family_relationships": "Those connections count.",
    "future_self": "I can see that future already.",
    "purpose_mission": "That's your why. That's everything.",
    "support_network": "Having people who've got your back matters.",
    "action_commitment": "That's something you can be proud of.",
    "connection_consent": "I'm here to support you however works best.",
}


CORE_DISCOVERY_SCRIPT = IntakeScript(
    version="core-discovery-2",
    phases=(SELF_DISCOVERY, GOAL_MAPPING, VISION_ACTIVATION, SUPPORT_MOMENTUM),
    transitions=PHASE_TRANSITIONS,
    acknowledgments=ACKNOWLEDGMENTS,
)
