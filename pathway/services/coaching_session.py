# pathway/services/coaching_session.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from pathway.errors import (
    MalformedScriptReference,
    StaleSessionError,
    TransientStorageError,
)
from pathway.intake import rules
from pathway.intake.agent import IntakeAgent, Transition, TransitionKind
from pathway.intake.processor import StepResponseProcessor
from pathway.intake.reconstructor import SessionReconstructor
from pathway.intake.script import (
    COMPLETION_BONUS,
    COMPLETION_MARKER,
    GROUNDING_RESPONSE,
    REPROMPT_PREFIX,
    IntakeScript,
)
from pathway.intake.state import SessionState
from pathway.preferences import PreferenceStore
from pathway.scoring.ledger import ScoreLedger
from pathway.storage import InteractionLog
from pathway.triggers.detector import TriggerDetector
from pathway.triggers.events import TriggerEvent
from pathway.triggers.gateway import OutboundDispatcher

logger = logging.getLogger(__name__)

INTAKE_SOURCE = "comprehensive_intake"
COMPLETION_SOURCE = "core_discovery_session"

PREFERENCE_FIELDS = ("wants_referrals", "contact_preferences", "check_in_frequency")


@dataclass
class TurnResult:
    response_text: str
    is_complete: bool
    points_awarded: int


class CoachingSessionService:
    """
    Service that coordinates one intake turn:
      - loading the session (row first, log replay as recovery)
      - stepping the IntakeAgent
      - saving the session with a version check
      - persisting intake rows, awarding points, detecting triggers
      - appending the interaction to the log
    """

    def __init__(
        self,
        script: IntakeScript,
        log: InteractionLog,
        dispatcher: OutboundDispatcher,
        preferences: Optional[PreferenceStore] = None,
        history_limit: int = 20,
    ):
        self.script = script
        self.log = log
        self.dispatcher = dispatcher
        self.preferences = preferences if preferences is not None else PreferenceStore()

        self.processor = StepResponseProcessor(log)
        self.agent = IntakeAgent(script, self.processor)
        self.reconstructor = SessionReconstructor(
            script, log, StepResponseProcessor(), history_limit=history_limit
        )
        self.detector = TriggerDetector(log)
        self.ledger = ScoreLedger(log, dispatcher)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process_turn(self, user_id: str, utterance: str) -> TurnResult:
        """
        The only way into the intake. Always returns something to say.
        """
        try:
            return self._process_turn(user_id, utterance)
        except MalformedScriptReference as e:
            logger.error("Session for %s points outside the script: %s", user_id, e)
            self._reset_session(user_id)
            self._append_interaction(user_id, utterance, GROUNDING_RESPONSE)
            return TurnResult(GROUNDING_RESPONSE, is_complete=False, points_awarded=0)

    def load_state(self, user_id: str) -> SessionState:
        """
        Session row when there is a usable one, log replay otherwise.
        """
        try:
            state = self.log.load_session(user_id)
        except TransientStorageError as e:
            logger.warning("Session row unreadable for %s, replaying log: %s", user_id, e)
            state = None

        if state is None:
            return self.reconstructor.reconstruct(user_id)

        if self._log_is_ahead(user_id, state):
            # The last save failed after the user was already answered.
            logger.warning("Session row for %s is behind the interaction log, replaying", user_id)
            replayed = self.reconstructor.reconstruct(user_id)
            replayed.version = state.version
            return replayed

        if state.script_version != self.script.version:
            logger.warning(
                "Session for %s was written by script %s (now %s)",
                user_id, state.script_version, self.script.version,
            )
        try:
            state.cumulative_score = self.ledger.total(user_id)
        except TransientStorageError as e:
            logger.warning("Could not read score total for %s: %s", user_id, e)
        return state

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _process_turn(self, user_id: str, utterance: str) -> TurnResult:
        state = self.load_state(user_id)
        expected_version = state.version

        transition = self.agent.step(state, utterance)

        try:
            self._save(user_id, transition, expected_version)
        except StaleSessionError as e:
            logger.warning("Concurrent turn for %s, not advancing: %s", user_id, e)
            response = self._stale_response(user_id)
            self._append_interaction(user_id, utterance, response)
            return TurnResult(response, is_complete=False, points_awarded=0)

        points = 0
        if transition.answered_step is not None:
            points += self._record_answer(user_id, utterance, transition)
        if transition.is_complete:
            points += self.ledger.award(
                user_id,
                category="session_completion",
                points=COMPLETION_BONUS,
                source=COMPLETION_SOURCE,
                description="Completed core discovery session",
            ).points
            logger.info("Core discovery session completed for %s", user_id)

        tone = (
            transition.step_result.emotional_tone
            if transition.step_result is not None
            else rules.classify_tone(utterance)
        )
        self._dispatch(self.detector.detect(user_id, utterance, tone))

        self._append_interaction(user_id, utterance, transition.response)

        return TurnResult(
            response_text=transition.response,
            is_complete=transition.is_complete,
            points_awarded=points,
        )

    def _record_answer(self, user_id: str, utterance: str, transition: Transition) -> int:
        step = transition.answered_step
        logger.info(
            "Processing response for %s -> %s",
            step.key,
            transition.next_step.key if transition.next_step else "completion",
        )
        self.processor.record(user_id, step, utterance, transition.step_result)

        if step.key == "connection_consent":
            fields = transition.step_result.extracted_fields
            self.preferences.update(
                user_id, **{name: fields.get(name) for name in PREFERENCE_FIELDS}
            )

        award = self.ledger.award(
            user_id,
            category=step.category,
            points=step.points,
            source=INTAKE_SOURCE,
            description=f"Intake: {step.key}",
        )
        if award.total_after is not None:
            transition.state.cumulative_score = award.total_after
        return award.points

    def _save(self, user_id: str, transition: Transition, expected_version: int) -> None:
        if transition.kind == TransitionKind.REPROMPT and expected_version > 0:
            return
        # A finished session is stored as a fresh one so the next turn starts over.
        state = SessionState() if transition.is_complete else transition.state
        try:
            self.log.save_session(user_id, state, self.script.version, expected_version)
        except TransientStorageError as e:
            logger.error("Could not save session for %s: %s", user_id, e)

    def _log_is_ahead(self, user_id: str, state: SessionState) -> bool:
        """
        True when the latest intake response asked a later question than the
        session row knows about, or closed a session the row still has open.
        """
        try:
            latest = self.log.query(user_id, limit=1, session_type="intake")
        except TransientStorageError as e:
            logger.warning("Could not check session row for %s against the log: %s", user_id, e)
            return False
        if not latest:
            return False

        response = latest[-1].system_response
        if COMPLETION_MARKER in response.lower():
            return bool(state.steps_completed)
        asked = next(
            (i for i, step in enumerate(self.script.steps) if response.endswith(step.prompt)),
            None,
        )
        return asked is not None and asked >= len(state.steps_completed)

    def _reset_session(self, user_id: str) -> None:
        try:
            current = self.log.load_session(user_id)
            if current is not None:
                self.log.save_session(
                    user_id, SessionState(), self.script.version, current.version
                )
        except (TransientStorageError, StaleSessionError) as e:
            logger.error("Could not reset session for %s: %s", user_id, e)

    def _stale_response(self, user_id: str) -> str:
        try:
            latest = self.log.load_session(user_id)
        except TransientStorageError:
            latest = None
        if latest is not None and latest.last_prompt:
            return f"{REPROMPT_PREFIX}{latest.last_prompt}"
        return GROUNDING_RESPONSE

    def _dispatch(self, events: List[TriggerEvent]) -> None:
        for event in events:
            self.dispatcher.submit(event)

    def _append_interaction(self, user_id: str, utterance: str, response: str) -> None:
        try:
            self.log.append(user_id, utterance, response, session_type="intake")
        except TransientStorageError as e:
            logger.error("Could not append interaction for %s: %s", user_id, e)
