# pathway/intake/reconstructor.py
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from pathway.errors import TransientStorageError
from pathway.intake.processor import StepResponseProcessor
from pathway.intake.script import COMPLETION_MARKER, IntakeScript
from pathway.intake.state import SessionState
from pathway.storage import InteractionLog, InteractionRecord

logger = logging.getLogger(__name__)


class SessionReconstructor:
    """
    Rebuilds a SessionState by replaying the interaction log.

    A step counts as reached when one of our past responses contains its
    marker. Only responses after the most recent completion message belong
    to the current session, so a finished intake replays as a fresh one.
    """

    def __init__(
        self,
        script: IntakeScript,
        log: InteractionLog,
        processor: Optional[StepResponseProcessor] = None,
        history_limit: int = 20,
    ):
        self.script = script
        self.log = log
        self.processor = processor or StepResponseProcessor()
        self.history_limit = history_limit

    def reconstruct(self, user_id: str) -> SessionState:
        try:
            records = self.log.query(user_id, limit=self.history_limit, session_type="intake")
        except TransientStorageError as e:
            logger.warning("Could not read history for %s, starting fresh: %s", user_id, e)
            return SessionState()

        state = self.replay(records)
        state.script_version = self.script.version
        try:
            state.cumulative_score = self.log.score_total(user_id)
        except TransientStorageError as e:
            logger.warning("Could not read score total for %s: %s", user_id, e)
        return state

    def replay(self, records: Sequence[InteractionRecord]) -> SessionState:
        """
        Pure part of reconstruction: oldest-first records in, state out.
        """
        records = self._current_session(records)
        if not records:
            return SessionState()

        # First record whose response carried each step's prompt.
        prompt_position = {}
        for step in self.script.steps:
            for position, record in enumerate(records):
                if step.marker in record.system_response.lower():
                    prompt_position[step.key] = position
                    break

        steps_completed: List[str] = []
        for step in self.script.steps:
            if step.key not in prompt_position:
                break
            steps_completed.append(step.key)

        skipped = set(prompt_position) - set(steps_completed)
        if skipped:
            logger.warning(
                "Ignoring out-of-order step markers %s; keeping prefix of %d steps",
                sorted(skipped),
                len(steps_completed),
            )

        if not steps_completed:
            return SessionState()

        state = SessionState(active=True, steps_completed=steps_completed)
        state.last_prompt = self.script.step(steps_completed[-1]).prompt

        # The utterance that answered a prompt arrives with a later record;
        # blank ones were re-prompted and never counted as answers.
        for key in steps_completed[:-1]:
            answer = next(
                (
                    r.user_utterance
                    for r in records[prompt_position[key] + 1:]
                    if r.user_utterance.strip()
                ),
                None,
            )
            if answer is None:
                continue
            result = self.processor.process(self.script.step(key), answer)
            state.extracted_fields.update(result.extracted_fields)
            state.emotional_tone_history.append(result.emotional_tone)

        return state

    @staticmethod
    def _current_session(records: Sequence[InteractionRecord]) -> List[InteractionRecord]:
        last_completion = -1
        for position, record in enumerate(records):
            if COMPLETION_MARKER in record.system_response.lower():
                last_completion = position
        return list(records[last_completion + 1:])
