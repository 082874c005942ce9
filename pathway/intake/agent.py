# pathway/intake/agent.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pathway.intake.processor import StepResponseProcessor, StepResult
from pathway.intake.script import (
    COMPLETION_TEMPLATE,
    REPROMPT_PREFIX,
    IntakeScript,
    IntakeStep,
)
from pathway.intake.state import SessionState


class TransitionKind(str, Enum):
    START = "start"
    ADVANCE = "advance"
    COMPLETE = "complete"
    REPROMPT = "reprompt"


@dataclass
class Transition:
    kind: TransitionKind
    response: str
    state: SessionState
    answered_step: Optional[IntakeStep] = None
    next_step: Optional[IntakeStep] = None
    step_result: Optional[StepResult] = None

    @property
    def is_complete(self) -> bool:
        return self.kind == TransitionKind.COMPLETE


class IntakeAgent:
    """
    IntakeAgent walks a user through the scripted self-discovery intake.

    States:
      - not started: nothing sent yet; the first call only asks step 0
      - in phase: the last key in steps_completed is the question on the table
      - completed: the final answer came in; the session is closed

    Progression is strictly linear. Every non-blank answer moves exactly
    one step forward; blank answers get the same question again.

    The agent does no I/O. Persisting rows, awarding points and dispatching
    notifications belong to the caller.
    """

    def __init__(
        self,
        script: IntakeScript,
        processor: Optional[StepResponseProcessor] = None,
    ):
        self.script = script
        self.processor = processor or StepResponseProcessor()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self, state: SessionState) -> Transition:
        """
        Open a session: ask the first question verbatim.
        Whatever the user said to get here is not treated as an answer.
        """
        first = self.script.steps[0]
        state.active = True
        state.steps_completed = [first.key]
        state.last_prompt = first.prompt
        state.script_version = self.script.version
        return Transition(
            kind=TransitionKind.START,
            response=first.prompt,
            state=state,
            next_step=first,
        )

    def step(self, state: SessionState, utterance: str) -> Transition:
        """
        Take the user's answer to the question on the table and decide
        what comes next. Raises MalformedScriptReference when the state
        refers to steps this script does not have.
        """
        if not state.steps_completed:
            return self.start(state)

        self.script.validate_prefix(state.steps_completed)
        answered = self.script.step(state.steps_completed[-1])

        if not utterance.strip():
            return self._reprompt(state, answered)

        result = self.processor.process(answered, utterance)
        state.extracted_fields.update(result.extracted_fields)
        state.emotional_tone_history.append(result.emotional_tone)

        acknowledgment = self.script.acknowledgment(answered)
        next_step = self.script.step_at(len(state.steps_completed))

        if next_step is None:
            return self._complete(state, answered, result, acknowledgment)

        phase_transition = self.script.transition(answered, next_step)
        state.steps_completed.append(next_step.key)
        state.last_prompt = next_step.prompt

        return Transition(
            kind=TransitionKind.ADVANCE,
            response=f"{acknowledgment} {phase_transition}{next_step.prompt}",
            state=state,
            answered_step=answered,
            next_step=next_step,
            step_result=result,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _reprompt(self, state: SessionState, current: IntakeStep) -> Transition:
        state.last_prompt = current.prompt
        return Transition(
            kind=TransitionKind.REPROMPT,
            response=f"{REPROMPT_PREFIX}{current.prompt}",
            state=state,
            next_step=current,
        )

    def _complete(
        self,
        state: SessionState,
        answered: IntakeStep,
        result: StepResult,
        acknowledgment: str,
    ) -> Transition:
        fields = state.extracted_fields
        closing = COMPLETION_TEMPLATE.format(
            primary_goal=fields.get("primary_30day_goal") or "whatever matters most to you",
            first_action_step=fields.get("first_weekly_step") or "one small step this week",
        )
        state.active = False
        state.last_prompt = ""
        return Transition(
            kind=TransitionKind.COMPLETE,
            response=f"{acknowledgment} {closing}",
            state=state,
            answered_step=answered,
            step_result=result,
        )
