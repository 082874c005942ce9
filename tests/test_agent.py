"""
IntakeAgent transitions, without any storage.
"""

import pytest

from pathway.errors import MalformedScriptReference
from pathway.intake.agent import IntakeAgent, TransitionKind
from pathway.intake.script import REPROMPT_PREFIX
from pathway.intake.stages import SessionStatus
from pathway.intake.state import SessionState


@pytest.fixture
def agent(script):
    return IntakeAgent(script)


def test_first_call_only_asks_first_question(agent, script):
    state = SessionState()
    assert state.status() == SessionStatus.NOT_STARTED

    t = agent.step(state, "I'm angry about everything")
    assert t.kind == TransitionKind.START
    assert t.response == script.steps[0].prompt
    assert t.answered_step is None
    assert state.steps_completed == ["personal_basics"]
    assert state.emotional_tone_history == []
    assert state.status() == SessionStatus.IN_PHASE


def test_answer_advances_exactly_one_step(agent, script):
    state = SessionState()
    agent.step(state, "hi")
    t = agent.step(state, "Sam, family")

    assert t.kind == TransitionKind.ADVANCE
    assert t.answered_step.key == "personal_basics"
    assert t.next_step.key == "justice_context"
    assert t.response == f"I'm glad to meet you. {script.steps[1].prompt}"
    assert state.steps_completed == ["personal_basics", "justice_context"]
    assert state.extracted_fields["preferred_name"] == "Sam"


def test_phase_change_inserts_transition_sentence(agent, script):
    state = SessionState(active=True, steps_completed=[s.key for s in script.steps[:4]])
    t = agent.step(state, "travel, my kids")

    assert t.next_step.key == "housing"
    assert "Now let's explore what you want to build" in t.response
    assert t.response.endswith(script.step("housing").prompt)


def test_steps_completed_tracks_turn_count(agent, script, answers):
    state = SessionState()
    agent.step(state, "hello")
    assert len(state.steps_completed) == 1
    for k, answer in enumerate(answers[:-1], start=2):
        agent.step(state, answer)
        assert len(state.steps_completed) == min(k, len(script))
        assert state.steps_completed == [s.key for s in script.steps[: len(state.steps_completed)]]


def test_last_answer_completes(agent, script, answers):
    state = SessionState()
    agent.step(state, "hello")
    for answer in answers[:-1]:
        assert not agent.step(state, answer).is_complete

    t = agent.step(state, answers[-1])
    assert t.is_complete
    assert t.answered_step.key == "connection_consent"
    assert "Your 30-day goal: Finish my food handler card" in t.response
    assert "Your next step: sign up for the class on Monday" in t.response
    assert state.active is False
    assert state.status() == SessionStatus.COMPLETED


def test_blank_answer_reprompts_without_advancing(agent, script):
    state = SessionState()
    agent.step(state, "hi")
    t = agent.step(state, "   ")

    assert t.kind == TransitionKind.REPROMPT
    assert t.response == REPROMPT_PREFIX + script.steps[0].prompt
    assert state.steps_completed == ["personal_basics"]


def test_unknown_step_in_state_raises(agent):
    state = SessionState(active=True, steps_completed=["education"])
    with pytest.raises(MalformedScriptReference):
        agent.step(state, "anything")


def test_non_prefix_state_raises(agent):
    state = SessionState(active=True, steps_completed=["personal_basics", "housing"])
    with pytest.raises(MalformedScriptReference):
        agent.step(state, "anything")
