"""
End-to-end intake turns through CoachingSessionService.
"""

from sqlalchemy import delete

from pathway.errors import TransientStorageError
from pathway.intake.script import (
    COMPLETION_BONUS,
    COMPLETION_MARKER,
    GROUNDING_RESPONSE,
    REPROMPT_PREFIX,
)
from pathway.intake.state import SessionState
from pathway.models import IntakeSession
from pathway.services.coaching_session import CoachingSessionService
from pathway.storage import InteractionLog
from pathway.triggers.events import EventType, Priority


def run_full_intake(service, user_id, answers):
    results = [service.process_turn(user_id, "hey")]
    for answer in answers:
        results.append(service.process_turn(user_id, answer))
    return results


def test_new_user_gets_first_prompt_verbatim(service, script):
    result = service.process_turn("new-user", "hello?")
    assert result.response_text == script.steps[0].prompt
    assert result.is_complete is False
    assert result.points_awarded == 0


def test_steps_completed_grows_one_per_turn(service, script, answers):
    service.process_turn("u1", "hey")
    assert len(service.load_state("u1").steps_completed) == 1

    for k, answer in enumerate(answers[:-1], start=2):
        service.process_turn("u1", answer)
        keys = service.load_state("u1").steps_completed
        assert len(keys) == min(k, len(script))
        assert keys == [s.key for s in script.steps[: len(keys)]]


def test_thirteenth_answer_completes_the_session(service, script, answers, log):
    results = run_full_intake(service, "u1", answers)

    assert all(not r.is_complete for r in results[:-1])
    final = results[-1]
    assert final.is_complete is True
    assert COMPLETION_MARKER in final.response_text.lower()
    assert "Your 30-day goal: Finish my food handler card" in final.response_text
    assert "Your next step: sign up for the class on Monday" in final.response_text

    last_step = script.steps[-1]
    assert final.points_awarded == last_step.points + COMPLETION_BONUS

    expected_total = sum(s.points for s in script.steps) + COMPLETION_BONUS
    assert log.score_total("u1") == expected_total
    assert sum(r.points_awarded for r in results) == expected_total


def test_completed_session_restarts_from_first_step(service, script, answers):
    run_full_intake(service, "u1", answers)

    state = service.load_state("u1")
    assert state.active is False
    assert state.steps_completed == []

    replayed = service.reconstructor.reconstruct("u1")
    assert replayed.active is False
    assert replayed.steps_completed == []

    again = service.process_turn("u1", "can we go again?")
    assert again.response_text == script.steps[0].prompt


def test_each_answer_writes_one_row_per_field(service, script, log):
    service.process_turn("u1", "hi")
    service.process_turn("u1", "Sam, family, music")
    service.process_turn("u1", "on parole, court in June")
    service.process_turn("u1", "I'm sleeping in my car, it's not safe")

    rows = log.intake_responses("u1")
    expected = sum(len(script.steps[i].fields) for i in range(3))
    assert len(rows) == expected

    needs = [r for r in rows if r.category == "immediate_needs"]
    assert len(needs) == 3
    assert all(r.severity == "high" for r in needs)
    assert all("emergency_housing" in r.referral_tags for r in needs)


def test_phase_transition_sentence_appears_once(service, answers):
    responses = [r.response_text for r in run_full_intake(service, "u1", answers[:5])]
    hits = [r for r in responses if "Now let's explore what you want to build" in r]
    assert len(hits) == 1


def test_blank_utterance_reprompts_and_awards_nothing(service, script):
    service.process_turn("u1", "hi")
    result = service.process_turn("u1", "   ")

    assert result.response_text == REPROMPT_PREFIX + script.steps[0].prompt
    assert result.points_awarded == 0
    assert service.load_state("u1").steps_completed == ["personal_basics"]


def test_life_event_triggers_on_the_very_first_turn(service, dispatcher, gateway):
    service.process_turn("u1", "I just got out")
    dispatcher.drain()

    life_events = [e for e in gateway.events if e.event_type == EventType.LIFE_EVENT]
    assert len(life_events) == 1
    assert life_events[0].priority == Priority.HIGH


def test_milestone_event_reaches_gateway(service, dispatcher, gateway, answers):
    run_full_intake(service, "u1", answers)
    dispatcher.drain()

    milestones = [e.payload["milestone"] for e in gateway.events if "milestone" in e.payload]
    assert milestones == [25]


def test_connection_consent_fills_preferences(service, preferences, answers):
    run_full_intake(service, "u1", answers)
    assert preferences.get("u1") == {
        "wants_referrals": "Yes please",
        "contact_preferences": "text me",
        "check_in_frequency": "every morning",
    }


def test_concurrent_turn_does_not_double_advance(service, script, log, monkeypatch):
    service.process_turn("u1", "hi")
    stale = service.load_state("u1")
    service.process_turn("u1", "Sam, family")

    # A second request that read the session before the answer above landed.
    monkeypatch.setattr(service, "load_state", lambda user_id: stale)
    result = service.process_turn("u1", "Sam, family")

    assert result.points_awarded == 0
    assert result.response_text == REPROMPT_PREFIX + script.steps[1].prompt
    assert log.load_session("u1").steps_completed == ["personal_basics", "justice_context"]
    assert log.score_total("u1") == script.steps[0].points


def test_state_outside_script_gets_grounding_response(service, script, log):
    log.save_session(
        "u1",
        SessionState(active=True, steps_completed=["education"]),
        "core-discovery-1",
        expected_version=0,
    )
    result = service.process_turn("u1", "I like learning")

    assert result.response_text == GROUNDING_RESPONSE
    assert result.is_complete is False
    assert log.load_session("u1").steps_completed == []

    assert service.process_turn("u1", "ok").response_text == script.steps[0].prompt


def test_missing_session_row_is_recovered_from_log(service, script, log, engine):
    service.process_turn("u1", "hi")
    service.process_turn("u1", "Sam, family")
    service.process_turn("u1", "probation, court date")

    with engine.begin() as conn:
        conn.execute(delete(IntakeSession))

    state = service.load_state("u1")
    assert state.version == 0
    assert state.steps_completed == [s.key for s in script.steps[:3]]
    assert state.extracted_fields["preferred_name"] == "Sam"

    result = service.process_turn("u1", "my cousin's place")
    assert result.response_text.endswith(script.steps[3].prompt)
    assert len(log.load_session("u1").steps_completed) == 4


class AnalyticsDownLog(InteractionLog):
    """Conversation storage works; analytics writes fail."""

    def append_intake_response(self, **kwargs):
        raise TransientStorageError("analytics db down")

    def append_score_contribution(self, **kwargs):
        raise TransientStorageError("analytics db down")


def test_analytics_failure_never_blocks_the_turn(log, dispatcher, script):
    broken = AnalyticsDownLog(log.session_factory)
    service = CoachingSessionService(script, broken, dispatcher)

    service.process_turn("u1", "hi")
    result = service.process_turn("u1", "Sam, family")

    assert result.response_text.endswith(script.steps[1].prompt)
    assert result.points_awarded == 0
    assert broken.load_session("u1").steps_completed == ["personal_basics", "justice_context"]


class EverythingDownLog(InteractionLog):
    def __getattribute__(self, name):
        if name in {
            "append", "query", "load_session", "save_session", "score_total",
            "append_intake_response", "append_score_contribution",
            "last_interaction_at", "append_dead_letter",
        }:
            def fail(*args, **kwargs):
                raise TransientStorageError("db unreachable")
            return fail
        return super().__getattribute__(name)


def test_total_storage_outage_still_answers(dispatcher, script):
    service = CoachingSessionService(script, EverythingDownLog(), dispatcher)
    result = service.process_turn("u1", "hello")
    assert result.response_text == script.steps[0].prompt
    assert result.is_complete is False


class FlakySaveLog(InteractionLog):
    """Session-row saves fail while `failing` is set; everything else works."""

    failing = False

    def save_session(self, *args, **kwargs):
        if self.failing:
            raise TransientStorageError("lock timeout")
        return super().save_session(*args, **kwargs)


def test_failed_save_mid_session_does_not_repeat_a_question(log, dispatcher, script):
    flaky = FlakySaveLog(log.session_factory)
    service = CoachingSessionService(script, flaky, dispatcher)

    service.process_turn("u1", "hi")
    flaky.failing = True
    asked = service.process_turn("u1", "Sam, family")
    flaky.failing = False
    assert asked.response_text.endswith(script.steps[1].prompt)

    result = service.process_turn("u1", "on parole, court in June")
    assert result.response_text.endswith(script.steps[2].prompt)
    assert result.points_awarded == script.steps[1].points

    categories = [r.category for r in flaky.intake_responses("u1")]
    assert categories == ["personal_info"] * 2 + ["justice_history"] * 2
    assert flaky.load_session("u1").steps_completed == [s.key for s in script.steps[:3]]


def test_failed_save_on_completion_does_not_complete_twice(log, dispatcher, script, answers):
    flaky = FlakySaveLog(log.session_factory)
    service = CoachingSessionService(script, flaky, dispatcher)

    service.process_turn("u1", "hi")
    for answer in answers[:-1]:
        service.process_turn("u1", answer)
    flaky.failing = True
    final = service.process_turn("u1", answers[-1])
    flaky.failing = False
    assert final.is_complete is True

    after = service.process_turn("u1", "thanks!")
    assert after.is_complete is False
    assert after.points_awarded == 0
    assert after.response_text == script.steps[0].prompt
    assert flaky.score_total("u1") == sum(s.points for s in script.steps) + COMPLETION_BONUS
