"""
Step response processor: field extraction and IntakeResponse rows.
"""

from pathway.errors import TransientStorageError
from pathway.intake.processor import StepResponseProcessor, extract_fields


def test_segments_map_onto_fields_in_order(script):
    step = script.step("action_commitment")
    fields = extract_fields(step, "Finish my food handler card, sign up on Monday")
    assert fields == {
        "primary_30day_goal": "Finish my food handler card",
        "first_weekly_step": "sign up on Monday",
    }


def test_short_answer_fills_every_field_verbatim(script):
    step = script.step("immediate_needs")
    fields = extract_fields(step, "  my cousin's place  ")
    assert fields == {
        "housing_now": "my cousin's place",
        "basic_needs_met": "my cousin's place",
        "transportation_needs": "my cousin's place",
    }


def test_extra_segments_fold_into_last_field(script):
    step = script.step("personal_basics")
    fields = extract_fields(step, "Sam, family, music, faith")
    assert fields == {"preferred_name": "Sam", "core_values": "family, music, faith"}


def test_process_reads_tags_severity_and_tone(script):
    result = StepResponseProcessor().process(
        script.step("immediate_needs"), "I'm sleeping in my car, it's not safe"
    )
    assert {"emergency_housing"} <= set(result.referral_tags)
    assert result.severity == "high"
    assert result.emotional_tone == "neutral"


def test_record_writes_one_row_per_field(script, log):
    step = script.step("immediate_needs")
    text = "I'm sleeping in my car, it's not safe"
    written = StepResponseProcessor(log).record("u1", step, text)

    assert written == 3
    rows = log.intake_responses("u1")
    assert [r.field for r in rows] == list(step.fields)
    assert {r.raw_text for r in rows} == {text}
    assert all(r.severity == "high" for r in rows)
    assert all("emergency_housing" in r.referral_tags for r in rows)
    assert {r.category for r in rows} == {"immediate_needs"}


class BrokenLog:
    def append_intake_response(self, **kwargs):
        raise TransientStorageError("disk full")


def test_record_survives_storage_failure(script):
    written = StepResponseProcessor(BrokenLog()).record(
        "u1", script.step("housing"), "staying at a shelter"
    )
    assert written == 0


def test_record_without_log_is_a_no_op(script):
    assert StepResponseProcessor().record("u1", script.step("housing"), "anything") == 0
