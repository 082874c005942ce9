# pathway/intake/processor.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pathway.errors import TransientStorageError
from pathway.intake import rules
from pathway.intake.script import IntakeStep

logger = logging.getLogger(__name__)


@dataclass
class StepResult:
    extracted_fields: Dict[str, str] = field(default_factory=dict)
    referral_tags: List[str] = field(default_factory=list)
    severity: str = rules.SEVERITY_LOW
    emotional_tone: str = rules.TONE_NEUTRAL


def extract_fields(step: IntakeStep, utterance: str) -> Dict[str, str]:
    """
    Heuristic field split: comma-separated segments map onto the step's
    fields in order. When the answer has fewer segments than fields, the
    leftover fields get the whole answer verbatim. Extra segments are folded
    into the last field.
    """
    text = utterance.strip()
    segments = [s.strip() for s in text.split(",") if s.strip()]
    fields = step.fields

    extracted: Dict[str, str] = {}
    for i, name in enumerate(fields):
        if i < len(segments):
            if i == len(fields) - 1 and len(segments) > len(fields):
                extracted[name] = ", ".join(segments[i:])
            else:
                extracted[name] = segments[i]
        else:
            extracted[name] = text
    return extracted


class StepResponseProcessor:
    """
    Reads one answer to one scripted step.

    `process` is pure; `record` writes the IntakeResponse rows.
    """

    def __init__(self, log=None):
        self.log = log

    def process(self, step: IntakeStep, utterance: str) -> StepResult:
        return StepResult(
            extracted_fields=extract_fields(step, utterance),
            referral_tags=rules.referral_tags(utterance, step.key),
            severity=rules.classify_severity(utterance),
            emotional_tone=rules.classify_tone(utterance),
        )

    def record(
        self,
        user_id: str,
        step: IntakeStep,
        utterance: str,
        result: Optional[StepResult] = None,
    ) -> int:
        """
        Persist one IntakeResponse per declared field of the step.
        Returns how many rows were written; failures are logged and skipped.
        """
        if self.log is None:
            return 0
        result = result or self.process(step, utterance)

        written = 0
        for field_name in step.fields:
            try:
                self.log.append_intake_response(
                    user_id=user_id,
                    category=step.category,
                    field=field_name,
                    raw_text=utterance,
                    referral_tags=result.referral_tags,
                    severity=result.severity,
                )
                written += 1
            except TransientStorageError as e:
                logger.error(
                    "Failed to save intake response %s.%s for %s: %s",
                    step.key, field_name, user_id, e,
                )

        logger.info(
            "Saved %d intake rows for %s (tags=%s, severity=%s)",
            written, step.key, result.referral_tags, result.severity,
        )
        return written
