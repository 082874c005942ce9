# pathway/services/reflection.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from pathway.errors import TransientStorageError
from pathway.intake import rules
from pathway.scoring.ledger import ScoreLedger
from pathway.scoring.reflections import (
    REFLECTION_SOURCE,
    domain_key,
    find_domain,
    reflection_points,
)
from pathway.storage import InteractionLog
from pathway.triggers.detector import TriggerDetector
from pathway.triggers.gateway import OutboundDispatcher

logger = logging.getLogger(__name__)


@dataclass
class ReflectionResult:
    domain: str
    emotional_tone: str
    points_awarded: int
    milestones: List[int] = field(default_factory=list)


class ReflectionService:
    """
    Scores a domain reflection, stores it and runs trigger detection on it.

    Unknown domains are accepted under their own name; only a blank domain
    or a blank reflection is rejected (ValueError).
    """

    def __init__(
        self,
        log: InteractionLog,
        ledger: ScoreLedger,
        detector: TriggerDetector,
        dispatcher: OutboundDispatcher,
    ):
        self.log = log
        self.ledger = ledger
        self.detector = detector
        self.dispatcher = dispatcher

    def submit(
        self,
        user_id: str,
        domain: str,
        response: str,
        action_step: Optional[str] = None,
    ) -> ReflectionResult:
        key = domain_key(domain)
        if not key:
            raise ValueError("A reflection needs a domain")
        if not response.strip():
            raise ValueError("A reflection needs some text")

        known = find_domain(domain)
        title = known.title if known is not None else domain.strip()
        key = known.key if known is not None else key

        action_step = (action_step or "").strip() or None
        tone = rules.classify_tone(response)
        points = reflection_points(action_step is not None, tone)

        award = self.ledger.award(
            user_id,
            category=f"{key}_reflection",
            points=points,
            source=REFLECTION_SOURCE,
            description=f"Domain reflection: {title}",
        )

        try:
            self.log.append_reflection(
                user_id=user_id,
                domain=key,
                reflection_text=response,
                tone=tone,
                action_step=action_step,
                points_awarded=award.points,
            )
        except TransientStorageError as e:
            logger.error("Could not save %s reflection for %s: %s", key, user_id, e)

        for event in self.detector.detect(user_id, response, tone):
            self.dispatcher.submit(event)

        logger.info(
            "Reflection saved: user=%s domain=%s tone=%s points=%d",
            user_id, key, tone, award.points,
        )
        return ReflectionResult(
            domain=key,
            emotional_tone=tone,
            points_awarded=award.points,
            milestones=list(award.milestones),
        )
