# pathway/scoring/ledger.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from pathway.errors import TransientStorageError
from pathway.triggers.events import EventType, Priority, TriggerEvent

logger = logging.getLogger(__name__)

MILESTONES: Tuple[int, ...] = (25, 50, 75, 100)


@dataclass
class AwardResult:
    points: int
    # None when the total could not be read back.
    total_before: Optional[int] = None
    total_after: Optional[int] = None
    milestones: List[int] = field(default_factory=list)


@dataclass
class ScoreBreakdown:
    total: int
    by_source: Dict[str, int] = field(default_factory=dict)
    by_category: Dict[str, int] = field(default_factory=dict)


def crossed_milestones(before: int, after: int, milestones=MILESTONES) -> List[int]:
    return [m for m in milestones if before < m <= after]


class ScoreLedger:
    """
    Append-only engagement points. The total is always the sum of the log,
    so it can only move up.
    """

    def __init__(self, log, dispatcher=None, milestones: Tuple[int, ...] = MILESTONES):
        self.log = log
        self.dispatcher = dispatcher
        self.milestones = tuple(sorted(milestones))

    def total(self, user_id: str) -> int:
        return self.log.score_total(user_id)

    def breakdown(self, user_id: str) -> ScoreBreakdown:
        """
        Where the points came from: per source (intake, completion,
        reflections) and per category.
        """
        summary = ScoreBreakdown(total=0)
        for source, category, points in self.log.score_breakdown(user_id):
            summary.total += points
            summary.by_source[source] = summary.by_source.get(source, 0) + points
            summary.by_category[category] = summary.by_category.get(category, 0) + points
        return summary

    def award(
        self,
        user_id: str,
        category: str,
        points: int,
        source: str,
        description: Optional[str] = None,
    ) -> AwardResult:
        """
        Append a contribution and fire one milestone event per threshold
        crossed. A failed write is logged and the award counts as zero; a
        failed read after the write keeps the points but fires nothing.
        """
        if points < 0:
            raise ValueError(f"Score contributions cannot be negative (got {points})")

        try:
            contribution_id = self.log.append_score_contribution(
                user_id=user_id,
                category=category,
                points=points,
                source=source,
                description=description,
            )
        except TransientStorageError as e:
            logger.error("Could not record %d points for %s: %s", points, user_id, e)
            return AwardResult(points=0)

        # Milestones are judged on the total through our own row, in id order.
        try:
            after = self.log.score_total(user_id, through_id=contribution_id)
        except TransientStorageError as e:
            logger.warning(
                "Recorded %d points for %s but could not read the total: %s",
                points, user_id, e,
            )
            return AwardResult(points=points)

        before = after - points
        result = AwardResult(points=points, total_before=before, total_after=after)
        logger.info(
            "Score contribution: user=%s category=%s points=%d total=%d",
            user_id, category, points, after,
        )

        for milestone in crossed_milestones(before, after, self.milestones):
            logger.info("Milestone reached for %s: %d points", user_id, milestone)
            result.milestones.append(milestone)
            if self.dispatcher is not None:
                self.dispatcher.submit(
                    TriggerEvent(
                        user_id=user_id,
                        event_type=EventType.LIFE_EVENT,
                        payload={"milestone": milestone, "total": after},
                        priority=Priority.MEDIUM,
                    )
                )
        return result
