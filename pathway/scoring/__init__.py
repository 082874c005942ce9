# pathway/scoring/__init__.py
from .ledger import ScoreLedger, AwardResult, ScoreBreakdown, MILESTONES
from .reflections import REFLECTION_DOMAINS, ReflectionDomain, domain_prompts, reflection_points

__all__ = [
    "ScoreLedger",
    "AwardResult",
    "ScoreBreakdown",
    "MILESTONES",
    "REFLECTION_DOMAINS",
    "ReflectionDomain",
    "domain_prompts",
    "reflection_points",
]
