# pathway/intake/__init__.py
from .script import CORE_DISCOVERY_SCRIPT, IntakeScript, IntakeStep
from .state import SessionState
from .agent import IntakeAgent, Transition, TransitionKind

__all__ = [
    "CORE_DISCOVERY_SCRIPT",
    "IntakeScript",
    "IntakeStep",
    "SessionState",
    "IntakeAgent",
    "Transition",
    "TransitionKind",
]
