from .coaching_session import CoachingSessionService, TurnResult
from .companion_chat import CompanionChat
from .reflection import ReflectionResult, ReflectionService

__all__ = [
    "CoachingSessionService",
    "TurnResult",
    "CompanionChat",
    "ReflectionResult",
    "ReflectionService",
]
