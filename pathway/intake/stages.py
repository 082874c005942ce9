# pathway/intake/stages.py
from enum import Enum


class IntakePhase(str, Enum):
    SELF_DISCOVERY = "self_discovery"
    GOAL_MAPPING = "goal_mapping"
    VISION_ACTIVATION = "vision_activation"
    SUPPORT_MOMENTUM = "support_momentum"


class SessionStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PHASE = "in_phase"
    COMPLETED = "completed"
