# pathway/services/container.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from pathway.config import get_settings
from pathway.intake.script import CORE_DISCOVERY_SCRIPT, IntakeScript
from pathway.llm import LLMClient, OpenAILLMClient
from pathway.preferences import PreferenceStore
from pathway.scoring.ledger import ScoreLedger
from pathway.services.coaching_session import CoachingSessionService
from pathway.services.companion_chat import CompanionChat
from pathway.services.reflection import ReflectionService
from pathway.storage import InteractionLog
from pathway.triggers.detector import TriggerDetector
from pathway.triggers.gateway import NotificationGateway, OutboundDispatcher, build_gateway

logger = logging.getLogger(__name__)


@dataclass
class Services:
    log: InteractionLog
    dispatcher: OutboundDispatcher
    preferences: PreferenceStore
    session: CoachingSessionService
    chat: CompanionChat
    reflections: ReflectionService
    detector: TriggerDetector
    ledger: ScoreLedger


def _default_llm_client() -> Optional[LLMClient]:
    try:
        return OpenAILLMClient()
    except RuntimeError as e:
        logger.warning("Companion chat will use fallback replies: %s", e)
        return None


def build_services(
    log: Optional[InteractionLog] = None,
    gateway: Optional[NotificationGateway] = None,
    llm_client: Optional[LLMClient] = None,
    script: IntakeScript = CORE_DISCOVERY_SCRIPT,
) -> Services:
    settings = get_settings()
    log = log or InteractionLog()
    dispatcher = OutboundDispatcher(
        gateway or build_gateway(),
        log=log,
        maxsize=settings.dispatch_queue_size,
        max_attempts=settings.dispatch_max_attempts,
        backoff_seconds=settings.dispatch_backoff_seconds,
    )
    preferences = PreferenceStore()
    session = CoachingSessionService(
        script,
        log,
        dispatcher,
        preferences=preferences,
        history_limit=settings.history_limit,
    )
    chat = CompanionChat(log, dispatcher, llm_client=llm_client)
    reflections = ReflectionService(log, session.ledger, session.detector, dispatcher)
    return Services(
        log=log,
        dispatcher=dispatcher,
        preferences=preferences,
        session=session,
        chat=chat,
        reflections=reflections,
        detector=session.detector,
        ledger=session.ledger,
    )


@lru_cache(maxsize=1)
def get_services() -> Services:
    return build_services(llm_client=_default_llm_client())
