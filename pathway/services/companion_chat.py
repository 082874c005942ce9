# pathway/services/companion_chat.py
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from pathway.errors import ExternalServiceUnavailable, TransientStorageError
from pathway.intake import rules
from pathway.llm import LLMClient
from pathway.storage import InteractionLog
from pathway.triggers.detector import TriggerDetector
from pathway.triggers.gateway import OutboundDispatcher

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a trauma-informed coach who helps people remember their inner strength. "
    "You're warm, grounded, and speak naturally, like a trusted friend.\n\n"
    "RULES:\n"
    "- Keep replies short (2-3 sentences).\n"
    "- Reflect back what you heard before offering anything.\n"
    "- Never diagnose, never lecture, never promise services you can't guarantee.\n"
    "- End with one gentle, open question."
)

FALLBACK_RESPONSE = (
    "I'm right here with you. Tell me a little more about what's on your mind."
)


class CompanionChat:
    """
    Free conversation outside the intake script, backed by an LLM.
    Trigger detection still runs on every message.
    """

    def __init__(
        self,
        log: InteractionLog,
        dispatcher: OutboundDispatcher,
        llm_client: Optional[LLMClient] = None,
        history_turns: int = 5,
    ):
        self.log = log
        self.dispatcher = dispatcher
        self.llm_client = llm_client
        self.history_turns = history_turns
        self.detector = TriggerDetector(log)

    def reply(self, user_id: str, utterance: str) -> str:
        response = self._generate(user_id, utterance)

        tone = rules.classify_tone(utterance)
        for event in self.detector.detect(user_id, utterance, tone):
            self.dispatcher.submit(event)

        try:
            self.log.append(user_id, utterance, response, session_type="companion")
        except TransientStorageError as e:
            logger.error("Could not append companion interaction for %s: %s", user_id, e)
        return response

    def _generate(self, user_id: str, utterance: str) -> str:
        if self.llm_client is None:
            return FALLBACK_RESPONSE

        messages = self._build_messages(user_id, utterance)
        try:
            answer = self.llm_client.chat(messages, temperature=0.7)
        except ExternalServiceUnavailable as e:
            logger.warning("Text generation unavailable for %s: %s", user_id, e)
            return FALLBACK_RESPONSE
        return answer.strip() or FALLBACK_RESPONSE

    def _build_messages(self, user_id: str, utterance: str) -> List[Dict[str, str]]:
        messages: List[Dict[str, str]] = [{"role": "system", "content": SYSTEM_PROMPT}]
        try:
            history = self.log.query(user_id, limit=self.history_turns, session_type="companion")
        except TransientStorageError as e:
            logger.warning("No conversation history for %s: %s", user_id, e)
            history = []

        for record in history:
            messages.append({"role": "user", "content": record.user_utterance})
            messages.append({"role": "assistant", "content": record.system_response})
        messages.append({"role": "user", "content": utterance})
        return messages
