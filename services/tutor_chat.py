"""
Tutor chat service.

Wraps the Azure AI Foundry chat completions API (openai SDK, AzureOpenAI client)
for the emotion-aware tutor: each reply is generated with a system prompt adapted
to the student's dominant recent learning state, and an automatic simplified
explanation of the last answer can be requested when the student turns confused.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import List, Dict, Optional

from openai import AzureOpenAI

import config

logger = logging.getLogger(__name__)

AUTO_CLARIFICATION_MARKER = "[AUTO-CLARIFICATION]"


@dataclass(frozen=True)
class ConversationTurn:
    """One question/answer exchange."""
    user: str
    ai: str
    learning_state: Optional[str]
    timestamp: float

    def to_dict(self) -> dict:
        return {
            "user": self.user,
            "ai": self.ai,
            "learningState": self.learning_state,
            "timestamp": self.timestamp,
        }


def build_system_prompt(learning_state: Optional[str] = None) -> str:
    """
    Base tutor prompt plus guidance for the given learning state label.
    Unknown labels are passed through so the model can still adapt.
    """
    prompt = config.SYSTEM_PROMPT
    if not learning_state:
        return prompt
    label = learning_state.strip().lower()
    guidance = config.LEARNING_STATE_GUIDANCE.get(label)
    if guidance:
        return f"{prompt}\n\nIMPORTANT: {guidance}"
    return f"{prompt}\n\nThe student's learning state is: {learning_state}. Adapt your response accordingly."


class TutorChatService:
    """
    Stateful tutor conversation.

    is_busy is True while a reply is being generated; the learning state
    detector reads it to suppress automatic clarifications mid-answer.
    """

    def __init__(self, client: Optional[AzureOpenAI] = None):
        """
        Args:
            client: Optional preconfigured client (defaults to AzureOpenAI from config)
        """
        self.client = client or AzureOpenAI(
            azure_endpoint=config.AZURE_FOUNDRY_ENDPOINT,
            api_key=config.AZURE_FOUNDRY_KEY,
            api_version=config.AZURE_FOUNDRY_API_VERSION,
        )
        self.deployment_name = config.FOUNDRY_DEPLOYMENT_NAME
        self._history: List[ConversationTurn] = []
        self._history_lock = threading.Lock()
        self._busy = threading.Event()

    @property
    def is_busy(self) -> bool:
        return self._busy.is_set()

    def _complete(self, messages: List[Dict[str, str]]) -> str:
        response = self.client.chat.completions.create(
            model=self.deployment_name,
            messages=messages,
            max_tokens=config.CHAT_MAX_TOKENS,
            temperature=float(config.CHAT_TEMPERATURE),
        )
        return (response.choices[0].message.content or "").strip()

    def _context_messages(self) -> List[Dict[str, str]]:
        """Recent turns as alternating user/assistant messages (auto-clarifications included)."""
        with self._history_lock:
            turns = self._history[-config.CHAT_HISTORY_TURNS:] if config.CHAT_HISTORY_TURNS > 0 else []
        messages = []
        for turn in turns:
            if turn.user != AUTO_CLARIFICATION_MARKER:
                messages.append({"role": "user", "content": turn.user})
            messages.append({"role": "assistant", "content": turn.ai})
        return messages

    def generate_response(self, message: str, learning_state: Optional[str] = None) -> str:
        """
        Get a tutor reply adapted to the student's learning state.

        Args:
            message: The student's message
            learning_state: Dominant recent learning state label (e.g. "confused")

        Returns:
            str: The tutor's reply

        Raises:
            Exception: If the API call fails (the caller turns it into an error response)
        """
        messages = [{"role": "system", "content": build_system_prompt(learning_state)}]
        messages.extend(self._context_messages())
        messages.append({"role": "user", "content": message})

        self._busy.set()
        try:
            text = self._complete(messages)
        finally:
            self._busy.clear()

        with self._history_lock:
            self._history.append(ConversationTurn(message, text, learning_state, time.time()))
        return text

    def last_exchange(self) -> Optional[ConversationTurn]:
        with self._history_lock:
            return self._history[-1] if self._history else None

    def generate_simplified_explanation(self) -> Optional[str]:
        """
        Re-explain the last answer much more simply.

        Returns:
            The simplified explanation, or None when there is nothing to simplify
            or the request failed (failures are logged, not raised)
        """
        last = self.last_exchange()
        if last is None:
            logger.info("No previous conversation to simplify")
            return None

        prompt = config.SIMPLIFY_PROMPT.format(question=last.user, answer=last.ai)
        messages = [
            {"role": "system", "content": build_system_prompt("confused")},
            {"role": "user", "content": prompt},
        ]
        self._busy.set()
        try:
            text = self._complete(messages)
        except Exception:
            logger.exception("Error generating simplified explanation")
            return None
        finally:
            self._busy.clear()

        with self._history_lock:
            self._history.append(ConversationTurn(AUTO_CLARIFICATION_MARKER, text, "confused", time.time()))
        logger.info("Simplified explanation ready")
        return text

    def get_history(self) -> List[dict]:
        with self._history_lock:
            return [turn.to_dict() for turn in self._history]

    def clear_history(self) -> None:
        with self._history_lock:
            self._history.clear()


# Lazy singleton: initialized on first use to avoid loading the SDK client at import time
_tutor_chat_service: Optional[TutorChatService] = None


def get_tutor_chat_service() -> TutorChatService:
    """Return the tutor chat service instance, creating it on first call (lazy init)."""
    global _tutor_chat_service
    if _tutor_chat_service is None:
        _tutor_chat_service = TutorChatService()
    return _tutor_chat_service
