from __future__ import annotations

import logging

from .errors import ValidationError
from .gateway import TextGenerationGateway
from .models import CHAT_CONFIDENCE, CHAT_FALLBACK_CONFIDENCE, CHAT_FALLBACK_TEXT, ChatReply
from .prompts import build_chat_prompt

logger = logging.getLogger(__name__)


class ChatResponder:
    def __init__(self, gateway: TextGenerationGateway) -> None:
        self.gateway = gateway

    def respond(self, message: str | None) -> ChatReply:
        if not isinstance(message, str) or not message.strip():
            raise ValidationError("Message is required", fields=["message"])
        try:
            text = self.gateway.generate(build_chat_prompt(message.strip()))
        except Exception as exc:
            logger.warning("chat generation failed, using fallback reply: %s", exc)
            return ChatReply(text=CHAT_FALLBACK_TEXT, confidence=CHAT_FALLBACK_CONFIDENCE, fallback=True)
        return ChatReply(text=text, confidence=CHAT_CONFIDENCE)
