# sitecheck/services/ai_service.py
import logging
from dataclasses import dataclass
from typing import List, Literal, Optional, Protocol, Sequence

import google.generativeai as genai

from ..settings import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatMessage:
    role: Literal["system", "user", "assistant"]
    content: str


class TextGenerator(Protocol):
    async def generate(self, messages: Sequence[ChatMessage], *, temperature: float) -> str:
        """Return the model's raw text reply."""


class GeminiTextGenerator:
    """
    TextGenerator backed by Gemini. System messages become the model's
    system instruction; assistant turns are sent with the 'model' role.
    """

    def __init__(self, settings: Optional[Settings] = None, model_name: Optional[str] = None):
        self.settings = settings or get_settings()
        if not self.settings.GEMINI_API_KEY:
            raise ValueError("GEMINI_API_KEY is not configured")
        genai.configure(api_key=self.settings.GEMINI_API_KEY)
        self.model_name = model_name or self.settings.GEMINI_MODEL

    def _model(self, system: List[str]):
        return genai.GenerativeModel(
            self.model_name,
            system_instruction="\n\n".join(system) if system else None,
        )

    async def generate(self, messages: Sequence[ChatMessage], *, temperature: float) -> str:
        system = [m.content for m in messages if m.role == "system"]
        contents = [
            {"role": "model" if m.role == "assistant" else "user", "parts": [m.content]}
            for m in messages if m.role != "system"
        ]
        response = await self._model(system).generate_content_async(
            contents,
            generation_config={"temperature": temperature},
        )
        text = response.text or ""
        logger.info("Gemini %s replied with %d characters", self.model_name, len(text))
        return text
