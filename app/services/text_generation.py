# backend/app/services/text_generation.py

import asyncio
import logging
from typing import Optional, Protocol

import google.generativeai as genai

from app.core.config import settings
from app.core.errors import TextGenerationError

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    """Capability used by the recommendation and insight generators."""

    async def generate(
        self,
        prompt: str,
        *,
        system: str,
        temperature: float = 0.7,
        max_output_tokens: Optional[int] = None,
        json_response: bool = True,
    ) -> str:
        ...


class GeminiTextGenerator:
    """
    Gemini-backed TextGenerator.

    - Without GEMINI_API_KEY the generator is disabled and every call raises
      TextGenerationError, so callers take their fallback path.
    - Calls are bounded by `timeout` seconds.
    """

    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None, timeout: Optional[float] = None):
        self.api_key = (api_key if api_key is not None else settings.GEMINI_API_KEY or "").strip()
        self.model_name = (model_name or settings.GEMINI_MODEL or "gemini-1.5-flash").strip()
        self.timeout = float(timeout if timeout is not None else settings.AI_TIMEOUT_SECONDS)
        self.enabled = False

        if not self.api_key:
            logger.warning("GEMINI_API_KEY missing – AI generation disabled, heuristics only")
            return

        try:
            genai.configure(api_key=self.api_key)
            self.enabled = True
            logger.info(f"Gemini text generation enabled. model={self.model_name}")
        except Exception as e:
            logger.warning(f"Gemini init failed: {e}")

    async def generate(
        self,
        prompt: str,
        *,
        system: str,
        temperature: float = 0.7,
        max_output_tokens: Optional[int] = None,
        json_response: bool = True,
    ) -> str:
        if not self.enabled:
            raise TextGenerationError("Gemini not configured")

        generation_config = {"temperature": temperature}
        if max_output_tokens:
            generation_config["max_output_tokens"] = max_output_tokens
        if json_response:
            generation_config["response_mime_type"] = "application/json"

        model = genai.GenerativeModel(self.model_name, system_instruction=system)
        try:
            res = await asyncio.wait_for(
                model.generate_content_async(prompt, generation_config=generation_config),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise TextGenerationError(f"Gemini call timed out after {self.timeout:.0f}s") from e
        except Exception as e:
            raise TextGenerationError(f"Gemini call failed: {e}") from e

        try:
            text = res.text
        except ValueError as e:
            # blocked or empty candidates
            raise TextGenerationError(f"Gemini returned no text: {e}") from e
        return text or ""


_generator_singleton: Optional[GeminiTextGenerator] = None


def get_text_generator() -> GeminiTextGenerator:
    global _generator_singleton
    if _generator_singleton is None:
        _generator_singleton = GeminiTextGenerator()
    return _generator_singleton
