"""
Generative-text collaborator.

Anything with complete(prompt) -> str can stand in (a deterministic stub in
tests, another provider in production). GeminiTextClient is the default.
"""

import logging
from typing import Optional, Protocol
import google.generativeai as genai

from topic_reconciler.errors import CollaboratorError

logger = logging.getLogger(__name__)


class TextGenerationClient(Protocol):
    def complete(self, prompt: str) -> str:
        ...


class GeminiTextClient:
    """
    Thin wrapper over a Gemini GenerativeModel in JSON mode.

    Raises CollaboratorError on any API failure; callers decide whether that
    is fatal or absorbed.
    """

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-1.5-flash",
        temperature: float = 0.0,
        system_instruction: Optional[str] = None,
        json_mode: bool = True
    ):
        """
        Initialize text client.

        Args:
            api_key: Gemini API key
            model_name: Gemini model to use
            temperature: LLM temperature (0.0 for deterministic)
            system_instruction: Optional system prompt
            json_mode: Request application/json responses
        """
        self.model_name = model_name
        self.temperature = temperature

        generation_config = {"temperature": temperature}
        if json_mode:
            generation_config["response_mime_type"] = "application/json"

        # Configure Gemini
        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(
            model_name=model_name,
            generation_config=generation_config,
            system_instruction=system_instruction
        )

        logger.info(f"Initialized GeminiTextClient with model={model_name}, temp={temperature}")

    def complete(self, prompt: str) -> str:
        try:
            response = self.model.generate_content(prompt)
            return response.text
        except Exception as e:
            logger.error(f"Gemini completion failed: {e}")
            raise CollaboratorError(f"Text generation failed: {e}") from e


# Design Rationale and Trade-offs:
#
# 1. Why a Protocol for the text collaborator?
#    - Agents depend on complete(prompt) only, so tests pass plain stubs
#    - Trade-off: No shared base class to hold retry logic
#
# 2. Why JSON mime type by default?
#    - Gap and cluster answers are parsed as JSON
#    - Trade-off: Plain-text answers still need the line-based fallback
