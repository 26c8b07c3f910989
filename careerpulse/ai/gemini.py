"""
Gemini AI Provider - Google Gemini implementation
"""

import logging
import os
from typing import Any, Dict, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from careerpulse.errors import ExtractionError

from .base import AIProvider
from .prompts import build_extract_application_prompt

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"


class GeminiProvider(AIProvider):
    """Gemini AI provider using the google-generativeai SDK."""

    def __init__(self, config: Optional[Dict] = None):
        config = config or {}
        ai_config = config.get("ai", {})
        self._model = ai_config.get("model") or DEFAULT_MODEL
        self._timeout = ai_config.get("timeout_seconds", 30)
        self._body_char_limit = ai_config.get("body_char_limit", 2000)

        api_key = os.environ.get("GOOGLE_API_KEY")
        if not api_key:
            raise ValueError("GOOGLE_API_KEY not found. " "Set it in .env or environment variables.")

        genai.configure(api_key=api_key)
        self._client = genai.GenerativeModel(
            self._model,
            generation_config={
                "temperature": 0.1,
                "max_output_tokens": ai_config.get("max_output_tokens", 500),
            },
        )

    @property
    def provider_name(self) -> str:
        return "gemini"

    @property
    def model_name(self) -> str:
        return self._model

    def _generate(self, prompt: str) -> str:
        """Generate a response using Gemini."""
        try:
            response = self._client.generate_content(
                prompt, request_options={"timeout": self._timeout}
            )
            # .text raises ValueError when the reply was blocked or empty
            return response.text.strip()
        except (google_exceptions.GoogleAPIError, ValueError) as e:
            logger.error(f"Gemini generation error: {e}")
            raise ExtractionError(f"Gemini request failed: {e}") from e

    def extract_application(self, sender: str, subject: str, body: str) -> Dict[str, Any]:
        prompt = build_extract_application_prompt(sender, subject, body, self._body_char_limit)
        response = self._generate(prompt)
        try:
            return self._parse_json_response(response)
        except ValueError as e:
            raise ExtractionError(str(e)) from e
