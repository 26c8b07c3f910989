"""
Claude AI Provider - Anthropic Claude implementation
"""

import logging
import os
from typing import Any, Dict, Optional

import anthropic

from careerpulse.errors import ExtractionError

from .base import AIProvider
from .prompts import build_extract_application_prompt

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class ClaudeProvider(AIProvider):
    """Claude AI provider using the Anthropic API."""

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize Claude provider.

        Args:
            config: Configuration dict with optional 'ai.model',
                'ai.timeout_seconds', 'ai.max_output_tokens' and
                'ai.body_char_limit' settings
        """
        config = config or {}
        ai_config = config.get("ai", {})
        self._model = ai_config.get("model") or DEFAULT_MODEL
        self._max_tokens = ai_config.get("max_output_tokens", 500)
        self._body_char_limit = ai_config.get("body_char_limit", 2000)

        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise ValueError(
                "ANTHROPIC_API_KEY not found. " "Set it in .env or environment variables."
            )

        # Retries are the caller's concern; one attempt per extraction
        self._client = anthropic.Anthropic(
            api_key=api_key,
            timeout=ai_config.get("timeout_seconds", 30),
            max_retries=0,
        )

    @property
    def provider_name(self) -> str:
        return "claude"

    @property
    def model_name(self) -> str:
        return self._model

    def _generate(self, prompt: str) -> str:
        """Generate a response using Claude."""
        try:
            response = self._client.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                temperature=0,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as e:
            logger.error(f"Claude generation error: {e}")
            raise ExtractionError(f"Claude request failed: {e}") from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        return text.strip()

    def extract_application(self, sender: str, subject: str, body: str) -> Dict[str, Any]:
        prompt = build_extract_application_prompt(sender, subject, body, self._body_char_limit)
        response = self._generate(prompt)
        try:
            return self._parse_json_response(response)
        except ValueError as e:
            raise ExtractionError(str(e)) from e
