"""
Base AI Provider - Abstract base class for inference providers

This module defines the interface the Extractor consumes (Claude, Gemini).
Providers only make the external call and recover a JSON object from the
reply; validating its shape is the Extractor's job.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict

logger = logging.getLogger(__name__)


class AIProvider(ABC):
    """
    Abstract base class for AI providers.

    All providers use the same prompt and must return the raw parsed JSON
    object so the application behaves identically regardless of backend.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of this AI provider.

        Returns:
            str: Provider name (e.g., 'claude', 'gemini')
        """
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """
        Return the model being used.

        Returns:
            str: Model identifier (e.g., 'claude-sonnet-4-20250514')
        """
        pass

    @abstractmethod
    def extract_application(self, sender: str, subject: str, body: str) -> Dict[str, Any]:
        """
        Classify an email and extract job application fields.

        Args:
            sender: Email From header
            subject: Email subject line
            body: Email body text (already truncated by the caller)

        Returns:
            dict: Parsed JSON object from the model, unvalidated. Expected shape:
                {
                    "is_job_related": bool,
                    "company": str,
                    "title": str,
                    "status": "Applied"|"Interview"|"Offer"|"Rejected",
                    "location": str
                }

        Raises:
            ExtractionError: On network failure, timeout, API error, or a
                reply that contains no JSON object

        Example:
            >>> provider.extract_application(
            ...     "Acme Careers <jobs@acme.com>",
            ...     "Interview confirmation - Senior Engineer",
            ...     "Hi, we'd like to schedule an interview..."
            ... )
            {
                "is_job_related": True,
                "company": "Acme",
                "title": "Senior Engineer",
                "status": "Interview",
                "location": "Remote"
            }
        """
        pass

    def _parse_json_response(self, text: str) -> Dict[str, Any]:
        """
        Extract JSON from an AI response that might include markdown fences or preamble.

        Args:
            text: Raw AI response text

        Returns:
            dict: Parsed JSON object

        Raises:
            ValueError: If no valid JSON object can be extracted

        Example:
            >>> provider._parse_json_response('```json\\n{"key": "value"}\\n```')
            {"key": "value"}
            >>> provider._parse_json_response('Here is the result: {"key": "value"}')
            {"key": "value"}
        """
        if not text:
            raise ValueError("Empty response text")

        text = text.strip()

        candidates = [text]

        # Markdown json fence, then any fence
        for pattern in (r"```json\s*([\s\S]*?)\s*```", r"```\s*([\s\S]*?)\s*```"):
            match = re.search(pattern, text)
            if match:
                candidates.append(match.group(1))

        # Outermost braces
        match = re.search(r"\{[\s\S]*\}", text)
        if match:
            candidates.append(match.group())

        for candidate in candidates:
            try:
                parsed = json.loads(candidate)
            except json.JSONDecodeError:
                continue
            if isinstance(parsed, dict):
                return parsed

        logger.debug(f"Unparseable AI response: {text[:200]}")
        raise ValueError(f"Could not extract JSON object from response: {text[:100]}...")
