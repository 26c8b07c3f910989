"""
Shared AI Prompt Templates

Prompts shared across all AI providers, so every backend is asked for the
same output format.
"""

from .extract_application import build_extract_application_prompt, truncate_body

__all__ = [
    "build_extract_application_prompt",
    "truncate_body",
]
