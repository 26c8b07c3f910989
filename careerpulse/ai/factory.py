"""
AI Provider Factory - Creates the appropriate AI provider based on configuration
"""

import importlib
import logging
from typing import Any, Dict, Optional

from .base import AIProvider

logger = logging.getLogger(__name__)

# Registry of available providers
PROVIDERS = {
    "claude": "careerpulse.ai.claude.ClaudeProvider",
    "gemini": "careerpulse.ai.gemini.GeminiProvider",
}

DEFAULT_PROVIDER = "claude"


def get_provider(config: Optional[Dict[str, Any]] = None) -> AIProvider:
    """
    Get the configured AI provider instance.

    Reads the 'ai.provider' setting from config and instantiates the
    appropriate provider class. Falls back to Claude if not specified.

    Args:
        config: Optional configuration dict. If not provided, reads from
                careerpulse.config.get_config()

    Returns:
        AIProvider: An instance of the configured AI provider

    Raises:
        ValueError: If the provider is unknown or its API key is missing
        ImportError: If the provider's package is not installed

    Example:
        >>> get_provider({'ai': {'provider': 'gemini'}}).provider_name
        'gemini'
    """
    if config is None:
        from careerpulse.config import get_config

        config = get_config().to_dict()

    ai_config = config.get("ai", {})
    provider_name = (ai_config.get("provider") or DEFAULT_PROVIDER).lower()

    if provider_name not in PROVIDERS:
        available = ", ".join(PROVIDERS.keys())
        raise ValueError(
            f"Unknown AI provider: '{provider_name}'. " f"Available providers: {available}"
        )

    module_path, class_name = PROVIDERS[provider_name].rsplit(".", 1)

    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        logger.error(f"Failed to import {provider_name} provider: {e}")
        raise ImportError(
            f"Failed to load {provider_name} provider. "
            f"Ensure the required package is installed. Error: {e}"
        ) from e

    provider_class = getattr(module, class_name)
    return provider_class(config)


def get_optional_provider(config: Optional[Dict[str, Any]] = None) -> Optional[AIProvider]:
    """
    Like get_provider, but returns None when the provider cannot be created.

    The Extractor treats a missing provider as "every extraction fails", so a
    deployment without an API key still syncs (finding nothing) instead of
    refusing to start.
    """
    try:
        return get_provider(config)
    except (ValueError, ImportError) as e:
        logger.warning(f"AI provider unavailable, extraction disabled: {e}")
        return None
