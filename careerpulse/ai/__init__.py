"""
AI module - Inference-backed extraction of job application fields.

Providers (Claude, Gemini) share one prompt; the Extractor adds caching,
validation, rate limiting and the circuit breaker on top.
"""

from .base import AIProvider
from .cache import ExtractionCache, content_hash
from .extractor import Extractor, validate_extraction_payload
from .factory import get_optional_provider, get_provider
from .heuristics import HeuristicExtractor

__all__ = [
    "AIProvider",
    "ExtractionCache",
    "content_hash",
    "Extractor",
    "validate_extraction_payload",
    "get_provider",
    "get_optional_provider",
    "HeuristicExtractor",
]
