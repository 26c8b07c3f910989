"""
Extractor - classify-and-extract with caching, validation and graceful failure

extract() never raises. Every external failure (missing API key, network
error, timeout, unparseable or invalid reply, open circuit) yields a failed
ExtractionOutcome, which downstream code treats as "not job-related".
"""

from typing import Any, Dict, Optional

from careerpulse.errors import ExtractionError, ValidationError
from careerpulse.logging_config import get_logger
from careerpulse.models import ApplicationStatus, ExtractionOutcome, ExtractionResult
from careerpulse.resilience import CircuitBreaker, RateLimiter

from .base import AIProvider
from .cache import ExtractionCache, content_hash
from .heuristics import HeuristicExtractor

logger = get_logger(__name__)

# Failure reasons reported on ExtractionOutcome.failure
FAILURE_MISSING_API_KEY = "missing_api_key"
FAILURE_CIRCUIT_OPEN = "circuit_open"
FAILURE_RATE_LIMITED = "rate_limited"
FAILURE_SERVICE = "service_error"
FAILURE_INVALID_RESPONSE = "invalid_response"
FAILURE_UNEXPECTED = "unexpected_error"

REQUIRED_FIELDS = ("company", "title", "status", "location")

# Key spellings accepted in model replies
_ALIASES = {
    "is_job_related": ("is_job_related", "isJobRelated", "isJobEmail"),
    "title": ("title", "jobTitle", "job_title"),
}


def _lookup(payload: Dict[str, Any], name: str) -> Any:
    for key in _ALIASES.get(name, (name,)):
        if key in payload:
            return payload[key]
    return None


def validate_extraction_payload(payload: Any) -> ExtractionResult:
    """
    Check a parsed inference reply against the extraction contract.

    The reply must carry a boolean is_job_related. When it is true, company,
    title, status and location must all be non-empty strings and status
    must be one of the four canonical statuses (case-insensitive).

    Raises:
        ValidationError: If the payload does not match the contract
    """
    if not isinstance(payload, dict):
        raise ValidationError(f"Expected a JSON object, got {type(payload).__name__}")

    flag = _lookup(payload, "is_job_related")
    if not isinstance(flag, bool):
        raise ValidationError(f"is_job_related must be a boolean, got {flag!r}")
    if not flag:
        return ExtractionResult.not_job_related()

    fields = {}
    for name in REQUIRED_FIELDS:
        value = _lookup(payload, name)
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"Job-related reply is missing '{name}'")
        fields[name] = value.strip()

    status = ApplicationStatus.parse(fields["status"])
    if status is None:
        raise ValidationError(f"Invalid status: {fields['status']!r}")

    return ExtractionResult(
        is_job_related=True,
        company=fields["company"],
        title=fields["title"],
        status=status,
        location=fields["location"],
    )


class Extractor:
    """
    Turns raw message text into an ExtractionOutcome.

    Args:
        provider: Inference provider, or None when no API key is configured
        cache: Shared extraction cache
        rate_limiter: Throttles inference calls
        circuit_breaker: Stops calling a provider that keeps failing
        heuristic: Fallback used when the model extraction fails (optional)
        rate_limit_wait: Seconds to wait for a rate-limit slot before giving up
    """

    def __init__(
        self,
        provider: Optional[AIProvider],
        cache: ExtractionCache,
        rate_limiter: Optional[RateLimiter] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        heuristic: Optional[HeuristicExtractor] = None,
        rate_limit_wait: float = 30.0,
    ):
        self.provider = provider
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.circuit_breaker = circuit_breaker
        self.heuristic = heuristic
        self.rate_limit_wait = rate_limit_wait

    def extract(self, sender: str, subject: str, body: str) -> ExtractionOutcome:
        key = content_hash(sender, subject, body)
        cached = self.cache.get(key)
        if cached is not None:
            return ExtractionOutcome.success(cached, from_cache=True)

        outcome = self._extract_with_model(key, sender, subject, body)
        if outcome.failed and self.heuristic is not None:
            logger.debug(f"Model extraction failed ({outcome.failure}), using heuristics")
            return ExtractionOutcome.success(self.heuristic.extract(sender, subject, body))
        return outcome

    def _extract_with_model(
        self, key: str, sender: str, subject: str, body: str
    ) -> ExtractionOutcome:
        if self.provider is None:
            return ExtractionOutcome.failed_with(FAILURE_MISSING_API_KEY)

        if self.circuit_breaker is not None and not self.circuit_breaker.allow_request():
            logger.debug("Inference circuit open, skipping extraction call")
            return ExtractionOutcome.failed_with(FAILURE_CIRCUIT_OPEN)

        if self.rate_limiter is not None and not self.rate_limiter.acquire(
            timeout=self.rate_limit_wait
        ):
            logger.warning("Inference rate limit wait timed out")
            return ExtractionOutcome.failed_with(FAILURE_RATE_LIMITED)

        try:
            payload = self.provider.extract_application(sender, subject, body)
        except ExtractionError as e:
            self._record(False)
            logger.warning(f"Extraction failed for '{subject[:60]}': {e}")
            return ExtractionOutcome.failed_with(FAILURE_SERVICE)
        except Exception as e:
            self._record(False)
            logger.warning(f"Unexpected extraction error for '{subject[:60]}': {e}", exc_info=True)
            return ExtractionOutcome.failed_with(FAILURE_UNEXPECTED)

        # The service answered; a bad reply does not count against the circuit
        self._record(True)

        try:
            result = validate_extraction_payload(payload)
        except ValidationError as e:
            logger.warning(f"Rejected extraction reply for '{subject[:60]}': {e}")
            return ExtractionOutcome.failed_with(FAILURE_INVALID_RESPONSE)

        self.cache.put(key, result)
        return ExtractionOutcome.success(result)

    def _record(self, success: bool) -> None:
        if self.circuit_breaker is None:
            return
        if success:
            self.circuit_breaker.record_success()
        else:
            self.circuit_breaker.record_failure()
