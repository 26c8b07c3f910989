"""
Sync Orchestrator - one end-to-end mail sync for a user

For each fetched message: PreFilter -> Extractor (+cache) -> ConfidenceScorer
-> DuplicateDetector -> persist. Per-message failures are counted and the
remaining messages still run. A missing or unrefreshable credential, or a
mail provider that stays unreachable after retries, ends the sync with an
exception.
"""

import time
import uuid
from dataclasses import replace
from typing import Callable, List, Optional

from careerpulse.ai.cache import ExtractionCache
from careerpulse.ai.extractor import Extractor
from careerpulse.ai.factory import get_optional_provider
from careerpulse.ai.heuristics import HeuristicExtractor
from careerpulse.database import StorageBackend
from careerpulse.duplicates import DuplicateDetector
from careerpulse.email.credentials import CredentialManager, GoogleTokenRefresher, OAuthClientConfig
from careerpulse.email.fetcher import DateLike, MailFetcher, default_after_date
from careerpulse.email.prefilter import PreFilter
from careerpulse.errors import (
    CredentialError,
    DuplicateCheckError,
    MailProviderError,
    PersistenceError,
    StorageError,
)
from careerpulse.logging_config import LogContext, get_logger
from careerpulse.models import (
    CandidateRecord,
    ConnectionStatus,
    ExtractionResult,
    RawMessage,
    SyncOptions,
    SyncSummary,
)
from careerpulse.resilience import CircuitBreaker, RateLimiter, RetryError, retry_with_backoff
from careerpulse.scoring import ConfidenceScorer

logger = get_logger(__name__)


def build_candidate(
    user_id: str, message: RawMessage, result: ExtractionResult, confidence: int
) -> CandidateRecord:
    """Build the record persisted for a job-related message."""
    location = result.location or "Not specified"
    return CandidateRecord(
        user_id=user_id,
        company=result.company,
        title=result.title,
        location=location,
        status=result.status,
        date_applied=message.received_at.date().isoformat(),
        source_message_id=message.external_id,
        confidence=confidence,
        remote_policy="Remote" if "remote" in location.lower() else None,
        notes=f'Extracted from email: "{message.subject}"',
    )


class SyncOrchestrator:
    """
    Drives sync invocations. Safe to share across request threads; every
    piece of per-sync state lives on the calling thread's stack.
    """

    def __init__(
        self,
        storage: StorageBackend,
        credentials: CredentialManager,
        fetcher: MailFetcher,
        prefilter: PreFilter,
        extractor: Extractor,
        scorer: ConfidenceScorer,
        detector: DuplicateDetector,
        max_results: int = 100,
        lookback_days: int = 30,
        deadline_seconds: Optional[float] = 90.0,
        fetch_retries: int = 2,
        retry_base_delay: float = 1.0,
        persist_duplicates: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.storage = storage
        self.credentials = credentials
        self.fetcher = fetcher
        self.prefilter = prefilter
        self.extractor = extractor
        self.scorer = scorer
        self.detector = detector
        self.max_results = max_results
        self.lookback_days = lookback_days
        self.deadline_seconds = deadline_seconds
        self.fetch_retries = fetch_retries
        self.retry_base_delay = retry_base_delay
        self.persist_duplicates = persist_duplicates
        self._clock = clock

    def sync(self, user_id: str, options: Optional[SyncOptions] = None) -> SyncSummary:
        """
        Run one sync for a user.

        Returns:
            SyncSummary with counts and the records created

        Raises:
            CredentialError: No connected mailbox, or the token refresh failed
                (the connection is then marked disconnected)
            MailProviderError: The mailbox could not be searched
        """
        options = options or SyncOptions()
        max_results = options.max_results or self.max_results
        after_date = options.after_date or default_after_date(self.lookback_days)
        deadline = (
            options.deadline_seconds
            if options.deadline_seconds is not None
            else self.deadline_seconds
        )
        started = self._clock()

        with LogContext(logger, user_id=user_id, sync_id=uuid.uuid4().hex[:8]):
            logger.info(f"Starting mail sync (max_results={max_results}, after={after_date})")

            credential = self._ensure_credential(user_id)
            messages = self._fetch(credential, max_results, after_date)

            summary = SyncSummary(total_emails=len(messages))
            for index, message in enumerate(messages):
                if self._should_stop(options, started, deadline):
                    summary.cancelled = True
                    logger.warning(
                        f"Sync stopped early, {len(messages) - index} messages not attempted"
                    )
                    break
                try:
                    self._process(user_id, message, summary)
                except (DuplicateCheckError, PersistenceError) as e:
                    summary.errors += 1
                    logger.error(f"Failed to process message {message.external_id}: {e}")
                except Exception as e:
                    summary.errors += 1
                    logger.error(
                        f"Unexpected error processing message {message.external_id}: {e}",
                        exc_info=True,
                    )

            try:
                self.storage.record_sync_run(user_id, summary)
            except StorageError as e:
                logger.error(f"Could not record sync history: {e}")

            logger.info(
                f"Sync complete: {summary.total_emails} emails, {summary.job_emails} job emails, "
                f"{summary.new_applications} new, {summary.duplicates} duplicates, "
                f"{summary.errors} errors"
            )
            return summary

    def status(self, user_id: str) -> ConnectionStatus:
        """Read-only connection status for a user."""
        credential = self.storage.get_credential(user_id)
        return ConnectionStatus(
            connected=credential is not None,
            email=credential.email if credential else None,
            last_sync=self.storage.get_last_sync(user_id),
        )

    def _ensure_credential(self, user_id: str):
        try:
            return self.credentials.ensure_valid(user_id)
        except CredentialError as e:
            if e.reason == CredentialError.REFRESH_FAILED:
                try:
                    self.storage.mark_disconnected(user_id)
                except StorageError as storage_error:
                    logger.error(f"Could not mark connection disconnected: {storage_error}")
            logger.warning(f"Sync aborted: {e}")
            raise

    def _fetch(self, credential, max_results: int, after_date: DateLike) -> List[RawMessage]:
        @retry_with_backoff(
            max_retries=self.fetch_retries,
            base_delay=self.retry_base_delay,
            retryable_exceptions=(MailProviderError,),
            should_retry=lambda e: e.retryable,
        )
        def fetch_messages():
            return self.fetcher.fetch(credential, max_results=max_results, after_date=after_date)

        try:
            return fetch_messages()
        except RetryError as e:
            raise e.last_exception from e

    def _should_stop(self, options: SyncOptions, started: float, deadline: Optional[float]) -> bool:
        if options.cancel_event is not None and options.cancel_event.is_set():
            return True
        return deadline is not None and self._clock() - started >= deadline

    def _process(self, user_id: str, message: RawMessage, summary: SyncSummary) -> None:
        if not self.prefilter.is_candidate(message.subject, message.body):
            logger.debug(f"Pre-filter skipped {message.external_id}")
            return

        outcome = self.extractor.extract(message.sender, message.subject, message.body)
        if not outcome.is_job_related:
            if outcome.failed:
                logger.debug(f"Extraction failed for {message.external_id}: {outcome.failure}")
            return

        confidence = self.scorer.score(outcome.result, was_cache_hit=outcome.from_cache)
        candidate = build_candidate(user_id, message, outcome.result, confidence)

        verdict = self.detector.check(candidate, user_id)
        if verdict.is_duplicate:
            summary.duplicates += 1
            logger.debug(f"Duplicate of {verdict.matched_record_id}: {verdict.reason}")
            if self.persist_duplicates:
                self._persist(replace(candidate, is_duplicate_of=verdict.matched_record_id))
            return

        summary.job_emails += 1
        self._persist(candidate)
        summary.new_applications += 1
        summary.created_records.append(candidate)

    def _persist(self, candidate: CandidateRecord) -> str:
        try:
            return self.storage.create_record(candidate)
        except StorageError as e:
            raise PersistenceError(f"Could not store record: {e}") from e


def build_orchestrator(config, storage: StorageBackend, cache: Optional[ExtractionCache] = None):
    """
    Wire a SyncOrchestrator from configuration.

    Build it once per process: the credential manager's refresh guard and the
    extraction cache only work when shared.
    """
    oauth_client = None
    refresher = None
    if config.google_client_id and config.google_client_secret:
        oauth_client = OAuthClientConfig(
            client_id=config.google_client_id,
            client_secret=config.google_client_secret,
            redirect_uri=config.google_redirect_uri,
        )
        refresher = GoogleTokenRefresher(oauth_client, timeout=config.refresh_timeout)

    credentials = CredentialManager(
        storage,
        refresher=refresher,
        oauth_client=oauth_client,
        skew_seconds=config.expiry_skew_seconds,
        # Covers the refresh call plus the credential write that follows it
        wait_timeout=config.refresh_timeout * 2,
    )
    fetcher = MailFetcher(
        timeout=config.gmail_timeout,
        rate_limiter=RateLimiter(config.gmail_calls_per_minute),
    )
    extractor = Extractor(
        provider=get_optional_provider(config.to_dict()),
        cache=cache or ExtractionCache(config.cache_max_size),
        rate_limiter=RateLimiter(config.ai_calls_per_minute),
        circuit_breaker=CircuitBreaker(),
        heuristic=HeuristicExtractor() if config.heuristic_fallback else None,
    )
    detector = DuplicateDetector(
        storage,
        threshold=config.similarity_threshold,
        lookback_days=config.duplicate_lookback_days,
        max_candidates=config.duplicate_max_candidates,
    )
    return SyncOrchestrator(
        storage=storage,
        credentials=credentials,
        fetcher=fetcher,
        prefilter=PreFilter(),
        extractor=extractor,
        scorer=ConfidenceScorer(),
        detector=detector,
        max_results=config.sync_max_results,
        lookback_days=config.sync_lookback_days,
        deadline_seconds=config.sync_deadline_seconds,
        fetch_retries=config.fetch_retries,
        persist_duplicates=config.persist_duplicates,
    )
