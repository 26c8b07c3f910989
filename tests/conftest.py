"""
Pytest configuration and shared fixtures for CareerPulse tests.

No test talks to Gmail, Google OAuth or an inference service: the Gmail API
is replaced by FakeGmailService and providers by FakeProvider.
"""

import base64
import os
import sys
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import httplib2
import pytest
from googleapiclient.errors import HttpError

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from careerpulse.ai.base import AIProvider
from careerpulse.ai.cache import ExtractionCache
from careerpulse.ai.extractor import Extractor
from careerpulse.database import SQLiteStorage
from careerpulse.duplicates import DuplicateDetector
from careerpulse.email.credentials import CredentialManager, RefreshedToken
from careerpulse.email.fetcher import MailFetcher
from careerpulse.email.prefilter import PreFilter
from careerpulse.models import Credential, utcnow
from careerpulse.scoring import ConfidenceScorer
from careerpulse.sync import SyncOrchestrator

USER_ID = "user-1"

NOT_JOB_PAYLOAD = {"is_job_related": False, "company": "", "title": "", "status": "", "location": ""}

ACME_INTERVIEW_PAYLOAD = {
    "is_job_related": True,
    "company": "Acme",
    "title": "Senior Engineer",
    "status": "Interview",
    "location": "Remote",
}


def http_error(status: int, content: bytes = b"error") -> HttpError:
    """Build a googleapiclient HttpError with the given status."""
    return HttpError(httplib2.Response({"status": status}), content)


def encode_body(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii")


def make_gmail_message(
    msg_id,
    sender,
    subject,
    body,
    received=None,
    mime_type="text/plain",
):
    """A Gmail API message resource (format=full) with a single-part body."""
    received = received or datetime(2026, 10, 1, 9, 30, tzinfo=timezone.utc)
    return {
        "id": msg_id,
        "threadId": f"thread-{msg_id}",
        "snippet": body[:100],
        "internalDate": str(int(received.timestamp() * 1000)),
        "payload": {
            "mimeType": mime_type,
            "headers": [
                {"name": "From", "value": sender},
                {"name": "Subject", "value": subject},
                {"name": "Date", "value": received.strftime("%a, %d %b %Y %H:%M:%S +0000")},
            ],
            "body": {"data": encode_body(body)},
        },
    }


class _Request:
    def __init__(self, fn):
        self._fn = fn

    def execute(self):
        return self._fn()


class _FakeMessages:
    def __init__(self, service):
        self._service = service

    def list(self, userId, q, maxResults, pageToken=None):
        def run():
            self._service.list_calls.append({"q": q, "maxResults": maxResults, "pageToken": pageToken})
            if self._service.list_errors:
                raise self._service.list_errors.pop(0)
            start = int(pageToken or 0)
            page = self._service.stored[start : start + maxResults]
            response = {"messages": [{"id": m["id"], "threadId": m["threadId"]} for m in page]}
            if start + maxResults < len(self._service.stored):
                response["nextPageToken"] = str(start + maxResults)
            return response

        return _Request(run)

    def get(self, userId, id, format="full"):
        def run():
            self._service.get_calls.append(id)
            if id in self._service.get_errors:
                raise self._service.get_errors[id]
            for message in self._service.stored:
                if message["id"] == id:
                    return message
            raise http_error(404, b"Not Found")

        return _Request(run)


class FakeGmailService:
    """Stand-in for the googleapiclient Gmail resource."""

    def __init__(self, messages=(), profile_email="me@example.com"):
        self.stored = list(messages)
        self.profile_email = profile_email
        self.list_calls = []
        self.get_calls = []
        self.list_errors = []
        self.get_errors = {}

    def users(self):
        return self

    def messages(self):
        return _FakeMessages(self)

    def getProfile(self, userId):
        return _Request(lambda: {"emailAddress": self.profile_email})


class FakeProvider(AIProvider):
    """Inference provider returning canned payloads chosen by subject."""

    provider_name = "fake"
    model_name = "fake-model"

    def __init__(self, responses=None, default=None, error=None):
        self.responses = responses or {}
        self.default = default if default is not None else NOT_JOB_PAYLOAD
        self.error = error
        self.calls = []

    def extract_application(self, sender, subject, body):
        self.calls.append((sender, subject, body))
        if self.error is not None:
            raise self.error
        for needle, payload in self.responses.items():
            if needle in subject:
                return payload
        return self.default


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def storage():
    """
    Initialized in-memory SQLite storage.

    Yields:
        SQLiteStorage: Storage backend with the schema created
    """
    store = SQLiteStorage(":memory:")
    store.init_db()
    yield store
    store.close()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def connected_user(storage):
    """A user with a valid stored credential."""
    credential = Credential(
        user_id=USER_ID,
        access_token="access-1",
        refresh_token="refresh-1",
        expires_at=utcnow() + timedelta(hours=1),
        email="me@example.com",
    )
    storage.save_credential(credential)
    return credential


@pytest.fixture
def expired_user(storage):
    """A user whose stored access token has already expired."""
    credential = Credential(
        user_id=USER_ID,
        access_token="stale",
        refresh_token="refresh-1",
        expires_at=utcnow() - timedelta(minutes=5),
        email="me@example.com",
    )
    storage.save_credential(credential)
    return credential


@pytest.fixture
def refresher():
    """Token refresher mock returning a fresh one-hour token."""
    return Mock(
        return_value=RefreshedToken(
            access_token="access-2", expires_at=utcnow() + timedelta(hours=1)
        )
    )


@pytest.fixture
def interview_message():
    return make_gmail_message(
        "m1",
        "Acme Recruiting <jobs@acme.com>",
        "Interview confirmation from Acme for Senior Engineer",
        "Hi, we'd like to confirm your interview for the Senior Engineer position on Tuesday.",
    )


@pytest.fixture
def newsletter_message():
    return make_gmail_message(
        "m2",
        "Weekly Digest <news@digest.io>",
        "This week in gardening",
        "Tomatoes, compost tips and seasonal planting ideas for your backyard.",
    )


@pytest.fixture
def make_orchestrator(storage, refresher):
    """
    Factory wiring a SyncOrchestrator around fakes.

    Returns:
        Callable(service, provider, **overrides) -> SyncOrchestrator
    """

    def _make(service, provider, credential_refresher=None, cache=None, **kwargs):
        credentials = CredentialManager(storage, refresher=credential_refresher or refresher)
        fetcher = MailFetcher(service_factory=lambda credential, timeout: service)
        extractor = Extractor(provider, cache or ExtractionCache(max_size=100))
        kwargs.setdefault("retry_base_delay", 0)
        return SyncOrchestrator(
            storage=storage,
            credentials=credentials,
            fetcher=fetcher,
            prefilter=PreFilter(),
            extractor=extractor,
            scorer=ConfidenceScorer(),
            detector=DuplicateDetector(storage),
            **kwargs,
        )

    return _make
