"""
Tests for the Gmail search, pagination and message decoding.
"""

import socket
from datetime import date, datetime, timezone
from unittest.mock import Mock, patch

import pytest

from careerpulse.email.client import (
    GmailClient,
    build_gmail_service,
    get_email_body,
    html_to_text,
    parse_gmail_message,
)
from careerpulse.email.fetcher import MailFetcher, build_job_query, format_after_date
from careerpulse.errors import MailProviderError

from conftest import FakeGmailService, encode_body, http_error, make_gmail_message


def _messages(count):
    return [
        make_gmail_message(f"id-{i}", "jobs@acme.com", f"Application {i}", "Thanks for applying")
        for i in range(count)
    ]


def _fetcher(service, page_size=100):
    return MailFetcher(service_factory=lambda credential, timeout: service, page_size=page_size)


# ===== Query =====


def test_build_job_query_quotes_phrases_and_adds_date():
    query = build_job_query(["application", "next steps"], after_date=date(2026, 9, 1))

    assert query == '(application OR "next steps") in:inbox after:2026/09/01'


def test_build_job_query_without_date():
    assert "after:" not in build_job_query()


@pytest.mark.parametrize(
    "value", [date(2026, 1, 5), datetime(2026, 1, 5, 10, 0), "2026-01-05", "2026/01/05"]
)
def test_format_after_date(value):
    assert format_after_date(value) == "2026/01/05"


def test_format_after_date_rejects_garbage():
    with pytest.raises(ValueError):
        format_after_date("last tuesday")


# ===== Fetch =====


def test_fetch_uses_job_query(connected_user):
    service = FakeGmailService(_messages(2))

    messages = _fetcher(service).fetch(connected_user, after_date="2026-09-01")

    assert [m.external_id for m in messages] == ["id-0", "id-1"]
    query = service.list_calls[0]["q"]
    assert query.startswith("(")
    assert "interview" in query
    assert query.endswith("after:2026/09/01")


def test_fetch_paginates_until_max_results(connected_user):
    service = FakeGmailService(_messages(7))

    messages = _fetcher(service, page_size=3).fetch(connected_user, max_results=5)

    assert len(messages) == 5
    assert [c["pageToken"] for c in service.list_calls] == [None, "3"]
    assert [c["maxResults"] for c in service.list_calls] == [3, 2]


def test_fetch_stops_when_no_more_pages(connected_user):
    service = FakeGmailService(_messages(4))

    messages = _fetcher(service, page_size=3).fetch(connected_user, max_results=100)

    assert len(messages) == 4
    assert len(service.list_calls) == 2


def test_fetch_zero_results_makes_no_calls(connected_user):
    service = FakeGmailService(_messages(3))

    assert _fetcher(service).fetch(connected_user, max_results=0) == []
    assert service.list_calls == []


def test_fetch_custom_query_gets_date_bound(connected_user):
    service = FakeGmailService()

    _fetcher(service).fetch(connected_user, query="from:jobs@acme.com", after_date=date(2026, 9, 1))

    assert service.list_calls[0]["q"] == "from:jobs@acme.com after:2026/09/01"


def test_message_deleted_between_list_and_get_is_skipped(connected_user):
    service = FakeGmailService(_messages(3))
    service.get_errors["id-1"] = http_error(404, b"Not Found")

    messages = _fetcher(service).fetch(connected_user)

    assert [m.external_id for m in messages] == ["id-0", "id-2"]


def test_malformed_message_is_skipped(connected_user):
    service = FakeGmailService(_messages(2))
    broken = dict(service.stored[0])
    del broken["id"]
    original_get = service.messages

    class _Broken:
        def list(self, **kwargs):
            return original_get().list(**kwargs)

        def get(self, userId, id, format="full"):
            if id == "id-0":
                return Mock(execute=Mock(return_value=broken))
            return original_get().get(userId=userId, id=id, format=format)

    service.messages = lambda: _Broken()

    messages = _fetcher(service).fetch(connected_user)

    assert [m.external_id for m in messages] == ["id-1"]


def test_rate_limited_search_is_retryable(connected_user):
    service = FakeGmailService()
    service.list_errors = [http_error(429)]

    with pytest.raises(MailProviderError) as exc_info:
        _fetcher(service).fetch(connected_user)

    assert exc_info.value.retryable
    assert exc_info.value.status == 429


def test_quota_403_is_retryable(connected_user):
    service = FakeGmailService()
    service.list_errors = [http_error(403, b'{"error": {"errors": [{"reason": "rateLimitExceeded"}]}}')]

    with pytest.raises(MailProviderError) as exc_info:
        _fetcher(service).fetch(connected_user)

    assert exc_info.value.retryable


@pytest.mark.parametrize("status", [400, 401, 403])
def test_client_errors_are_not_retryable(connected_user, status):
    service = FakeGmailService()
    service.list_errors = [http_error(status, b"forbidden")]

    with pytest.raises(MailProviderError) as exc_info:
        _fetcher(service).fetch(connected_user)

    assert not exc_info.value.retryable
    assert exc_info.value.status == status


def test_failed_get_other_than_404_propagates(connected_user):
    service = FakeGmailService(_messages(2))
    service.get_errors["id-1"] = http_error(500)

    with pytest.raises(MailProviderError) as exc_info:
        _fetcher(service).fetch(connected_user)

    assert exc_info.value.retryable


def test_transport_timeout_is_retryable():
    service = Mock()
    service.users.return_value.messages.return_value.list.return_value.execute.side_effect = (
        socket.timeout("timed out")
    )

    with pytest.raises(MailProviderError) as exc_info:
        GmailClient(service).list_message_ids("q", 10)

    assert exc_info.value.retryable
    assert exc_info.value.status is None


def test_client_uses_rate_limiter():
    limiter = Mock()
    GmailClient(FakeGmailService(profile_email="me@example.com"), rate_limiter=limiter).get_profile_email()

    limiter.acquire.assert_called_once()


def test_build_gmail_service_sets_timeout(connected_user):
    with patch("careerpulse.email.client.build") as build, patch(
        "careerpulse.email.client.httplib2.Http"
    ) as http_cls:
        build_gmail_service(connected_user, timeout=12)

    http_cls.assert_called_once_with(timeout=12)
    assert build.call_args.args[:2] == ("gmail", "v1")
    assert build.call_args.kwargs["cache_discovery"] is False


# ===== Decoding =====


def test_parse_gmail_message_fields():
    received = datetime(2026, 9, 15, 8, 0, tzinfo=timezone.utc)
    message = make_gmail_message("abc", "Acme <jobs@acme.com>", "Interview", "See you soon", received)

    raw = parse_gmail_message(message)

    assert raw.external_id == "abc"
    assert raw.sender == "Acme <jobs@acme.com>"
    assert raw.subject == "Interview"
    assert raw.body == "See you soon"
    assert raw.received_at == received
    assert raw.thread_id == "thread-abc"


def test_received_at_falls_back_to_date_header():
    message = make_gmail_message("abc", "a@b.com", "s", "b")
    del message["internalDate"]
    message["payload"]["headers"][2]["value"] = "Tue, 15 Sep 2026 10:30:00 +0200"

    raw = parse_gmail_message(message)

    assert raw.received_at == datetime(2026, 9, 15, 8, 30, tzinfo=timezone.utc)


def test_plain_text_part_preferred_over_html():
    payload = {
        "mimeType": "multipart/alternative",
        "parts": [
            {"mimeType": "text/html", "body": {"data": encode_body("<p>HTML version</p>")}},
            {"mimeType": "text/plain", "body": {"data": encode_body("Plain version")}},
        ],
    }

    assert get_email_body(payload) == "Plain version"


def test_nested_html_part_is_converted_to_text():
    html = "<html><head><style>p{}</style></head><body><p>Your   interview</p><script>x()</script></body></html>"
    payload = {
        "mimeType": "multipart/mixed",
        "parts": [
            {"mimeType": "multipart/alternative", "parts": [
                {"mimeType": "text/html", "body": {"data": encode_body(html)}},
            ]},
            {"mimeType": "application/pdf", "body": {"attachmentId": "att-1"}},
        ],
    }

    assert get_email_body(payload) == "Your interview"


def test_single_part_html_body_is_converted():
    payload = {"mimeType": "text/html", "body": {"data": encode_body("<html><body><b>Offer</b> letter</body></html>")}}

    assert get_email_body(payload) == "Offer letter"


def test_unpadded_base64_is_decoded():
    data = encode_body("Thanks for applying").rstrip("=")

    assert get_email_body({"mimeType": "text/plain", "body": {"data": data}}) == "Thanks for applying"


def test_empty_payload_has_empty_body():
    assert get_email_body({"mimeType": "multipart/mixed", "parts": []}) == ""
    assert html_to_text("") == ""
