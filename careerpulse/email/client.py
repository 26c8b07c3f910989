"""
Gmail Client - Gmail API service creation and message decoding

This module builds per-credential Gmail API services, wraps the list/get
calls the fetcher needs, and turns Gmail message payloads into RawMessage
snapshots.
"""

import base64
import binascii
import socket
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional, Tuple

import google_auth_httplib2
import httplib2
from bs4 import BeautifulSoup
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from careerpulse.errors import MailProviderError
from careerpulse.logging_config import get_logger
from careerpulse.models import Credential, RawMessage, utcnow
from careerpulse.normalize import collapse_whitespace
from careerpulse.resilience import RateLimiter

logger = get_logger(__name__)

# Gmail API scopes - readonly access to messages
SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]

# Gmail caps messages.list page size at 500
MAX_PAGE_SIZE = 500

# Errors raised by the HTTP transport before any response arrives
TRANSPORT_ERRORS = (httplib2.HttpLib2Error, socket.timeout, ConnectionError, OSError)


def build_gmail_service(credential: Credential, timeout: float = 30.0):
    """
    Build an authenticated Gmail API service for one credential.

    Args:
        credential: Valid (non-expired) mailbox credential
        timeout: Socket timeout in seconds for every API call

    Returns:
        googleapiclient.discovery.Resource for Gmail v1
    """
    creds = Credentials(token=credential.access_token, scopes=SCOPES)
    http = google_auth_httplib2.AuthorizedHttp(creds, http=httplib2.Http(timeout=timeout))
    return build("gmail", "v1", http=http, cache_discovery=False)


def _provider_error(action: str, error: Exception) -> MailProviderError:
    """Translate an API or transport failure into a MailProviderError."""
    if isinstance(error, HttpError):
        status = getattr(error.resp, "status", None)
        try:
            status = int(status) if status is not None else None
        except (TypeError, ValueError):
            status = None
        content = (error.content or b"").decode("utf-8", errors="ignore").lower()
        quota = status == 403 and ("ratelimitexceeded" in content or "quota" in content)
        retryable = status == 429 or (status is not None and status >= 500) or quota
        return MailProviderError(f"Gmail {action} failed ({status}): {error}", retryable, status)
    return MailProviderError(f"Gmail {action} failed: {error}", retryable=True)


class GmailClient:
    """
    Thin wrapper over a Gmail API service.

    Every call is throttled through the optional rate limiter and raises
    MailProviderError on API or transport failure.
    """

    def __init__(self, service, rate_limiter: Optional[RateLimiter] = None):
        self._service = service
        self._rate_limiter = rate_limiter

    def _throttle(self):
        if self._rate_limiter:
            self._rate_limiter.acquire()

    def list_message_ids(
        self, query: str, page_size: int, page_token: Optional[str] = None
    ) -> Tuple[List[str], Optional[str]]:
        """
        Fetch one page of message ids matching a query.

        Returns:
            (message ids, next page token or None)
        """
        self._throttle()
        try:
            response = (
                self._service.users()
                .messages()
                .list(
                    userId="me",
                    q=query,
                    maxResults=min(page_size, MAX_PAGE_SIZE),
                    pageToken=page_token,
                )
                .execute()
            )
        except HttpError as e:
            raise _provider_error("search", e) from e
        except TRANSPORT_ERRORS as e:
            raise _provider_error("search", e) from e

        ids = [m["id"] for m in response.get("messages", []) if m.get("id")]
        return ids, response.get("nextPageToken")

    def get_message(self, msg_id: str) -> Dict[str, Any]:
        """Fetch a full message by id."""
        self._throttle()
        try:
            return (
                self._service.users().messages().get(userId="me", id=msg_id, format="full").execute()
            )
        except HttpError as e:
            raise _provider_error(f"get {msg_id}", e) from e
        except TRANSPORT_ERRORS as e:
            raise _provider_error(f"get {msg_id}", e) from e

    def get_profile_email(self) -> Optional[str]:
        """Email address of the authenticated mailbox."""
        self._throttle()
        try:
            profile = self._service.users().getProfile(userId="me").execute()
        except HttpError as e:
            raise _provider_error("profile", e) from e
        except TRANSPORT_ERRORS as e:
            raise _provider_error("profile", e) from e
        return profile.get("emailAddress")


# ---------------------------------------------------------------------------
# Message decoding
# ---------------------------------------------------------------------------


def html_to_text(html: str) -> str:
    """Convert an HTML email body to plain text."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["style", "script", "head"]):
        tag.decompose()
    return collapse_whitespace(soup.get_text(" "))


def _decode_part(data: str) -> str:
    try:
        padded = data + "=" * (-len(data) % 4)
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError) as e:
        logger.debug(f"Could not decode message part: {e}")
        return ""


def _find_part(payload: Dict[str, Any], mime_type: str) -> Optional[str]:
    """Depth-first search for the first part of a MIME type with inline data."""
    if payload.get("mimeType") == mime_type and payload.get("body", {}).get("data"):
        return _decode_part(payload["body"]["data"])
    for part in payload.get("parts", []) or []:
        found = _find_part(part, mime_type)
        if found is not None:
            return found
    return None


def get_email_body(payload: Dict[str, Any]) -> str:
    """
    Extract a plain-text body from a Gmail message payload.

    Prefers text/plain parts anywhere in the MIME tree, falls back to
    text/html converted to text, then to a non-multipart body.
    """
    plain = _find_part(payload, "text/plain")
    if plain:
        return plain.strip()

    html = _find_part(payload, "text/html")
    if html:
        return html_to_text(html)

    data = payload.get("body", {}).get("data")
    if data:
        body = _decode_part(data)
        if "<html" in body.lower() or "<body" in body.lower():
            return html_to_text(body)
        return body.strip()
    return ""


def _get_headers(message: Dict[str, Any]) -> Dict[str, str]:
    """Extract common headers from a Gmail message."""
    headers = {}
    for header in message.get("payload", {}).get("headers", []):
        name = header.get("name", "").lower()
        if name in ("subject", "from", "to", "date"):
            headers[name] = header.get("value", "")
    return headers


def _received_at(message: Dict[str, Any], date_header: Optional[str]) -> datetime:
    """Message timestamp from internalDate (ms), else the Date header, else now."""
    internal = message.get("internalDate")
    if internal:
        try:
            return datetime.fromtimestamp(int(internal) / 1000, tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            pass
    if date_header:
        try:
            parsed = parsedate_to_datetime(date_header)
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)
        except (TypeError, ValueError):
            pass
    return utcnow()


def parse_gmail_message(message: Dict[str, Any]) -> RawMessage:
    """Turn a Gmail API message resource into a RawMessage."""
    headers = _get_headers(message)
    return RawMessage(
        external_id=message["id"],
        sender=headers.get("from", ""),
        subject=headers.get("subject", ""),
        body=get_email_body(message.get("payload", {})),
        received_at=_received_at(message, headers.get("date")),
        snippet=message.get("snippet", ""),
        thread_id=message.get("threadId"),
    )
