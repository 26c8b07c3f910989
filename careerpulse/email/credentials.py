"""
Credential Manager - OAuth credential lifecycle for mailbox access

Owns each user's Gmail OAuth credential: the connect flow (authorization
URL, code exchange), transparent refresh before use, and disconnect.

Concurrent callers that find the same expired credential share a single
refresh: the first caller publishes its result through an in-flight
Future and every other caller waits on it.
"""

import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

import google.auth.transport.requests
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from careerpulse.errors import CredentialError, MailProviderError
from careerpulse.logging_config import get_logger
from careerpulse.models import Credential, ensure_utc, utcnow

from .client import SCOPES, GmailClient, build_gmail_service

logger = get_logger(__name__)

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"

# Used when the token endpoint omits expires_in
DEFAULT_TOKEN_LIFETIME = timedelta(hours=1)


@dataclass(frozen=True)
class OAuthClientConfig:
    """Google OAuth web client settings (read from the environment)."""

    client_id: str
    client_secret: str
    redirect_uri: str
    token_uri: str = GOOGLE_TOKEN_URI

    def to_client_config(self) -> Dict:
        return {
            "web": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": GOOGLE_AUTH_URI,
                "token_uri": self.token_uri,
                "redirect_uris": [self.redirect_uri],
            }
        }


@dataclass(frozen=True)
class RefreshedToken:
    access_token: str
    expires_at: datetime
    refresh_token: Optional[str] = None


class _TimeoutRequest(google.auth.transport.requests.Request):
    """Token endpoint transport that applies a default timeout to every call."""

    def __init__(self, timeout: float):
        super().__init__()
        self._timeout = timeout

    def __call__(self, url, method="GET", body=None, headers=None, timeout=None, **kwargs):
        return super().__call__(
            url, method=method, body=body, headers=headers, timeout=timeout or self._timeout, **kwargs
        )


class GoogleTokenRefresher:
    """Exchanges a refresh token for a new access token at Google's token endpoint."""

    def __init__(self, client: OAuthClientConfig, timeout: float = 15.0):
        self.client = client
        self.timeout = timeout

    def __call__(self, refresh_token: str) -> RefreshedToken:
        creds = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=self.client.token_uri,
            client_id=self.client.client_id,
            client_secret=self.client.client_secret,
            scopes=SCOPES,
        )
        creds.refresh(_TimeoutRequest(self.timeout))
        # google-auth reports expiry as naive UTC
        expires_at = ensure_utc(creds.expiry) if creds.expiry else utcnow() + DEFAULT_TOKEN_LIFETIME
        return RefreshedToken(
            access_token=creds.token,
            expires_at=expires_at,
            refresh_token=creds.refresh_token,
        )


def _lookup_mailbox_address(credential: Credential) -> Optional[str]:
    return GmailClient(build_gmail_service(credential)).get_profile_email()


class CredentialManager:
    """
    Per-user OAuth credential owner.

    Args:
        storage: Storage collaborator holding credentials
        refresher: Callable(refresh_token) -> RefreshedToken
        oauth_client: OAuth client settings; required for connect flows
        skew_seconds: Refresh tokens this many seconds before they expire
        clock: Returns the current UTC time
        profile_lookup: Callable(credential) -> mailbox address, used on connect
        wait_timeout: Longest a caller waits on another caller's refresh
    """

    def __init__(
        self,
        storage,
        refresher: Optional[Callable[[str], RefreshedToken]] = None,
        oauth_client: Optional[OAuthClientConfig] = None,
        skew_seconds: float = 60,
        clock: Callable[[], datetime] = utcnow,
        profile_lookup: Callable[[Credential], Optional[str]] = _lookup_mailbox_address,
        wait_timeout: float = 30.0,
    ):
        if refresher is None and oauth_client is not None:
            refresher = GoogleTokenRefresher(oauth_client)
        self.storage = storage
        self.oauth_client = oauth_client
        self.skew_seconds = skew_seconds
        self.wait_timeout = wait_timeout
        self._refresher = refresher
        self._clock = clock
        self._profile_lookup = profile_lookup
        self._guard = threading.Lock()
        self._inflight: Dict[str, Future] = {}

    def _needs_refresh(self, credential: Credential) -> bool:
        return credential.is_expired(now=self._clock(), skew_seconds=self.skew_seconds)

    def ensure_valid(self, user_id: str) -> Credential:
        """
        Return a credential valid for at least one subsequent call.

        Raises:
            CredentialError: 'not_connected' when no credential is stored,
                'refresh_failed' when the token endpoint rejects the refresh
        """
        credential = self.storage.get_credential(user_id)
        if credential is None:
            raise CredentialError(CredentialError.NOT_CONNECTED, user_id)
        if not self._needs_refresh(credential):
            return credential
        return self._refresh_once(user_id)

    def _refresh_once(self, user_id: str) -> Credential:
        with self._guard:
            future = self._inflight.get(user_id)
            owner = future is None
            if owner:
                # Another caller may have finished a refresh since our first read
                current = self.storage.get_credential(user_id)
                if current is None:
                    raise CredentialError(CredentialError.NOT_CONNECTED, user_id)
                if not self._needs_refresh(current):
                    return current
                future = Future()
                self._inflight[user_id] = future

        if not owner:
            logger.debug(f"Waiting on in-flight token refresh for user {user_id}")
            try:
                return future.result(timeout=self.wait_timeout)
            except FutureTimeoutError as e:
                raise CredentialError(
                    CredentialError.REFRESH_FAILED,
                    user_id,
                    f"Timed out waiting on token refresh for user {user_id}",
                ) from e

        try:
            refreshed = self._refresh(current)
        except Exception as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(refreshed)
            return refreshed
        finally:
            # Interrupted refreshes still release the waiters
            if not future.done():
                future.set_exception(
                    CredentialError(
                        CredentialError.REFRESH_FAILED,
                        user_id,
                        f"Token refresh for user {user_id} was interrupted",
                    )
                )
            with self._guard:
                self._inflight.pop(user_id, None)

    def _refresh(self, credential: Credential) -> Credential:
        if self._refresher is None:
            raise CredentialError(
                CredentialError.REFRESH_FAILED,
                credential.user_id,
                "No OAuth client configured to refresh tokens",
            )

        logger.info(f"Refreshing access token for user {credential.user_id}")
        try:
            token = self._refresher(credential.refresh_token)
        except Exception as e:
            logger.error(f"Token refresh failed for user {credential.user_id}: {e}")
            raise CredentialError(CredentialError.REFRESH_FAILED, credential.user_id) from e

        refreshed = Credential(
            user_id=credential.user_id,
            access_token=token.access_token,
            refresh_token=token.refresh_token or credential.refresh_token,
            expires_at=token.expires_at,
            email=credential.email,
        )
        self.storage.save_credential(refreshed)
        return refreshed

    # ===== CONNECT / DISCONNECT =====

    def _flow(self) -> Flow:
        if self.oauth_client is None:
            raise CredentialError(
                CredentialError.CONNECT_FAILED,
                message="Google OAuth client is not configured "
                "(set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET)",
            )
        return Flow.from_client_config(
            self.oauth_client.to_client_config(),
            scopes=SCOPES,
            redirect_uri=self.oauth_client.redirect_uri,
            autogenerate_code_verifier=False,
        )

    def authorization_url(self, state: str) -> str:
        """Google consent URL requesting offline (refreshable) mailbox access."""
        url, _ = self._flow().authorization_url(
            access_type="offline",
            prompt="consent",
            include_granted_scopes="true",
            state=state,
        )
        return url

    def connect(self, user_id: str, code: str) -> Credential:
        """
        Exchange an authorization code and store the user's credential.

        Raises:
            CredentialError: 'connect_failed' if the exchange fails or Google
                returns no refresh token
        """
        flow = self._flow()
        try:
            flow.fetch_token(code=code)
        except Exception as e:
            logger.error(f"OAuth code exchange failed for user {user_id}: {e}")
            raise CredentialError(CredentialError.CONNECT_FAILED, user_id) from e

        creds = flow.credentials
        if not creds.refresh_token:
            raise CredentialError(
                CredentialError.CONNECT_FAILED,
                user_id,
                "Google returned no refresh token; revoke access and reconnect",
            )

        credential = Credential(
            user_id=user_id,
            access_token=creds.token,
            refresh_token=creds.refresh_token,
            expires_at=ensure_utc(creds.expiry) if creds.expiry else utcnow() + DEFAULT_TOKEN_LIFETIME,
        )
        try:
            credential.email = self._profile_lookup(credential)
        except MailProviderError as e:
            logger.warning(f"Could not read mailbox address for user {user_id}: {e}")

        self.storage.save_credential(credential)
        logger.info(f"Connected mailbox {credential.email or '(unknown)'} for user {user_id}")
        return credential

    def disconnect(self, user_id: str) -> None:
        """Destroy the user's stored credential."""
        self.storage.delete_credential(user_id)
        logger.info(f"Disconnected mailbox for user {user_id}")
