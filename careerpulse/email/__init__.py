"""
Email module - Gmail access for the sync pipeline.

Credential lifecycle, keyword search and message decoding, and the local
pre-filter applied before extraction.
"""

from .credentials import CredentialManager, GoogleTokenRefresher, OAuthClientConfig
from .fetcher import MailFetcher, build_job_query
from .prefilter import PreFilter

__all__ = [
    "CredentialManager",
    "GoogleTokenRefresher",
    "OAuthClientConfig",
    "MailFetcher",
    "build_job_query",
    "PreFilter",
]
