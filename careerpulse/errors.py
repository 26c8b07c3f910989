"""
Errors - Exception taxonomy for the mail sync pipeline

Failures local to one message (extraction, validation, duplicate check,
persistence) are absorbed and counted by the orchestrator. Credential and
mail provider failures are terminal for a sync invocation.
"""

from typing import Optional


class CareerPulseError(Exception):
    """Base class for all pipeline errors."""

    pass


class CredentialError(CareerPulseError):
    """
    Raised when no usable mailbox credential exists for a user.

    Attributes:
        reason: 'not_connected', 'refresh_failed' or 'connect_failed'
        user_id: Owner of the credential
    """

    NOT_CONNECTED = "not_connected"
    REFRESH_FAILED = "refresh_failed"
    CONNECT_FAILED = "connect_failed"

    def __init__(self, reason: str, user_id: Optional[str] = None, message: Optional[str] = None):
        super().__init__(message or f"Credential error for user {user_id}: {reason}")
        self.reason = reason
        self.user_id = user_id

    @property
    def reconnect_required(self) -> bool:
        return self.reason in (self.NOT_CONNECTED, self.REFRESH_FAILED)


class MailProviderError(CareerPulseError):
    """
    Raised when the mail provider cannot be reached or refuses the request.

    Attributes:
        retryable: True for quota (429), server (5xx) and transport failures
        status: HTTP status code when one was returned
    """

    def __init__(self, message: str, retryable: bool = False, status: Optional[int] = None):
        super().__init__(message)
        self.retryable = retryable
        self.status = status


class ExtractionError(CareerPulseError):
    """Raised by AI providers when the inference call fails. Never escapes the Extractor."""

    pass


class ValidationError(CareerPulseError):
    """Raised when an inference response does not match the extraction contract."""

    pass


class StorageError(CareerPulseError):
    """Raised by the storage layer when a database operation fails."""

    pass


class DuplicateCheckError(CareerPulseError):
    """Raised when the duplicate check cannot query stored records."""

    pass


class PersistenceError(CareerPulseError):
    """Raised when a candidate record cannot be written."""

    pass
