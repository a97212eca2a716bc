"""Exception hierarchy for the notification core."""
from typing import Optional


class NotificationCoreError(Exception):
    """Base class for notification core errors."""


class TokenFormatError(NotificationCoreError):
    """The provider returned a token that does not match the expected envelope."""


class TokenDecryptError(NotificationCoreError):
    """A stored token could not be decrypted."""


class BackendError(NotificationCoreError):
    """Base class for backend API failures."""

    def __init__(self, detail: str = "Backend request failed", status_code: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class BackendUnavailableError(BackendError):
    """The backend could not be reached."""


class BackendTimeoutError(BackendError):
    """The backend did not answer within the timeout."""


class BackendRejectedError(BackendError):
    """The backend answered with a non-2xx status or success=false."""


class BackendProtocolError(BackendError):
    """The backend answered with a body that does not match the contract."""
