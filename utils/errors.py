# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Error taxonomy for the webinar sync
"""
from typing import Optional


class SyncError(Exception):
    """Base class for every error raised by the sync"""


class AuthenticationError(SyncError):
    """The token endpoint rejected a refresh or code exchange"""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 error: Optional[str] = None, error_description: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.error_description = error_description


class RemoteApiError(SyncError):
    """A data endpoint answered with a non-success status or could not be reached"""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class PaginationLimitError(RemoteApiError):
    """The server kept reporting more pages than the safety bound allows"""


class ConfigurationError(SyncError):
    """A required setting is missing or invalid"""

    def __init__(self, message: str, missing: Optional[list] = None):
        super().__init__(message)
        self.missing = missing or []


class InvalidArgumentError(SyncError, ValueError):
    """A call was made with arguments the API would reject"""


class CredentialPersistenceError(SyncError):
    """A rotated refresh token could not be written to durable storage"""


class DataIntegrityWarning(SyncError, UserWarning):
    """Malformed per-item input that is skipped instead of aborting the run"""
