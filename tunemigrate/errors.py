from __future__ import annotations

from typing import List, Optional


class TuneMigrateError(Exception):
    pass


class CatalogError(TuneMigrateError):
    """Non-success response from the Spotify Web API."""

    def __init__(self, status: Optional[int], message: str):
        self.status = status
        self.message = message
        super().__init__(f"Spotify request failed ({status}): {message}" if status else f"Spotify request failed: {message}")


class AuthExpiredError(TuneMigrateError):
    def __init__(self, message: str = "Spotify session expired. Please log in again."):
        super().__init__(message)


class AIUnavailableError(TuneMigrateError):
    pass


class NoCandidatesError(TuneMigrateError):
    pass


class SourceError(TuneMigrateError):
    pass


class BatchAbortedError(TuneMigrateError):
    """Raised by match_all after too many consecutive item failures.

    `items` holds every item with the matches obtained before the abort.
    """

    def __init__(self, items: List, failures: int, last_error: Optional[BaseException] = None):
        self.items = items
        self.failures = failures
        self.last_error = last_error
        super().__init__(f"Matching aborted after {failures} consecutive failures: {last_error}")
