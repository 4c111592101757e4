"""Error taxonomy shared by the core and its adapters.

The HTTP layer maps these to status codes in ``safewatch.main``; core code
only raises them.
"""

from __future__ import annotations

from datetime import datetime


class SafeWatchError(Exception):
    """Base class for every error the core raises on purpose."""


class NotFoundError(SafeWatchError):
    """An event or profile required by the operation does not exist."""


class ValidationError(SafeWatchError):
    """Malformed input: non-finite coordinates, unknown status, bad filters."""


class StoreError(SafeWatchError):
    """A persistence call failed. The underlying message is kept verbatim."""


class ReportingBlockedError(SafeWatchError):
    """The reporter is serving a reporting ban."""

    def __init__(self, reporter_id: str, banned_until: datetime) -> None:
        super().__init__(
            f"Reporting is temporarily disabled until {banned_until.isoformat()}",
        )
        self.reporter_id = reporter_id
        self.banned_until = banned_until
