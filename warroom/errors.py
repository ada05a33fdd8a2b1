"""Error taxonomy for platform fetches and the matchup store."""

from typing import Optional


class WarRoomError(Exception):
    """Base class for all warroom errors."""


class NetworkError(WarRoomError):
    """Transport-level failure: timeout, refused connection, bad HTTP status."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class RateLimited(NetworkError):
    """The platform asked us to slow down (HTTP 429)."""

    def __init__(self, message: str = 'rate limited', retry_after: Optional[float] = None):
        super().__init__(message, status=429)
        self.retry_after = retry_after


class NoDataAvailable(NetworkError):
    """A fetch failed and there is no cached value to fall back on."""


class DecodingError(WarRoomError):
    """The platform returned a payload that could not be parsed."""


class UnresolvedScoringRules(WarRoomError):
    """No scoring table could be resolved; the engine falls back to estimates."""


class SnapshotNotFound(WarRoomError, LookupError):
    """The league-week was fetched but does not contain the requested matchup."""
