from __future__ import annotations
from typing import Optional


class FeedLogicError(Exception): ...


class ConfigError(FeedLogicError): ...


class RangeError(FeedLogicError): ...


class SeriesError(FeedLogicError): ...


class DownsampleError(FeedLogicError): ...


class FetchError(FeedLogicError):
    """Transport failure reported by a fetch collaborator.

    ``status`` is the HTTP status when the server answered, ``None`` for
    network-level failures. Network failures and 5xx are worth retrying.
    """

    def __init__(self, message: str, *, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    @property
    def retryable(self) -> bool:
        return self.status is None or self.status >= 500


class FetchFailed(FeedLogicError):
    """All fetch attempts were used up, or the failure was not retryable."""

    def __init__(self, message: str, *, attempts: int):
        super().__init__(message)
        self.attempts = attempts


def require(condition: bool, message: str, exc: type[FeedLogicError] = FeedLogicError):
    """Raise the given exception if condition is False."""
    if not condition:
        raise exc(message)
