"""Error taxonomy shared by the API client, the repositories and the sync service."""

from __future__ import annotations

from typing import Optional


class NewsSyncError(Exception):
    """Base class for all headline sync failures."""


class InvalidRequestError(NewsSyncError):
    """A request could not be built from the given parameters."""


class RemoteFetchError(NewsSyncError):
    """Transport failure or non-success HTTP status from the news API."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.cause = cause


class DecodeError(RemoteFetchError):
    """The response body does not have the expected shape."""


class PersistenceError(NewsSyncError):
    """The local store failed to commit pending changes."""
