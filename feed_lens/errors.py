"""Typed failures raised by the fetch and format layers.

Providers convert these into fallback strings; nothing else should.
"""


class FeedError(Exception):
    """Base class for every failure a provider knows how to degrade from."""


class AuthenticationError(FeedError):
    """Credentials are missing, or the login endpoint rejected them."""


class FetchError(FeedError):
    """A data endpoint answered with a non-2xx status or a malformed payload."""

    def __init__(self, endpoint: str, status: int | None = None, detail: str = "") -> None:
        self.endpoint = endpoint
        self.status = status
        self.detail = detail
        message = f"{endpoint} failed"
        if status is not None:
            message += f" (HTTP {status})"
        if detail:
            message += f": {detail}"
        super().__init__(message)

    @property
    def is_auth_failure(self) -> bool:
        return self.status in (401, 403)


class FormatError(FeedError):
    """A record had an unexpected shape while rendering a digest."""
