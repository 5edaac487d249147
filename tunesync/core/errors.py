class TunesyncError(Exception):
    """Base class for every recoverable failure raised by the sync core."""


class AuthError(TunesyncError):
    """
    Missing or invalid credentials, a malformed token response or an OAuth
    error reported by the provider.
    """

    def __init__(self, message: str, oauth_error: str | None = None):
        super().__init__(message)
        self.oauth_error = oauth_error


class RateLimited(TunesyncError):
    def __init__(self, retry_after: int | None):
        super().__init__(f"Rate limited (Retry-After: {retry_after})")
        self.retry_after = retry_after


class TransportError(TunesyncError):
    """Connection failure, timeout or an unexpected HTTP status."""


class ParseError(TunesyncError):
    """Malformed or unexpectedly shaped JSON."""
