import logging
from dataclasses import dataclass, field
from typing import final


TRANSPORT_BACKOFF_STEP_SECONDS = 5

log = logging.getLogger(__name__)


@dataclass
class BackoffWindow:
    start: float | None = None
    duration: float = 0.0

    def active(self, now: float) -> bool:
        return self.start is not None and now - self.start < self.duration

    def expired(self, now: float) -> bool:
        return self.start is not None and now - self.start >= self.duration

    def clear(self):
        self.start = None
        self.duration = 0.0


@dataclass
class RateLimitState:
    server: BackoffWindow = field(default_factory=BackoffWindow)
    transport: BackoffWindow = field(default_factory=BackoffWindow)
    multiplier: int = 1


def parse_retry_after(value: str | None) -> int | None:
    """Returns the Retry-After header in whole seconds, or None if unusable."""

    if value is None:
        return None
    try:
        seconds = int(value.strip())
    except ValueError:
        return None
    return seconds if seconds > 0 else None


@final
class RateLimitGate:
    """
    Backoff state for one polling engine. A server-declared rate limit and
    transport-failure backoff are tracked in separate windows.
    """

    def __init__(self):
        self.state = RateLimitState()

    def may_proceed(self, now: float) -> bool:
        server = self.state.server
        if server.expired(now):
            log.info(f"API rate limit of {int(server.duration)} seconds is over")
            server.clear()

        transport = self.state.transport
        if transport.expired(now):
            log.info("Request backoff over.")
            transport.clear()

        return not (server.active(now) or transport.active(now))

    def on_rate_limited(self, retry_after: int | None, now: float):
        if not retry_after:
            log.warning("API rate limit hit without a usable Retry-After header")
            return

        log.warning(f"API rate limit hit, waiting {retry_after} seconds")
        self.state.server.start = now
        self.state.server.duration = float(retry_after)

    def on_transport_failure(self, now: float):
        wait = TRANSPORT_BACKOFF_STEP_SECONDS * self.state.multiplier
        self.state.transport.start = now
        self.state.transport.duration = float(wait)
        self.state.multiplier += 1
        log.error(f"Request failed. Waiting {wait} seconds before trying again")

    def on_success(self):
        self.state.multiplier = 1
        self.state.transport.clear()
