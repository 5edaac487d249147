# pyright: reportAny=false

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import final

from PySide6.QtCore import QObject, Signal

from tunesync.core.errors import AuthError, ParseError, RateLimited, TransportError
from tunesync.core.http_transport import HttpResponse, HttpTransport
from tunesync.core.metadata import Capability, MetaField, PlaybackStatus, TrackMetadata
from tunesync.core.parsers import PayloadKind, PlaybackParser
from tunesync.core.rate_limit import RateLimitGate, parse_retry_after
from tunesync.core.token_store import TokenStore


HTTP_OK = 200
HTTP_NO_CONTENT = 204
HTTP_UNAUTHORIZED = 401
HTTP_TOO_MANY_REQUESTS = 429

log = logging.getLogger(__name__)


class EngineState(Enum):
    LOGGED_OUT = "logged_out"
    TOKEN_STALE = "token_stale"
    BACKOFF = "backoff"
    POLLING = "polling"
    IDLE = "idle"


@dataclass(frozen=True)
class CommandSnapshot:
    access_token: str = field(repr=False)
    status: PlaybackStatus = PlaybackStatus.STOPPED
    volume: int | None = None


@final
class PollingEngine(QObject):
    """
    Drives one poll of the provider's now-playing endpoint per tick() and
    keeps the last known metadata. Ticks must be called serially; readers on
    other threads only ever get immutable snapshots.
    """

    metadata_updated = Signal(object)
    state_changed = Signal(object)

    def __init__(
        self,
        parser: PlaybackParser,
        token_store: TokenStore,
        transport: HttpTransport,
        gate: RateLimitGate | None = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__()
        self._parser = parser
        self._tokens = token_store
        self._transport = transport
        self._gate = gate or RateLimitGate()
        self._clock = clock

        self._lock = threading.Lock()
        self._metadata = TrackMetadata.empty()
        self._volume: int | None = None
        self._state = EngineState.LOGGED_OUT

    @property
    def gate(self) -> RateLimitGate:
        return self._gate

    @property
    def state(self) -> EngineState:
        return self._state

    def current_metadata(self) -> TrackMetadata:
        with self._lock:
            return self._metadata

    def current_status(self) -> PlaybackStatus:
        return self.current_metadata().status

    def supported_capabilities(self) -> frozenset[Capability]:
        return self._parser.capabilities

    def command_snapshot(self) -> CommandSnapshot:
        token = self._tokens.snapshot()
        with self._lock:
            return CommandSnapshot(token.access_token, self._metadata.status, self._volume)

    def tick(self) -> EngineState:
        self._set_state(self._poll())
        return self._state

    def _poll(self) -> EngineState:
        if not self._tokens.logged_in:
            return EngineState.LOGGED_OUT

        now = self._clock()
        if self._tokens.snapshot().is_expired(now):
            self._set_state(EngineState.TOKEN_STALE)
            try:
                self._tokens.ensure_fresh(now)
            except AuthError as e:
                log.error(f"Couldn't refresh access token: {e}")
                return EngineState.LOGGED_OUT

        if not self._gate.may_proceed(now):
            log.debug("Waiting for API backoff to end")
            return EngineState.BACKOFF

        try:
            r = self._fetch_now_playing()
        except RateLimited as e:
            # Keep the last known metadata while waiting for the API to recover.
            self._gate.on_rate_limited(e.retry_after, self._clock())
            return EngineState.BACKOFF
        except TransportError as e:
            log.warning(f"Now-playing request failed: {e}")
            self._gate.on_transport_failure(self._clock())
            return EngineState.BACKOFF

        self._gate.on_success()
        if r.status_code == HTTP_NO_CONTENT:
            # No session running
            self._replace_metadata(TrackMetadata.empty())
            return EngineState.IDLE

        self._handle_playback(r)
        return EngineState.POLLING

    def _fetch_now_playing(self) -> HttpResponse:
        r = self._get(self._parser.endpoints.player)
        if r.status_code in (HTTP_OK, HTTP_NO_CONTENT):
            return r

        if r.status_code == HTTP_TOO_MANY_REQUESTS:
            raise RateLimited(parse_retry_after(r.header("Retry-After")))

        if r.status_code == HTTP_UNAUTHORIZED:
            log.warning("Access token was rejected, refreshing on next poll")
            self._tokens.expire()

        raise TransportError(f"Unexpected now-playing response (HTTP {r.status_code})")

    def _handle_playback(self, r: HttpResponse):
        try:
            parsed = self._parser.parse(r.json())
        except ParseError as e:
            log.error(f"Couldn't read now-playing data: {e}")
            return

        with self._lock:
            self._volume = parsed.volume
            current = self._metadata

        if parsed.kind is PayloadKind.AD:
            self._replace_metadata(current.with_values(status=PlaybackStatus.PAUSED))
            return

        if parsed.kind is PayloadKind.PRIVATE:
            self._replace_metadata(
                current.with_values(status=parsed.metadata.status, progress=parsed.metadata.get(MetaField.PROGRESS))
            )
            return

        metadata = parsed.metadata
        if parsed.context_href:
            name = self._resolve_container_name(parsed.context_href)
            if name:
                metadata = metadata.with_values(playlist_name=name)
        self._replace_metadata(metadata)

    def _resolve_container_name(self, href: str) -> str | None:
        """Best effort lookup of the playlist/album name. Never fails the poll."""

        try:
            r = self._get(href)
            if r.status_code != HTTP_OK:
                log.debug(f"Couldn't resolve playback context (HTTP {r.status_code})")
                return None
            return self._parser.parse_container_name(r.json())
        except (TransportError, ParseError) as e:
            log.debug(f"Couldn't resolve playback context: {e}")
            return None

    def _get(self, url: str) -> HttpResponse:
        token = self._tokens.snapshot().access_token
        return self._transport.request("GET", url, headers={"Authorization": f"Bearer {token}"})

    def _replace_metadata(self, metadata: TrackMetadata):
        with self._lock:
            changed = metadata != self._metadata
            self._metadata = metadata
        if changed:
            self.metadata_updated.emit(metadata)

    def _set_state(self, state: EngineState):
        if state is self._state:
            return
        log.debug(f"Polling state {self._state.name} -> {state.name}")
        self._state = state
        self.state_changed.emit(state)
