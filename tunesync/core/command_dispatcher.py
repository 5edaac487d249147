import logging
import threading
from collections.abc import Callable
from typing import Any, final

from tunesync.core.errors import TransportError
from tunesync.core.http_transport import HttpTransport
from tunesync.core.metadata import Capability, PlaybackStatus
from tunesync.core.parsers import ProviderEndpoints
from tunesync.core.polling_engine import CommandSnapshot


VOLUME_STEP = 10

log = logging.getLogger(__name__)

Runner = Callable[[Callable[[], None]], None]


def run_detached(job: Callable[[], None]):
    """Runs the job on its own daemon thread and returns immediately."""

    threading.Thread(target=job, name="command-dispatch", daemon=True).start()


@final
class CommandDispatcher:
    """
    Sends transport controls (play/pause, skip, volume) to the provider.

    Requests are fire-and-forget: dispatch() hands the request to the runner
    and returns, since a round trip can stall a UI thread for up to a second.
    The next poll reflects whatever actually happened.
    """

    def __init__(
        self,
        transport: HttpTransport,
        endpoints: ProviderEndpoints,
        capabilities: frozenset[Capability],
        runner: Runner = run_detached,
    ):
        self._transport = transport
        self._endpoints = endpoints
        self._capabilities = capabilities
        self._runner = runner

    def dispatch(self, capability: Capability, snapshot: CommandSnapshot) -> bool:
        if capability not in self._capabilities:
            log.warning(f"Ignoring unsupported command: {capability}")
            return False

        self._runner(lambda: self._execute(capability, snapshot))
        return True

    def _execute(self, capability: Capability, snapshot: CommandSnapshot):
        if capability == Capability.PLAY_PAUSE:
            if snapshot.status == PlaybackStatus.PLAYING:
                self._send("PUT", self._endpoints.pause, snapshot)
            else:
                self._send("PUT", self._endpoints.play, snapshot, {"position_ms": 0})
        elif capability == Capability.STOP:
            self._send("PUT", self._endpoints.pause, snapshot)
        elif capability == Capability.NEXT:
            self._send("POST", self._endpoints.next, snapshot)
        elif capability == Capability.PREVIOUS:
            self._send("POST", self._endpoints.previous, snapshot)
        elif capability == Capability.VOLUME_UP:
            self._change_volume(snapshot, VOLUME_STEP)
        elif capability == Capability.VOLUME_DOWN:
            self._change_volume(snapshot, -VOLUME_STEP)
        else:
            log.debug(f"No request defined for {capability}")

    def _change_volume(self, snapshot: CommandSnapshot, step: int):
        if snapshot.volume is None:
            log.debug("Current volume unknown, ignoring volume command")
            return

        volume = min(100, max(0, snapshot.volume + step))
        self._send("PUT", f"{self._endpoints.volume}?volume_percent={volume}", snapshot)

    def _send(self, method: str, url: str, snapshot: CommandSnapshot, body: Any = None):
        try:
            r = self._transport.request(
                method,
                url,
                headers={"Authorization": f"Bearer {snapshot.access_token}"},
                json_body=body if body is not None else {},
            )
        except TransportError as e:
            log.info(f"Couldn't run command {method} {url}: {e}")
            return

        if not 200 <= r.status_code < 300:
            log.info(f"Couldn't run command! HTTP code: {r.status_code}")
            log.info("Playback controls may require a premium account.")
            log.debug(f"Response: {r.body[:500]!r}")
