import logging
import threading
from typing import final

from tunesync.core.polling_engine import PollingEngine


MIN_INTERVAL_SECONDS = 0.25

log = logging.getLogger(__name__)


@final
class PollScheduler:
    """Calls PollingEngine.tick() on a fixed cadence from one background thread."""

    def __init__(self, engine: PollingEngine, interval_ms: int):
        self._engine = engine
        self._interval = max(MIN_INTERVAL_SECONDS, interval_ms / 1000.0)
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    @property
    def interval(self) -> float:
        return self._interval

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def set_interval_ms(self, interval_ms: int):
        log.info(f"Updating poll interval to {interval_ms}ms.")
        self._interval = max(MIN_INTERVAL_SECONDS, interval_ms / 1000.0)

    def start(self) -> None:
        if self.is_running():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_polling_loop, name="now-playing-poller", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stops the background polling thread."""

        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2.0)

    def _run_polling_loop(self):
        while not self._stop_event.is_set():
            try:
                _ = self._engine.tick()
            except Exception:
                log.exception("Unexpected error during poll")

            # Event.wait so stop() doesn't have to sit out a whole interval.
            _ = self._stop_event.wait(self._interval)
