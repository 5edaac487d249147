# pyright: reportUnknownMemberType=false, reportAttributeAccessIssue=false, reportUnknownArgumentType=false

import logging
from logging.handlers import RotatingFileHandler
import os
import signal
import sys
from typing import final

from PySide6.QtCore import QCoreApplication, QObject

from tunesync.core.command_dispatcher import CommandDispatcher
from tunesync.core.config import APP_NAME, load_config, user_data_dir
from tunesync.core.errors import AuthError
from tunesync.core.http_transport import HttpTransport
from tunesync.core.login import authorize_url, code_from_redirect
from tunesync.core.metadata import Capability, TrackMetadata
from tunesync.core.models import AppConfig
from tunesync.core.parsers import SPOTIFY_PROVIDER, get_parser
from tunesync.core.poll_scheduler import PollScheduler
from tunesync.core.polling_engine import EngineState, PollingEngine
from tunesync.core.token_cache import TokenCache
from tunesync.core.token_store import TokenStore


APP_DISPLAY_NAME = "tunesync"

log = logging.getLogger(__name__)


@final
class TunesyncApp(QObject):
    """
    Wires the token store, polling engine, command dispatcher and scheduler
    together and owns their lifecycle.
    """

    def __init__(self, config: AppConfig, provider: str = SPOTIFY_PROVIDER):
        super().__init__()
        self.config = config
        parser = get_parser(provider)

        self.transport = HttpTransport(timeout=config.client.request_timeout_ms / 1000.0)
        self.token_cache = TokenCache(config)
        self.token_store = TokenStore(
            self.transport,
            self.token_cache,
            redirect_uri=config.client.redirect_uri,
            token_url=parser.endpoints.token,
        )
        self.engine = PollingEngine(parser, self.token_store, self.transport)
        self.dispatcher = CommandDispatcher(self.transport, parser.endpoints, parser.capabilities)
        self.scheduler = PollScheduler(self.engine, config.client.poll_interval_ms)

        _ = self.engine.metadata_updated.connect(self._on_metadata_updated)
        _ = self.engine.state_changed.connect(self._on_state_changed)
        log.info("Components created and signals connected.")

    def ensure_logged_in(self) -> bool:
        """
        Exchanges a pending authorization code, or walks the user through the
        browser login on the console.
        """

        state = self.token_store.snapshot()
        if state.logged_in:
            return True

        if not state.auth_code:
            credentials = self.token_cache.load_credentials()
            try:
                url = authorize_url(credentials, self.config.client.redirect_uri)
            except AuthError as e:
                log.error(f"{e}")
                return False

            print(f"Open this URL in a browser and log in:\n\n    {url}\n")
            redirect = input("Paste the URL you were redirected to: ").strip()
            try:
                self.token_store.set_auth_code(code_from_redirect(redirect))
            except AuthError as e:
                log.error(f"Login failed: {e}")
                return False

        try:
            _ = self.token_store.exchange_auth_code()
        except AuthError as e:
            log.error(f"Login failed: {e}")
            return False
        return True

    def send_command(self, capability: Capability) -> bool:
        return self.dispatcher.dispatch(capability, self.engine.command_snapshot())

    def run(self):
        if not self.ensure_logged_in():
            log.warning("Not logged in, polling will stay idle until a login succeeds.")

        log.info("Starting continuous now-playing polling...")
        self.scheduler.start()

    def shutdown(self):
        log.info("Shutdown sequence initiated...")
        self.scheduler.stop()
        self.transport.close()
        log.info(f"--- Stopped {APP_DISPLAY_NAME} ---")

    def _on_metadata_updated(self, metadata: TrackMetadata):
        if not metadata:
            log.info("Nothing playing.")
            return
        log.info(f"Now playing: {', '.join(metadata.artists)} - {metadata.title} [{metadata.status.name.lower()}]")

    def _on_state_changed(self, state: EngineState):
        log.info(f"Polling state: {state.name}")


def setup_logging():
    """Configures logging to output to both console and log file."""

    log_formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(log_formatter)
    root_logger.addHandler(console_handler)

    # urllib3 logs full request lines at debug level
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    try:
        data_dir = user_data_dir()
        os.makedirs(data_dir, exist_ok=True)
        log_file_path = os.path.join(data_dir, "tunesync.log")

        # 1MB per file, keeping 5 old files
        file_handler = RotatingFileHandler(log_file_path, maxBytes=1 * 1024 * 1024, backupCount=5)
        file_handler.setFormatter(log_formatter)
        root_logger.addHandler(file_handler)
    except Exception as e:
        root_logger.error(f"Failed to set up file logging: {e}")


def main() -> None:
    setup_logging()
    log.info(f"--- Starting {APP_DISPLAY_NAME} ---")

    app = QCoreApplication(sys.argv)
    app.setApplicationName(APP_NAME)

    tunesync_app = TunesyncApp(load_config())
    _ = app.aboutToQuit.connect(tunesync_app.shutdown)
    _ = signal.signal(signal.SIGINT, lambda *_args: app.quit())
    _ = signal.signal(signal.SIGTERM, lambda *_args: app.quit())

    tunesync_app.run()

    log.info("Entering Qt main event loop...")
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
