# pyright: reportAny=false, reportUnknownMemberType=false

import logging
import os
import sys

import toml

from tunesync.core.models import AppConfig, ClientConfig, Credentials


APP_NAME = "tunesync"
CONFIG_FILE_NAME = "config.toml"
DEFAULT_REDIRECT_URI = "http://127.0.0.1:8080/callback"
DEFAULT_POLL_INTERVAL_MS = 1000
DEFAULT_REQUEST_TIMEOUT_MS = 1000
MIN_POLL_INTERVAL_MS = 250

# Shipped application credentials. The secret is injected at build/packaging time.
DEFAULT_CLIENT_ID = "847d7cf0c5dc4ff185161d1f000a9d0e"
DEFAULT_CLIENT_SECRET = os.environ.get("TUNESYNC_DEFAULT_CLIENT_SECRET", "")

log = logging.getLogger(__name__)


def user_data_dir() -> str:
    home = os.path.expanduser("~")
    if sys.platform.startswith("win"):
        base = os.environ.get("APPDATA", os.path.join(home, "AppData", "Roaming"))
    else:
        base = os.environ.get("XDG_CONFIG_HOME", os.path.join(home, ".config"))
    return os.path.join(base, APP_NAME)


def get_default_config(data_directory: str | None = None) -> AppConfig:
    data_directory = data_directory or user_data_dir()

    return AppConfig(
        client=ClientConfig(
            client_id="",
            client_secret="",
            redirect_uri=DEFAULT_REDIRECT_URI,
            poll_interval_ms=DEFAULT_POLL_INTERVAL_MS,
            request_timeout_ms=DEFAULT_REQUEST_TIMEOUT_MS,
        ),
        data_directory=data_directory,
        config_path=os.path.join(data_directory, CONFIG_FILE_NAME),
    )


def build_credentials(config: AppConfig) -> Credentials:
    """
    Uses the user's own client id/secret when both are set, otherwise
    falls back to the shipped pair.
    """

    client_id = config.client.client_id.strip()
    client_secret = config.client.client_secret.strip()

    if client_id and client_secret:
        return Credentials(client_id, client_secret)
    return Credentials(DEFAULT_CLIENT_ID, DEFAULT_CLIENT_SECRET)


def save_config(config: AppConfig):
    config_to_save = {
        "client": {
            "client_id": config.client.client_id,
            "client_secret": config.client.client_secret,
            "redirect_uri": config.client.redirect_uri,
            "poll_interval_ms": config.client.poll_interval_ms,
            "request_timeout_ms": config.client.request_timeout_ms,
        },
    }

    try:
        os.makedirs(os.path.dirname(config.config_path), exist_ok=True)
        with open(config.config_path, "w") as f:
            _ = toml.dump(config_to_save, f)
    except (IOError, OSError) as e:
        log.error(f"Failed to save configuration to {config.config_path}: {e}")


def load_config(data_directory: str | None = None) -> AppConfig:
    """
    Loads configuration from the user's file, safely falling back to defaults
    for any missing or invalid values. Creates the file if it doesn't exist.
    """

    config = get_default_config(data_directory)

    if not os.path.exists(config.config_path):
        save_config(config)
        return config

    try:
        with open(config.config_path, "r") as f:
            user_config = toml.load(f)
    except toml.TomlDecodeError as e:
        log.warning(f"Failed to decode config file, using defaults. Error: {e}")
        return config

    client_section = user_config.get("client", {})
    if isinstance(client_section, dict):
        try:
            config.client.client_id = str(client_section.get("client_id", config.client.client_id))  # pyright: ignore[reportUnknownArgumentType]
            config.client.client_secret = str(client_section.get("client_secret", config.client.client_secret))  # pyright: ignore[reportUnknownArgumentType]
            config.client.redirect_uri = str(client_section.get("redirect_uri", config.client.redirect_uri))  # pyright: ignore[reportUnknownArgumentType]
            config.client.poll_interval_ms = max(
                MIN_POLL_INTERVAL_MS,
                int(client_section.get("poll_interval_ms", config.client.poll_interval_ms)),  # pyright: ignore[reportUnknownArgumentType]
            )
            config.client.request_timeout_ms = int(client_section.get("request_timeout_ms", config.client.request_timeout_ms))  # pyright: ignore[reportUnknownArgumentType]
        except (ValueError, TypeError):
            log.warning("Invalid value in 'client' section of config, using defaults for affected keys.")

    return config
