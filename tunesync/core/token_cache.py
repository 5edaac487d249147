# pyright: reportAny=false, reportUnknownMemberType=false

import logging
import os
from typing import final

import toml

from tunesync.core.config import build_credentials
from tunesync.core.models import AppConfig, Credentials, TokenState


TOKEN_CACHE_FILENAME = "spotify_token.toml"

log = logging.getLogger(__name__)


@final
class TokenCache:
    """Keeps the token state in a toml file so logins survive restarts."""

    def __init__(self, config: AppConfig):
        self._config = config
        self.cache_path = os.path.join(config.data_directory, TOKEN_CACHE_FILENAME)

    def load_credentials(self) -> Credentials:
        return build_credentials(self._config)

    def load_token(self) -> TokenState:
        if not os.path.exists(self.cache_path):
            return TokenState()

        try:
            with open(self.cache_path, "r") as f:
                data = toml.load(f)
        except (toml.TomlDecodeError, OSError) as e:
            log.warning(f"Failed to read token cache, starting logged out. Error: {e}")
            return TokenState()

        try:
            state = TokenState(
                access_token=str(data.get("access_token", "")),
                refresh_token=str(data.get("refresh_token", "")),
                auth_code=str(data.get("auth_code", "")),
                expires_at=float(data.get("expires_at", 0)),
                logged_in=bool(data.get("logged_in", False)),
            )
        except (ValueError, TypeError):
            log.warning("Invalid value in token cache, starting logged out.")
            return TokenState()

        if state.logged_in and not state.access_token:
            return TokenState(refresh_token=state.refresh_token)
        return state

    def save_token(self, state: TokenState) -> None:
        data = {
            "logged_in": state.logged_in,
            "access_token": state.access_token,
            "refresh_token": state.refresh_token,
            "auth_code": state.auth_code,
            "expires_at": state.expires_at,
        }

        try:
            os.makedirs(os.path.dirname(self.cache_path), exist_ok=True)
            with open(self.cache_path, "w") as f:
                _ = toml.dump(data, f)
        except (IOError, OSError) as e:
            log.error(f"Failed to save token cache to {self.cache_path}: {e}")

