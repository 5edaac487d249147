import json
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import replace
from typing import Any, Protocol, final

from tunesync.core.errors import AuthError, ParseError, TransportError
from tunesync.core.http_transport import HttpTransport
from tunesync.core.models import Credentials, TokenState


TOKEN_URL = "https://accounts.spotify.com/api/token"
REDACTED = "REDACTED"

log = logging.getLogger(__name__)


class TokenPersistence(Protocol):
    def load_token(self) -> TokenState: ...

    def save_token(self, state: TokenState) -> None: ...

    def load_credentials(self) -> Credentials: ...


def redact_token_response(response: Any) -> Any:
    """Returns a copy of a token response that is safe to log."""

    if not isinstance(response, dict):
        return response

    redacted = dict(response)
    for key in ("access_token", "refresh_token"):
        if key in redacted:
            redacted[key] = REDACTED
    return redacted


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@final
class TokenStore:
    """
    Owns the OAuth2 token material. Performs the authorization-code and
    refresh-token grants and hands out consistent copies of the token state.

    The state lock is never held across a network call. Grants are serialized
    by a separate lock so two concurrent refreshes can't race each other.
    """

    def __init__(
        self,
        transport: HttpTransport,
        persistence: TokenPersistence,
        redirect_uri: str,
        token_url: str = TOKEN_URL,
        clock: Callable[[], float] = time.time,
    ):
        self._transport = transport
        self._persistence = persistence
        self._redirect_uri = redirect_uri
        self._token_url = token_url
        self._clock = clock

        self._lock = threading.Lock()
        self._grant_lock = threading.Lock()
        self._credentials = persistence.load_credentials()
        self._state = persistence.load_token()

    def snapshot(self) -> TokenState:
        with self._lock:
            return self._state

    @property
    def logged_in(self) -> bool:
        return self.snapshot().logged_in

    def update_credentials(self, credentials: Credentials):
        with self._lock:
            self._credentials = credentials
        log.info("Client credentials updated.")

    def set_auth_code(self, code: str):
        self._commit(lambda s: replace(s, auth_code=code))

    def expire(self):
        """Forces a refresh on the next freshness check."""

        self._commit(lambda s: replace(s, expires_at=0.0))

    def exchange_auth_code(self, code: str | None = None) -> TokenState:
        with self._grant_lock:
            code = code or self.snapshot().auth_code
            if not code:
                raise self._fail(AuthError("Cannot request token without an authorization code"))

            response = self._request_token(
                {"grant_type": "authorization_code", "code": code, "redirect_uri": self._redirect_uri}
            )
            token = response.get("access_token")
            refresh_token = response.get("refresh_token")
            expires_in = response.get("expires_in")

            if not (isinstance(token, str) and token and isinstance(refresh_token, str) and _is_number(expires_in)):
                raise self._fail(AuthError("Couldn't parse token response"))

            expires_at = self._clock() + expires_in
            state = self._commit(
                lambda s: replace(
                    s,
                    access_token=token,
                    refresh_token=refresh_token,
                    auth_code="",
                    expires_at=expires_at,
                    logged_in=True,
                )
            )
            log.info("Successfully logged in")
            return state

    def refresh(self) -> TokenState:
        with self._grant_lock:
            return self._refresh_locked()

    def ensure_fresh(self, now: float | None = None):
        if not self.snapshot().is_expired(self._clock() if now is None else now):
            return

        with self._grant_lock:
            # Another caller may have refreshed while we waited.
            if not self.snapshot().is_expired(self._clock() if now is None else now):
                return
            log.info("Refreshing access token")
            _ = self._refresh_locked()

    def _refresh_locked(self) -> TokenState:
        refresh_token = self.snapshot().refresh_token
        if not refresh_token:
            raise self._fail(AuthError("Refresh token is empty"))

        response = self._request_token({"grant_type": "refresh_token", "refresh_token": refresh_token})
        token = response.get("access_token")
        expires_in = response.get("expires_in")
        new_refresh_token = response.get("refresh_token")

        if not (isinstance(token, str) and token and _is_number(expires_in)):
            raise self._fail(AuthError("Couldn't parse token response"))

        # Providers may rotate the refresh token. An absent or empty field means keep the old one.
        rotated = isinstance(new_refresh_token, str) and bool(new_refresh_token)
        if rotated:
            log.info("Received a new refresh token")

        expires_at = self._clock() + expires_in
        state = self._commit(
            lambda s: replace(
                s,
                access_token=token,
                refresh_token=new_refresh_token if rotated else s.refresh_token,
                expires_at=expires_at,
                logged_in=True,
            )
        )
        log.info("Successfully renewed access token")
        return state

    def _request_token(self, form: dict[str, str]) -> dict[str, Any]:
        with self._lock:
            credentials = self._credentials

        if not credentials.client_id or not credentials.client_secret:
            raise self._fail(AuthError("Cannot request token without valid client credentials"))

        try:
            r = self._transport.request(
                "POST",
                self._token_url,
                headers={
                    "Authorization": f"Basic {credentials.basic_token}",
                    "Content-Type": "application/x-www-form-urlencoded",
                },
                data=form,
            )
            response = r.json()
        except (TransportError, ParseError) as e:
            raise self._fail(AuthError(f"Token request failed: {e}")) from e

        if not isinstance(response, dict):
            raise self._fail(AuthError(f"Unexpected token response (HTTP {r.status_code})"))

        log.debug(f"Token response: {json.dumps(redact_token_response(response))}")

        error = response.get("error")
        if isinstance(error, str):
            description = response.get("error_description", "")
            log.error(f"Received error from provider: {error} {description}".rstrip())
            self._commit(lambda s: replace(s, logged_in=False))
            raise AuthError(f"Provider rejected the grant: {error}", oauth_error=error)

        return response

    def _commit(self, mutate: Callable[[TokenState], TokenState]) -> TokenState:
        with self._lock:
            self._state = mutate(self._state)
            state = self._state
        self._persist(state)
        return state

    def _fail(self, error: AuthError) -> AuthError:
        log.error(f"Authentication failed: {error}")
        self._persist(self.snapshot())
        return error

    def _persist(self, state: TokenState):
        try:
            self._persistence.save_token(state)
        except Exception:
            log.exception("Failed to persist token state")
