from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from tunesync.core.errors import AuthError
from tunesync.core.models import Credentials


SPOTIFY_SCOPE = "user-read-playback-state user-modify-playback-state user-read-currently-playing playlist-read-private"


def authorize_url(credentials: Credentials, redirect_uri: str) -> str:
    """Builds the URL the user opens in a browser to grant access."""

    try:
        auth_manager = SpotifyOAuth(
            client_id=credentials.client_id,
            client_secret=credentials.client_secret,
            redirect_uri=redirect_uri,
            scope=SPOTIFY_SCOPE,
            cache_handler=MemoryCacheHandler(),
            open_browser=False,
        )
        return auth_manager.get_authorize_url()
    except SpotifyOauthError as e:
        raise AuthError(f"Can't build login URL: {e}") from e


def code_from_redirect(url: str) -> str:
    """Pulls the authorization code out of the URL the provider redirected to."""

    try:
        _, code = SpotifyOAuth.parse_auth_response_url(url)
    except SpotifyOauthError as e:
        raise AuthError(str(e), oauth_error=getattr(e, "error", None)) from e

    if not code:
        raise AuthError("Redirect URL doesn't contain an authorization code")
    return code
