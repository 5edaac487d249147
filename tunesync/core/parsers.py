import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from tunesync.core.errors import ParseError
from tunesync.core.metadata import Capability, MetaField, PlaybackStatus, TrackMetadata


SPOTIFY_PROVIDER = "spotify"

log = logging.getLogger(__name__)


class PayloadKind(Enum):
    TRACK = "track"
    AD = "ad"
    PRIVATE = "private"


@dataclass(frozen=True)
class ParsedPlayback:
    kind: PayloadKind
    metadata: TrackMetadata
    context_href: str | None = None
    volume: int | None = None


@dataclass(frozen=True)
class ProviderEndpoints:
    token: str
    player: str
    pause: str
    play: str
    next: str
    previous: str
    volume: str


class PlaybackParser(Protocol):
    provider: str
    endpoints: ProviderEndpoints
    capabilities: frozenset[Capability]

    def parse(self, payload: Any) -> ParsedPlayback: ...

    def parse_container_name(self, payload: Any) -> str | None: ...


def parse_release_date(date: Any) -> dict[MetaField, int]:
    """
    Splits a "YYYY[-MM[-DD]]" date. Anything that isn't one to three numeric
    components yields nothing at all.
    """

    if not isinstance(date, str) or not date:
        return {}

    parts = date.split("-")
    if not 1 <= len(parts) <= 3:
        return {}
    try:
        numbers = [int(p) for p in parts]
    except ValueError:
        return {}

    keys = (MetaField.RELEASE_YEAR, MetaField.RELEASE_MONTH, MetaField.RELEASE_DAY)
    return dict(zip(keys, numbers))


def _object(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _string(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _integer(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


class SpotifyParser:
    provider = SPOTIFY_PROVIDER
    endpoints = ProviderEndpoints(
        token="https://accounts.spotify.com/api/token",
        player="https://api.spotify.com/v1/me/player",
        pause="https://api.spotify.com/v1/me/player/pause",
        play="https://api.spotify.com/v1/me/player/play",
        next="https://api.spotify.com/v1/me/player/next",
        previous="https://api.spotify.com/v1/me/player/previous",
        volume="https://api.spotify.com/v1/me/player/volume",
    )
    capabilities = frozenset(
        {
            Capability.NEXT,
            Capability.PREVIOUS,
            Capability.PLAY_PAUSE,
            Capability.STOP,
            Capability.VOLUME_UP,
            Capability.VOLUME_DOWN,
        }
    )

    def parse(self, payload: Any) -> ParsedPlayback:
        if not isinstance(payload, dict):
            raise ParseError("Now-playing payload is not a json object")

        # An ad is reported in place of a track; treat it as paused.
        if payload.get("currently_playing_type") == "ad":
            return ParsedPlayback(PayloadKind.AD, TrackMetadata({MetaField.STATUS: PlaybackStatus.PAUSED}))

        device = payload.get("device")
        playing = payload.get("is_playing")
        if not isinstance(device, dict) or not isinstance(playing, bool):
            raise ParseError("Couldn't read playback state: missing device or is_playing")

        status = PlaybackStatus.PLAYING if playing else PlaybackStatus.STOPPED
        progress = _integer(payload.get("progress_ms"))
        volume = _integer(device.get("volume_percent"))

        if device.get("is_private"):
            log.error("Provider session is private! Can't read track")
            values = {MetaField.STATUS: status, MetaField.PROGRESS: progress}
            return ParsedPlayback(PayloadKind.PRIVATE, TrackMetadata(values), volume=volume)

        values, context_href = self._parse_track(payload)
        values[MetaField.STATUS] = status
        values[MetaField.PROGRESS] = progress
        return ParsedPlayback(PayloadKind.TRACK, TrackMetadata(values), context_href, volume)

    def parse_container_name(self, payload: Any) -> str | None:
        return _string(_object(payload).get("name"))

    def _parse_track(self, payload: dict[str, Any]) -> tuple[dict[MetaField, Any], str | None]:
        item = _object(payload.get("item"))
        album = _object(item.get("album"))
        values: dict[MetaField, Any] = {}
        context_href = None

        context = payload.get("context")
        if isinstance(context, dict):
            values[MetaField.CONTEXT] = _string(context.get("type"))
            values[MetaField.CONTEXT_URL] = _string(context.get("uri"))
            values[MetaField.CONTEXT_EXTERNAL_URL] = _string(_object(context.get("external_urls")).get("spotify"))
            context_href = _string(context.get("href")) or None

        artists = item.get("artists")
        if isinstance(artists, list):
            values[MetaField.ARTISTS] = [
                name for name in (_string(_object(a).get("name")) for a in artists) if name is not None
            ]

        images = album.get("images")
        if isinstance(images, list) and images:
            values[MetaField.COVER] = _string(_object(images[0]).get("url")) or None

        values[MetaField.URL] = _string(_object(item.get("external_urls")).get("spotify"))
        values[MetaField.TITLE] = _string(item.get("name"))
        values[MetaField.ALBUM] = _string(album.get("name"))
        values[MetaField.DURATION] = _integer(item.get("duration_ms"))
        values[MetaField.DISC_NUMBER] = _integer(item.get("disc_number"))
        values[MetaField.TRACK_NUMBER] = _integer(item.get("track_number"))
        explicit = item.get("explicit")
        values[MetaField.EXPLICIT] = explicit if isinstance(explicit, bool) else None

        values.update(parse_release_date(album.get("release_date")))
        return values, context_href


_PARSERS: dict[str, PlaybackParser] = {}


def register_parser(parser: PlaybackParser):
    _PARSERS[parser.provider] = parser


def get_parser(provider: str) -> PlaybackParser:
    try:
        return _PARSERS[provider]
    except KeyError:
        raise ValueError(f"No playback parser registered for provider '{provider}'") from None


register_parser(SpotifyParser())
