from collections.abc import Iterator, Mapping
from enum import Enum, IntEnum
from typing import Any, final


class PlaybackStatus(IntEnum):
    STOPPED = 0
    PLAYING = 1
    PAUSED = 2


class Capability(Enum):
    NEXT = "next"
    PREVIOUS = "previous"
    PLAY_PAUSE = "play_pause"
    STOP = "stop"
    VOLUME_UP = "volume_up"
    VOLUME_DOWN = "volume_down"
    MUTE = "mute"


class MetaField(Enum):
    TITLE = "title"
    ARTISTS = "artists"
    ALBUM = "album"
    COVER = "cover"
    URL = "url"
    DURATION = "duration"
    PROGRESS = "progress"
    STATUS = "status"
    DISC_NUMBER = "disc_number"
    TRACK_NUMBER = "track_number"
    EXPLICIT = "explicit"
    RELEASE_YEAR = "release_year"
    RELEASE_MONTH = "release_month"
    RELEASE_DAY = "release_day"
    CONTEXT = "context"
    CONTEXT_URL = "context_url"
    CONTEXT_EXTERNAL_URL = "context_external_url"
    PLAYLIST_NAME = "playlist_name"


@final
class TrackMetadata(Mapping[MetaField, Any]):
    """
    Read-only record of what is playing now. A missing key means the value
    is unknown or doesn't apply; there are no placeholder defaults.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[MetaField, Any] | None = None):
        self._values: dict[MetaField, Any] = {}
        for key, value in (values or {}).items():
            if value is None:
                continue
            # Lists are copied so a snapshot can't be changed behind a reader's back.
            self._values[key] = tuple(value) if isinstance(value, list) else value

    @classmethod
    def empty(cls) -> "TrackMetadata":
        return cls()

    def with_values(self, **changes: Any) -> "TrackMetadata":
        """Returns a copy with the given fields (by lowercase name) set; None unsets a field."""

        values = dict(self._values)
        for name, value in changes.items():
            key = MetaField(name)
            if value is None:
                values.pop(key, None)
            else:
                values[key] = value
        return TrackMetadata(values)

    def __getitem__(self, key: MetaField) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[MetaField]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, TrackMetadata):
            return self._values == other._values
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._values.items()))

    def __repr__(self) -> str:
        fields = ", ".join(f"{k.value}={v!r}" for k, v in self._values.items())
        return f"TrackMetadata({fields})"

    @property
    def title(self) -> str | None:
        return self._values.get(MetaField.TITLE)

    @property
    def artists(self) -> tuple[str, ...]:
        return self._values.get(MetaField.ARTISTS, ())

    @property
    def status(self) -> PlaybackStatus:
        return self._values.get(MetaField.STATUS, PlaybackStatus.STOPPED)

    def as_dict(self) -> dict[str, Any]:
        """Plain, JSON-friendly view for output consumers."""

        out: dict[str, Any] = {}
        for key, value in self._values.items():
            if isinstance(value, PlaybackStatus):
                value = value.name.lower()
            elif isinstance(value, tuple):
                value = list(value)
            out[key.value] = value
        return out
