import pytest

from conftest import MemoryPersistence, track_payload
from tunesync.core.errors import TransportError
from tunesync.core.metadata import Capability, MetaField, PlaybackStatus, TrackMetadata
from tunesync.core.models import TokenState
from tunesync.core.parsers import SpotifyParser
from tunesync.core.polling_engine import EngineState, PollingEngine
from tunesync.core.token_store import TokenStore


PLAYER = SpotifyParser.endpoints.player
TOKEN = SpotifyParser.endpoints.token
PLAYLIST = "https://api.spotify.com/v1/playlists/37i9"


@pytest.fixture
def make_engine(transport, clock):
    def factory(state=None):
        state = state or TokenState(access_token="token", refresh_token="refresh", expires_at=clock.now + 3600, logged_in=True)
        store = TokenStore(transport, MemoryPersistence(state), redirect_uri="http://localhost", token_url=TOKEN, clock=clock)
        return PollingEngine(SpotifyParser(), store, transport, clock=clock)

    return factory


def test_logged_out_does_nothing(make_engine, transport):
    engine = make_engine(TokenState())

    assert engine.tick() is EngineState.LOGGED_OUT
    assert transport.requests == []


def test_track_poll_builds_metadata(make_engine, transport):
    transport.add(PLAYER, payload=track_payload())
    transport.add(PLAYLIST, payload={"name": "Discover Weekly"})
    engine = make_engine()

    assert engine.tick() is EngineState.POLLING

    metadata = engine.current_metadata()
    assert metadata.title == "Blue Monday"
    assert metadata[MetaField.PLAYLIST_NAME] == "Discover Weekly"
    assert engine.current_status() is PlaybackStatus.PLAYING
    assert transport.requests[0]["headers"]["Authorization"] == "Bearer token"


def test_context_lookup_failure_does_not_fail_poll(make_engine, transport):
    transport.add(PLAYER, payload=track_payload())
    transport.fail(PLAYLIST, TransportError("timed out"))
    engine = make_engine()

    assert engine.tick() is EngineState.POLLING
    assert engine.current_metadata().title == "Blue Monday"
    assert MetaField.PLAYLIST_NAME not in engine.current_metadata()


def test_context_not_found_leaves_name_unset(make_engine, transport):
    transport.add(PLAYER, payload=track_payload())
    transport.add(PLAYLIST, status=404)
    engine = make_engine()

    assert engine.tick() is EngineState.POLLING
    assert transport.urls() == [PLAYER, PLAYLIST]
    assert MetaField.PLAYLIST_NAME not in engine.current_metadata()


def test_ad_only_pauses(make_engine, transport):
    transport.add(PLAYER, payload=track_payload(context=None))
    transport.add(PLAYER, payload={"currently_playing_type": "ad", "is_playing": True})
    engine = make_engine()
    _ = engine.tick()
    before = engine.current_metadata()

    assert engine.tick() is EngineState.POLLING

    after = engine.current_metadata()
    assert after.status is PlaybackStatus.PAUSED
    for field in (MetaField.TITLE, MetaField.ARTISTS, MetaField.ALBUM):
        assert after[field] == before[field]


def test_no_content_clears_metadata(make_engine, transport):
    transport.add(PLAYER, payload=track_payload(context=None))
    transport.add(PLAYER, status=204)
    engine = make_engine()
    _ = engine.tick()

    assert engine.tick() is EngineState.IDLE
    assert len(engine.current_metadata()) == 0
    assert engine.current_status() is PlaybackStatus.STOPPED


def test_rate_limit_keeps_metadata_and_skips_requests(make_engine, transport, clock):
    transport.add(PLAYER, payload=track_payload(context=None))
    transport.add(PLAYER, status=429, headers={"retry-after": "30"})
    engine = make_engine()
    _ = engine.tick()
    before = engine.current_metadata()

    assert engine.tick() is EngineState.BACKOFF
    assert engine.current_metadata() == before

    clock.advance(29)
    assert engine.tick() is EngineState.BACKOFF
    assert len(transport.requests) == 2

    clock.advance(1)
    transport.add(PLAYER, status=204)
    assert engine.tick() is EngineState.IDLE
    assert len(transport.requests) == 3


def test_transport_failure_backs_off(make_engine, transport, clock):
    transport.fail(PLAYER, TransportError("connection refused"))
    transport.fail(PLAYER, TransportError("connection refused"))
    transport.add(PLAYER, status=204)
    engine = make_engine()

    assert engine.tick() is EngineState.BACKOFF
    clock.advance(4)
    assert engine.tick() is EngineState.BACKOFF
    assert len(transport.requests) == 1

    clock.advance(1)
    assert engine.tick() is EngineState.BACKOFF
    assert engine.gate.state.transport.duration == 10

    clock.advance(10)
    assert engine.tick() is EngineState.IDLE
    assert engine.gate.state.multiplier == 1


def test_server_error_keeps_metadata(make_engine, transport):
    transport.add(PLAYER, payload=track_payload(context=None))
    transport.add(PLAYER, status=503)
    engine = make_engine()
    _ = engine.tick()
    before = engine.current_metadata()

    assert engine.tick() is EngineState.BACKOFF
    assert engine.current_metadata() == before


def test_malformed_payload_keeps_metadata(make_engine, transport):
    transport.add(PLAYER, payload=track_payload(context=None))
    transport.add(PLAYER, body=b"{not json")
    engine = make_engine()
    _ = engine.tick()
    before = engine.current_metadata()

    assert engine.tick() is EngineState.POLLING
    assert engine.current_metadata() == before


def test_expired_token_is_refreshed_first(make_engine, transport, clock):
    transport.add(TOKEN, payload={"access_token": "fresh", "expires_in": 3600})
    transport.add(PLAYER, status=204)
    engine = make_engine(TokenState(access_token="stale", refresh_token="refresh", expires_at=clock.now - 1, logged_in=True))

    assert engine.tick() is EngineState.IDLE
    assert transport.urls() == [TOKEN, PLAYER]
    assert transport.requests[1]["headers"]["Authorization"] == "Bearer fresh"


def test_failed_refresh_skips_poll(make_engine, transport, clock):
    transport.fail(TOKEN, TransportError("timed out"))
    engine = make_engine(TokenState(access_token="stale", refresh_token="refresh", expires_at=clock.now - 1, logged_in=True))

    assert engine.tick() is EngineState.LOGGED_OUT
    assert transport.urls() == [TOKEN]


def test_unauthorized_expires_token(make_engine, transport, clock):
    transport.add(PLAYER, status=401)
    engine = make_engine()

    assert engine.tick() is EngineState.BACKOFF
    clock.advance(5)
    transport.add(TOKEN, payload={"access_token": "fresh", "expires_in": 3600})
    transport.add(PLAYER, status=204)

    assert engine.tick() is EngineState.IDLE
    assert transport.urls() == [PLAYER, TOKEN, PLAYER]


def test_signals_fire_on_change(make_engine, transport):
    transport.add(PLAYER, payload=track_payload(context=None))
    transport.add(PLAYER, payload=track_payload(context=None))
    engine = make_engine()
    updates = []
    states = []
    _ = engine.metadata_updated.connect(lambda m: updates.append(m))
    _ = engine.state_changed.connect(lambda s: states.append(s))

    _ = engine.tick()
    _ = engine.tick()

    assert len(updates) == 1
    assert isinstance(updates[0], TrackMetadata)
    assert states == [EngineState.POLLING]


def test_command_snapshot(make_engine, transport):
    transport.add(PLAYER, payload=track_payload(context=None))
    engine = make_engine()
    _ = engine.tick()

    snapshot = engine.command_snapshot()

    assert snapshot.access_token == "token"
    assert snapshot.status is PlaybackStatus.PLAYING
    assert snapshot.volume == 40


def test_supported_capabilities(make_engine):
    capabilities = make_engine().supported_capabilities()

    assert Capability.PLAY_PAUSE in capabilities
    assert Capability.MUTE not in capabilities
