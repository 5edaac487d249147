from tunesync.core.metadata import MetaField, PlaybackStatus, TrackMetadata


def test_absent_fields_are_unknown():
    metadata = TrackMetadata({MetaField.TITLE: "Song", MetaField.ALBUM: None})

    assert MetaField.ALBUM not in metadata
    assert metadata.get(MetaField.ALBUM) is None
    assert len(metadata) == 1


def test_with_values_copies():
    original = TrackMetadata({MetaField.TITLE: "Song", MetaField.ARTISTS: ["A", "B"]})

    paused = original.with_values(status=PlaybackStatus.PAUSED, title=None)

    assert original.title == "Song"
    assert MetaField.TITLE not in paused
    assert paused.artists == ("A", "B")
    assert paused.status is PlaybackStatus.PAUSED


def test_lists_are_frozen():
    artists = ["A"]
    metadata = TrackMetadata({MetaField.ARTISTS: artists})
    artists.append("B")

    assert metadata.artists == ("A",)


def test_as_dict():
    metadata = TrackMetadata({MetaField.ARTISTS: ["A"], MetaField.STATUS: PlaybackStatus.PLAYING, MetaField.DURATION: 1000})

    assert metadata.as_dict() == {"artists": ["A"], "status": "playing", "duration": 1000}


def test_empty_is_stopped():
    assert TrackMetadata.empty().status is PlaybackStatus.STOPPED
    assert TrackMetadata.empty() == TrackMetadata()
