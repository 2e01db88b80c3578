"""Tests for MediaTransport, driven by the fake resource clock."""

import pytest

from backend.errors import ResourceLoadError
from backend.models import PlaybackState
from backend.transport import MediaTransport


def _with_duration(transport, resources, duration):
    """Let the transport learn the resource duration on the next tick."""
    resources.last.duration = duration
    transport.tick()


class TestLoading:
    """Tests for binding and releasing media resources."""

    def test_load_binds_paused_at_zero(self, transport, resources) -> None:
        assert transport.state == PlaybackState.PAUSED
        assert transport.position == 0.0
        assert transport.duration == 0.0
        assert resources.last.uri == "file:///music/song.mp3"

    def test_load_reports_initial_position(self, resources, recorder) -> None:
        t = MediaTransport(resource_factory=resources, auto_monitor=False)
        t.on('position_update', recorder)
        t.load("file:///music/song.mp3")
        assert recorder.calls == [(0.0, 0.0)]

    def test_load_failure_enters_failed_state(self, resources, recorder) -> None:
        """An undecodable resource surfaces an error and leaves nothing bound."""
        t = MediaTransport(resource_factory=resources, auto_monitor=False)
        t.on('error', recorder)
        resources.fail_next = True

        assert t.load("file:///music/broken.mp3") is False
        assert t.state == PlaybackState.FAILED
        assert not t.is_bound
        assert isinstance(recorder.last[0], ResourceLoadError)
        assert t.last_error is recorder.last[0]

    def test_failed_transport_ignores_controls(self, resources) -> None:
        t = MediaTransport(resource_factory=resources, auto_monitor=False)
        resources.fail_next = True
        t.load("file:///music/broken.mp3")

        t.toggle_play()
        t.seek(10.0)
        assert t.state == PlaybackState.FAILED
        assert t.position == 0.0

    def test_reload_releases_previous_resource(self, transport, resources) -> None:
        first = resources.last
        transport.load("file:///music/other.mp3")
        assert first.closed
        assert resources.last is not first
        assert transport.state == PlaybackState.PAUSED

    def test_close_unsubscribes_and_releases(self, transport, resources, recorder) -> None:
        resource = resources.last
        transport.on('position_update', recorder)
        transport.close()

        assert resource.closed
        assert transport.state == PlaybackState.UNBOUND
        assert transport.listener_count('position_update') == 0
        transport.tick()
        transport.seek(3.0)
        assert recorder.calls == []


class TestPlayback:
    """Tests for play/pause and the clock."""

    def test_toggle_play_and_pause(self, transport, resources) -> None:
        transport.toggle_play()
        assert transport.state == PlaybackState.PLAYING
        assert resources.last.playing

        resources.last.advance_to(3.25)
        transport.toggle_play()
        assert transport.state == PlaybackState.PAUSED
        assert transport.position == 3.25

    def test_tick_reports_position_while_playing(self, transport, resources, recorder) -> None:
        transport.on('position_update', recorder)
        transport.toggle_play()
        resources.last.advance_to(1.5)
        transport.tick()
        assert recorder.last == (1.5, 0.0)

    def test_tick_is_quiet_while_paused(self, transport, recorder) -> None:
        transport.on('position_update', recorder)
        transport.tick()
        assert recorder.calls == []

    def test_duration_becomes_known(self, transport, resources, recorder) -> None:
        transport.on('duration_change', recorder)
        _with_duration(transport, resources, 180.0)
        assert transport.duration == 180.0
        assert recorder.calls == [(180.0,)]

        transport.tick()
        assert len(recorder.calls) == 1

    def test_end_of_media_pauses_and_signals(self, transport, resources, recorder) -> None:
        _with_duration(transport, resources, 10.0)
        transport.on('ended', recorder)
        transport.toggle_play()

        resources.last.advance_to(10.0)
        transport.tick()

        assert transport.state == PlaybackState.PAUSED
        assert transport.position == 10.0
        assert recorder.calls == [()]

    def test_play_after_end_restarts(self, transport, resources) -> None:
        _with_duration(transport, resources, 10.0)
        transport.toggle_play()
        resources.last.advance_to(10.0)
        transport.tick()

        transport.toggle_play()
        assert transport.state == PlaybackState.PLAYING
        assert resources.last.position == 0.0


class TestSeek:
    """Tests for seeking and clamping."""

    def test_seek_emits_immediately(self, transport, recorder) -> None:
        transport.on('position_update', recorder)
        transport.seek(4.0)
        assert recorder.last == (4.0, 0.0)
        assert transport.get_position() == 4.0

    @pytest.mark.parametrize("target,expected", [(-3.0, 0.0), (25.0, 10.0), (7.5, 7.5)])
    def test_seek_clamps_to_duration(self, transport, resources, target, expected) -> None:
        _with_duration(transport, resources, 10.0)
        transport.seek(target)
        assert transport.position == expected
        assert resources.last.position == expected

    def test_seek_unbounded_while_duration_unknown(self, transport) -> None:
        transport.seek(1000.0)
        assert transport.position == 1000.0

    def test_nudge_is_relative(self, transport, resources) -> None:
        _with_duration(transport, resources, 60.0)
        transport.seek(20.0)
        transport.nudge(5.0)
        assert transport.position == 25.0
        transport.nudge(-30.0)
        assert transport.position == 0.0


class TestVolume:
    """Tests for volume and mute."""

    def test_adjust_clamps_at_top(self, transport) -> None:
        transport.set_volume(0.97)
        transport.adjust_volume(0.1)
        assert transport.volume == 1.0

    def test_adjust_clamps_at_bottom(self, transport) -> None:
        transport.set_volume(0.02)
        transport.adjust_volume(-0.1)
        assert transport.volume == 0.0

    def test_mute_keeps_stored_volume(self, transport, resources) -> None:
        transport.set_volume(0.6)
        transport.toggle_mute()
        assert transport.muted
        assert transport.volume == 0.6
        assert resources.last.volume == 0.0

        transport.toggle_mute()
        assert resources.last.volume == 0.6

    def test_positive_volume_clears_mute(self, transport, resources, recorder) -> None:
        transport.on('volume_change', recorder)
        transport.toggle_mute()
        transport.set_volume(0.5)
        assert not transport.muted
        assert resources.last.volume == 0.5
        assert recorder.last == (0.5, False)

    def test_zero_volume_keeps_mute(self, transport) -> None:
        transport.toggle_mute()
        transport.set_volume(0.0)
        assert transport.muted

    def test_volume_carried_into_new_transport(self, resources) -> None:
        t = MediaTransport(resource_factory=resources, auto_monitor=False, volume=0.3, muted=True)
        t.load("file:///music/song.mp3")
        assert resources.last.volume == 0.0
        t.toggle_mute()
        assert resources.last.volume == 0.3

    def test_volume_controls_noop_when_unbound(self, resources, recorder) -> None:
        t = MediaTransport(resource_factory=resources, auto_monitor=False)
        t.on('volume_change', recorder)
        t.set_volume(0.2)
        t.adjust_volume(-0.1)
        t.toggle_mute()
        assert t.volume == 1.0
        assert not t.muted
        assert recorder.calls == []
