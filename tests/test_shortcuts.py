"""Tests for keyboard shortcut dispatch."""

import pytest

from backend.shortcuts import handle_key, normalize_key


class TestNormalizeKey:

    @pytest.mark.parametrize("raw,expected", [
        (" ", "space"),
        ("ArrowLeft", "left"),
        ("K", "k"),
        ("  m ", "m"),
    ])
    def test_names(self, raw, expected) -> None:
        assert normalize_key(raw) == expected


class TestHandleKey:
    """Tests for keys acting on a live session."""

    @pytest.fixture
    def live(self, session, registry, track, resources):
        resources.duration = 120.0
        registry.create_region(track.id, 30.0, 40.0, "solo")
        session.select_track(track)
        session.wait_for_regions(timeout=5)
        session.transport.tick()
        return session

    def test_space_toggles_play(self, live) -> None:
        assert handle_key(live, " ")
        assert live.transport.is_playing

    def test_seek_keys(self, live) -> None:
        handle_key(live, "ArrowRight")
        assert live.position == 5.0
        handle_key(live, "l")
        assert live.position == 15.0
        handle_key(live, "j")
        handle_key(live, "left")
        assert live.position == 0.0

    def test_volume_and_mute_keys(self, live) -> None:
        handle_key(live, "down")
        assert live.volume == pytest.approx(0.95)
        handle_key(live, "m")
        assert live.muted

    def test_mark_and_loop_keys(self, live) -> None:
        live.seek(12.0)
        assert handle_key(live, "s")
        assert live.pending_start == 12.0
        live.seek(14.5)
        assert handle_key(live, "e")
        assert live.pending_end == 14.5

        handle_key(live, "1")
        assert live.active_region.label == "solo"
        assert live.position == 30.0

        handle_key(live, "u")
        assert not live.looping_enabled

    def test_unbound_key(self, live) -> None:
        assert handle_key(live, "z") is False
        assert handle_key(live, "9") is True
        assert live.active_region is None
