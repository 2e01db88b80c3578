"""Tests for formatting helpers and the volume preference."""

import pytest

from backend.models import LoopRegion
from utils import format_position, format_region, format_time, parse_time
from utils.preferences import get_volume_preference, set_volume_preference


class TestFormatting:

    def test_format_time(self) -> None:
        assert format_time(65.5) == "1:05.50"
        assert format_time(65.5, include_ms=False) == "1:05"
        assert format_time(-3.0) == "0:00.00"

    def test_unknown_duration(self) -> None:
        assert format_position(2.5, 0.0) == "0:02.50 / --:--"

    def test_format_region(self) -> None:
        region = LoopRegion.create("t", 2.0, 5.5, "chorus")
        assert format_region(0, region, active=True) == "* 1. chorus  0:02.00 - 0:05.50 (3.500s)"

    @pytest.mark.parametrize("text,expected", [
        ("83.5", 83.5),
        ("1:23.5", 83.5),
        ("1:00:00", 3600.0),
        ("", None),
        ("abc", None),
        ("-5", None),
    ])
    def test_parse_time(self, text, expected) -> None:
        assert parse_time(text) == expected


class TestVolumePreference:

    def test_round_trip(self, tmp_path) -> None:
        path = str(tmp_path / "prefs" / "user_preferences.json")
        assert get_volume_preference(0.8, path=path) == 0.8
        set_volume_preference(0.35, path=path)
        assert get_volume_preference(path=path) == 0.35

    def test_garbage_value_uses_default(self, tmp_path) -> None:
        path = tmp_path / "user_preferences.json"
        path.write_text('{"volume": "loud"}')
        assert get_volume_preference(0.5, path=str(path)) == 0.5
