"""Tests for stream URI resolution and the ffprobe duration lookup."""

import os
import subprocess

import pytest

from backend.errors import ResourceLoadError
from backend.media import PygameMediaResource, uri_to_path


@pytest.mark.skipif(os.name == 'nt', reason="POSIX paths")
class TestUriToPath:

    def test_file_uri(self) -> None:
        assert uri_to_path("file:///music/my%20song.mp3") == "/music/my song.mp3"

    def test_plain_path(self) -> None:
        assert uri_to_path("/music/song.mp3") == "/music/song.mp3"

    def test_registry_uri_round_trips(self, registry, track) -> None:
        path = uri_to_path(registry.stream_url_for(track.id))
        assert os.path.samefile(path, registry.blob_path(track.id))

    @pytest.mark.parametrize("uri", ["", "http://example.com/song.mp3"])
    def test_rejected(self, uri) -> None:
        with pytest.raises(ResourceLoadError):
            uri_to_path(uri)


class TestFfprobeDuration:
    """Tests for the ffprobe duration lookup."""

    def test_reads_format_duration(self, monkeypatch) -> None:
        calls = []

        def fake_run(cmd, **kwargs):
            calls.append(cmd)
            return subprocess.CompletedProcess(cmd, 0, stdout="12.5\n", stderr="")

        monkeypatch.setattr(subprocess, 'run', fake_run)
        resource = PygameMediaResource(ffmpeg_path="/opt/ff/ffmpeg")
        assert resource._ffprobe_duration("/music/song.mp3") == 12.5
        assert calls[0][0] == os.path.join("/opt/ff", "ffprobe")

    @pytest.mark.parametrize("outcome", [
        FileNotFoundError("ffprobe"),
        subprocess.CompletedProcess([], 1, stdout="", stderr="bad file"),
        subprocess.CompletedProcess([], 0, stdout="N/A\n", stderr=""),
    ])
    def test_failures_give_none(self, monkeypatch, outcome) -> None:
        def fake_run(cmd, **kwargs):
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        monkeypatch.setattr(subprocess, 'run', fake_run)
        assert PygameMediaResource()._ffprobe_duration("/music/song.mp3") is None
