"""Shared fixtures: a fake media resource with a hand-driven clock, a temp
registry, and transports/sessions that never start a monitor thread."""

from typing import List

import pytest

from backend.errors import ResourceLoadError
from backend.media import MediaResource
from backend.registry import LoopRegistry
from backend.session import LoopSession
from backend.transport import MediaTransport


class FakeMediaResource(MediaResource):
    """MediaResource whose clock only moves when a test says so."""

    def __init__(self, duration: float = 0.0, fail: bool = False):
        self.duration = duration
        self.fail = fail
        self.uri = None
        self.position = 0.0
        self.playing = False
        self.finished = False
        self.volume = None
        self.closed = False

    def open(self, stream_uri):
        if self.fail:
            raise ResourceLoadError(f"cannot decode {stream_uri}")
        self.uri = stream_uri

    def play(self, start):
        self.position = start
        self.playing = True
        self.finished = False

    def pause(self):
        self.playing = False

    def stop(self):
        self.playing = False

    def seek(self, position):
        self.position = position
        self.finished = False

    def get_position(self):
        return self.position

    def get_duration(self):
        return self.duration

    def is_finished(self):
        return self.playing and self.finished

    def set_volume(self, volume):
        self.volume = volume

    def close(self):
        self.closed = True
        self.playing = False

    def advance_to(self, position):
        """Move the clock as if playback had run to `position`."""
        self.position = position
        if self.duration and position >= self.duration:
            self.finished = True


class ResourceFactory:
    """Callable handed to MediaTransport; remembers every resource it built."""

    def __init__(self):
        self.created: List[FakeMediaResource] = []
        self.duration = 0.0
        self.fail_next = False

    def __call__(self):
        resource = FakeMediaResource(duration=self.duration, fail=self.fail_next)
        self.fail_next = False
        self.created.append(resource)
        return resource

    @property
    def last(self) -> FakeMediaResource:
        return self.created[-1]


@pytest.fixture
def resources() -> ResourceFactory:
    return ResourceFactory()


@pytest.fixture
def transport(resources) -> MediaTransport:
    """A transport bound to a fake resource, paused at 0."""
    t = MediaTransport(resource_factory=resources, auto_monitor=False)
    assert t.load("file:///music/song.mp3")
    yield t
    t.close()


@pytest.fixture
def registry(tmp_path) -> LoopRegistry:
    return LoopRegistry(str(tmp_path / "data"))


@pytest.fixture
def track(registry):
    return registry.create_track(b"ID3\x00fake mp3 data", "song.mp3")


@pytest.fixture
def other_track(registry):
    return registry.create_track(b"RIFF\x00fake wav data", "other.wav")


@pytest.fixture
def session(registry, resources) -> LoopSession:
    def transport_factory(**kwargs):
        return MediaTransport(resource_factory=resources, auto_monitor=False, **kwargs)

    s = LoopSession(registry, transport_factory=transport_factory, tolerance=0.05)
    yield s
    s.close()


class Recorder:
    """Collects callback arguments."""

    def __init__(self):
        self.calls = []

    def __call__(self, *args):
        self.calls.append(args)

    @property
    def last(self):
        return self.calls[-1]


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()
