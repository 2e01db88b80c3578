"""
Media Transport for tikr.

The single source of truth for "what is the playback clock doing right
now". Wraps exactly one MediaResource and exposes play/pause, seek,
volume and mute as a small state machine:

    UNBOUND --load ok--> PAUSED <--toggle_play--> PLAYING
       |                   ^                         |
       +--load fails--> FAILED      (end of media) --+

A monitor thread polls the resource every TICK_INTERVAL seconds and emits
position updates; tests drive tick() by hand instead.

Event System:
- 'position_update': (position: float, duration: float)
- 'state_change': (state: PlaybackState)
- 'duration_change': (duration: float)
- 'volume_change': (volume: float, muted: bool)
- 'ended': ()
- 'error': (error: ResourceLoadError)

Callbacks are always invoked outside the transport lock, so an observer may
call straight back into the transport (the loop controller seeks from
inside a position update).
"""

import logging
import threading
from typing import Callable, Optional

from config import TICK_INTERVAL, DEFAULT_VOLUME
from .errors import ResourceLoadError
from .events import EventEmitter
from .media import MediaResource, PygameMediaResource
from .models import PlaybackState

logger = logging.getLogger("Tikr.Transport")


def _clamp_volume(value: float) -> float:
    return max(0.0, min(1.0, value))


class MediaTransport(EventEmitter):
    """
    Playback clock over one media resource.

    Usage:
        transport = MediaTransport()
        transport.on('position_update', lambda pos, dur: print(pos))
        transport.load("file:///music/song.mp3")
        transport.toggle_play()
        transport.seek(42.0)
        ...
        transport.close()   # unsubscribes everyone, releases the resource
    """

    EVENTS = (
        'position_update',
        'state_change',
        'duration_change',
        'volume_change',
        'ended',
        'error',
    )

    def __init__(
        self,
        resource_factory: Callable[[], MediaResource] = PygameMediaResource,
        tick_interval: float = TICK_INTERVAL,
        auto_monitor: bool = True,
        volume: float = DEFAULT_VOLUME,
        muted: bool = False,
    ):
        """
        Args:
            resource_factory: Builds a fresh MediaResource for every load
            tick_interval: Monitor polling period in seconds
            auto_monitor: Start the monitor thread on load (off in tests)
            volume: Initial volume, carried over from a previous transport
            muted: Initial mute flag
        """
        super().__init__()
        self._resource_factory = resource_factory
        self.tick_interval = tick_interval
        self.auto_monitor = auto_monitor

        self.resource: Optional[MediaResource] = None
        self.stream_uri: Optional[str] = None
        self.state = PlaybackState.UNBOUND
        self.position = 0.0
        self.duration = 0.0          # 0.0 = unknown
        self.volume = _clamp_volume(volume)
        self.muted = muted
        self.last_error: Optional[ResourceLoadError] = None

        # Thread safety - one RLock for all transport state
        self.lock = threading.RLock()

        # Monitor thread
        self._monitor_thread: Optional[threading.Thread] = None
        self._monitor_stop = threading.Event()

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def is_bound(self) -> bool:
        return self.resource is not None

    @property
    def is_playing(self) -> bool:
        return self.state == PlaybackState.PLAYING

    @property
    def effective_volume(self) -> float:
        """Volume actually sent to the resource (0 while muted)."""
        return 0.0 if self.muted else self.volume

    # =========================================================================
    # LOADING
    # =========================================================================

    def load(self, stream_uri: str) -> bool:
        """
        Bind a new media resource, releasing the previous one first.

        Args:
            stream_uri: URI handed out by the registry

        Returns:
            True if the resource opened; False if the transport is now FAILED
        """
        logger.info(f"=== LOADING: {stream_uri} ===")

        with self.lock:
            self._release()
            self.stream_uri = stream_uri
            self.position = 0.0
            self.duration = 0.0
            self.last_error = None

            resource = self._resource_factory()
            try:
                resource.open(stream_uri)
            except ResourceLoadError as e:
                resource.close()
                self.state = PlaybackState.FAILED
                self.last_error = e
                error = e
            else:
                self.resource = resource
                resource.set_volume(self.effective_volume)
                self.state = PlaybackState.PAUSED
                error = None

        if error is not None:
            logger.error(f"Could not load media: {error}")
            self._emit('state_change', PlaybackState.FAILED)
            self._emit('error', error)
            return False

        if self.auto_monitor:
            self._start_monitor()
        self._emit('state_change', PlaybackState.PAUSED)
        self._emit('position_update', 0.0, 0.0)
        return True

    def _release(self) -> None:
        """Stop and drop the bound resource. Caller holds the lock."""
        if self.resource is not None:
            logger.debug("Releasing bound media resource")
            self.resource.close()
            self.resource = None
        self.state = PlaybackState.UNBOUND

    # =========================================================================
    # PLAYBACK CONTROLS
    # =========================================================================

    def play(self) -> None:
        """Start or resume playback. No-op unless PAUSED."""
        with self.lock:
            if self.resource is None or self.state != PlaybackState.PAUSED:
                return
            start = self.position
            if self.duration > 0 and start >= self.duration:
                # Played to the end last time: start over
                start = 0.0
                self.position = 0.0
            self.resource.play(start)
            self.state = PlaybackState.PLAYING

        logger.info(f"[PLAY] from {start:.3f}s")
        self._emit('state_change', PlaybackState.PLAYING)

    def pause(self) -> None:
        """Pause playback. No-op unless PLAYING."""
        with self.lock:
            if self.resource is None or self.state != PlaybackState.PLAYING:
                return
            self.resource.pause()
            self.position = self.resource.get_position()
            self.state = PlaybackState.PAUSED
            position = self.position

        logger.info(f"[PAUSE] at {position:.3f}s")
        self._emit('state_change', PlaybackState.PAUSED)

    def toggle_play(self) -> None:
        """Toggle between play and pause."""
        if self.state == PlaybackState.PLAYING:
            self.pause()
        else:
            self.play()

    def seek(self, time: float) -> None:
        """
        Seek to a position and report it immediately.

        Args:
            time: Target in seconds; clamped to [0, duration], or [0, inf)
                  while the duration is unknown
        """
        with self.lock:
            if self.resource is None:
                return
            position = max(0.0, float(time))
            if self.duration > 0:
                position = min(position, self.duration)
            self.resource.seek(position)
            self.position = position
            duration = self.duration

        logger.debug(f"[SEEK] to {position:.3f}s")
        self._emit('position_update', position, duration)

    def nudge(self, amount: float) -> None:
        """
        Seek relative to the current position.

        Args:
            amount: Seconds to move (positive or negative)
        """
        if self.resource is None:
            return
        self.seek(self.get_position() + amount)

    def get_position(self) -> float:
        """Current position in seconds, read straight from the resource."""
        with self.lock:
            if self.resource is None:
                return self.position
            if self.state == PlaybackState.PLAYING:
                position = self.resource.get_position()
                if self.duration > 0:
                    position = min(position, self.duration)
                return position
            return self.position

    # =========================================================================
    # VOLUME
    # =========================================================================

    def set_volume(self, volume: float) -> None:
        """Set volume (clamped to 0..1). A positive volume clears mute."""
        with self.lock:
            if self.resource is None:
                return
            self.volume = _clamp_volume(volume)
            if self.volume > 0:
                self.muted = False
            self.resource.set_volume(self.effective_volume)
            volume, muted = self.volume, self.muted

        logger.debug(f"Volume {volume:.2f}{' (muted)' if muted else ''}")
        self._emit('volume_change', volume, muted)

    def adjust_volume(self, delta: float) -> None:
        """Change volume relative to the current level."""
        with self.lock:
            if self.resource is None:
                return
            target = self.volume + delta
        self.set_volume(target)

    def toggle_mute(self) -> None:
        """Flip mute; the stored volume is kept so unmuting restores it."""
        with self.lock:
            if self.resource is None:
                return
            self.muted = not self.muted
            self.resource.set_volume(self.effective_volume)
            volume, muted = self.volume, self.muted

        logger.debug(f"Mute {'on' if muted else 'off'}")
        self._emit('volume_change', volume, muted)

    # =========================================================================
    # CLOCK
    # =========================================================================

    def tick(self) -> None:
        """
        Poll the resource once and report what it is doing.

        Emits a position update while playing (or when the duration becomes
        known), and the 'ended' signal when playback runs off the end.
        """
        with self.lock:
            resource = self.resource
            if resource is None:
                return

            duration_changed = False
            reported = resource.get_duration()
            if reported > 0 and reported != self.duration:
                self.duration = reported
                duration_changed = True

            playing = self.state == PlaybackState.PLAYING
            ended = playing and resource.is_finished()
            if ended:
                self.position = self.duration if self.duration > 0 else resource.get_position()
                resource.stop()
                self.state = PlaybackState.PAUSED
            elif playing:
                position = resource.get_position()
                if self.duration > 0:
                    position = min(position, self.duration)
                self.position = position

            position, duration = self.position, self.duration

        if duration_changed:
            logger.info(f"Duration known: {duration:.2f}s")
            self._emit('duration_change', duration)
        if playing or duration_changed:
            self._emit('position_update', position, duration)
        if ended:
            logger.info("Playback reached end of media")
            self._emit('state_change', PlaybackState.PAUSED)
            self._emit('ended')

    def _start_monitor(self) -> None:
        """Start the monitor thread if not already running."""
        if self._monitor_thread is None or not self._monitor_thread.is_alive():
            self._monitor_stop.clear()
            self._monitor_thread = threading.Thread(target=self._monitor, daemon=True)
            self._monitor_thread.start()

    def _monitor(self) -> None:
        """Monitor thread: tick until stopped."""
        logger.debug("Monitor thread started")
        while not self._monitor_stop.wait(self.tick_interval):
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Monitor tick failed: {e}")
        logger.debug("Monitor thread exiting")

    def _stop_monitor(self) -> None:
        self._monitor_stop.set()
        thread = self._monitor_thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=1.0)
        self._monitor_thread = None

    # =========================================================================
    # TEARDOWN
    # =========================================================================

    def close(self) -> None:
        """
        Tear the transport down.

        Observers are removed first so nothing they did can be driven by this
        transport again; then the monitor stops and the resource is released.
        """
        self.clear()
        self._stop_monitor()
        with self.lock:
            self._release()
            self.stream_uri = None
        logger.debug("Transport closed")
