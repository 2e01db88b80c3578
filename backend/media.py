"""
Host media resources for tikr.

A MediaResource is the one piece of hardware-adjacent state in the player:
something that can be opened from a stream URI, started at an offset,
paused, and asked where its clock is. The transport owns exactly one at a
time.

PygameMediaResource streams through pygame.mixer.music:
   - Position = offset where playback last started + mixer.music.get_pos()
   - Resume uses play(start=offset) rather than unpause(), which on some
     platforms fails to reset get_pos() and double counts time
   - Duration is probed lazily with ffprobe in a background thread

This module has NO UI dependencies.
"""

import os
import logging
import threading
import subprocess
from typing import Optional
from urllib.parse import urlparse, unquote
from urllib.request import url2pathname

# Must be done BEFORE importing pygame
os.environ.setdefault('PYGAME_HIDE_SUPPORT_PROMPT', "1")

import pygame

from config import SAMPLE_RATE, CHANNELS, MIXER_BUFFER_SIZE, FFPROBE_TIMEOUT
from .errors import ResourceLoadError

logger = logging.getLogger("Tikr.Media")

# Suppress console window on Windows for subprocess calls
_SUBPROCESS_FLAGS = {}
if os.name == 'nt':
    _SUBPROCESS_FLAGS['creationflags'] = subprocess.CREATE_NO_WINDOW


def uri_to_path(stream_uri: str) -> str:
    """
    Resolve a stream URI to a local filesystem path.

    Accepts file:// URIs and plain paths. Remote schemes are rejected since
    the host mixer can only stream local files.
    """
    if not stream_uri:
        raise ResourceLoadError("Empty stream URI")

    parsed = urlparse(stream_uri)
    if parsed.scheme == 'file':
        return url2pathname(unquote(parsed.path))
    # A Windows drive letter parses as a one-letter scheme
    if parsed.scheme == '' or len(parsed.scheme) == 1:
        return stream_uri
    raise ResourceLoadError(f"Unsupported stream URI scheme: {parsed.scheme}")


class MediaResource:
    """
    Interface of a playable media resource.

    Positions and durations are in seconds. get_duration() returns 0.0 until
    the resource knows its length.
    """

    def open(self, stream_uri: str) -> None:
        """Bind the resource to a stream. Raises ResourceLoadError on failure."""
        raise NotImplementedError

    def play(self, start: float) -> None:
        raise NotImplementedError

    def pause(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError

    def seek(self, position: float) -> None:
        raise NotImplementedError

    def get_position(self) -> float:
        raise NotImplementedError

    def get_duration(self) -> float:
        raise NotImplementedError

    def is_finished(self) -> bool:
        """True once playback has run off the end of the media."""
        raise NotImplementedError

    def set_volume(self, volume: float) -> None:
        raise NotImplementedError

    def close(self) -> None:
        """Release the resource. Must be safe to call more than once."""
        raise NotImplementedError


class PygameMediaResource(MediaResource):
    """
    Streams one local audio file through pygame.mixer.music.

    pygame.mixer.music is process-global, so only one of these should be
    open at a time; the transport guarantees that by closing the previous
    resource before binding a new one.
    """

    def __init__(self, ffmpeg_path: str = "ffmpeg"):
        """
        Args:
            ffmpeg_path: Path to ffmpeg; ffprobe is expected next to it
        """
        self.ffmpeg_path = ffmpeg_path
        self.path: Optional[str] = None

        self._offset = 0.0        # Where playback last (re)started from
        self._playing = False
        self._duration = 0.0

        self.lock = threading.RLock()
        # Incremented on every open/close so a late duration probe can tell
        # it belongs to a resource that has since been replaced
        self._generation_id = 0

    # =========================================================================
    # LOADING
    # =========================================================================

    def open(self, stream_uri: str) -> None:
        path = uri_to_path(stream_uri)
        if not os.path.isfile(path):
            raise ResourceLoadError(f"Audio file not found: {path}")

        logger.info(f"=== OPENING: {os.path.basename(path)} ===")
        try:
            if pygame.mixer.get_init() is None:
                pygame.mixer.init(
                    frequency=SAMPLE_RATE,
                    size=-16,
                    channels=CHANNELS,
                    buffer=MIXER_BUFFER_SIZE
                )
            pygame.mixer.music.load(path)
        except pygame.error as e:
            raise ResourceLoadError(f"Could not open {os.path.basename(path)}: {e}") from e

        with self.lock:
            self.path = path
            self._offset = 0.0
            self._playing = False
            self._duration = 0.0
            self._generation_id += 1
            gen_id = self._generation_id

        threading.Thread(
            target=self._probe_duration,
            args=(path, gen_id),
            daemon=True
        ).start()

    def _probe_duration(self, path: str, gen_id: int) -> None:
        """
        Background duration lookup: ffprobe's format header first, then a
        full decode through pygame.mixer.Sound. Discarded if the resource
        was re-opened or closed in the meantime.
        """
        duration = self._ffprobe_duration(path)
        if duration is None:
            try:
                duration = pygame.mixer.Sound(path).get_length()
            except pygame.error as e:
                logger.warning(f"Duration unknown for {os.path.basename(path)}: {e}")
                return

        with self.lock:
            if gen_id != self._generation_id:
                logger.debug(f"Duration probe {gen_id} superseded by {self._generation_id}")
                return
            self._duration = duration
        logger.info(f"Track duration: {duration:.2f}s")

    def _ffprobe_duration(self, path: str) -> Optional[float]:
        """Seconds from `ffprobe -show_entries format=duration`, or None."""
        # ffprobe ships next to ffmpeg
        directory, name = os.path.split(self.ffmpeg_path)
        ffprobe = os.path.join(directory, name.replace("ffmpeg", "ffprobe"))
        try:
            proc = subprocess.run(
                [ffprobe, '-v', 'error', '-show_entries', 'format=duration',
                 '-of', 'csv=p=0', path],
                capture_output=True,
                text=True,
                timeout=FFPROBE_TIMEOUT,
                **_SUBPROCESS_FLAGS
            )
            duration = float(proc.stdout.strip()) if proc.returncode == 0 else None
        except FileNotFoundError:
            logger.debug(f"{ffprobe} not found; decoding for duration")
            return None
        except (subprocess.SubprocessError, ValueError) as e:
            logger.debug(f"ffprobe gave no duration for {os.path.basename(path)}: {e}")
            return None

        if duration is None or duration <= 0:
            logger.debug(f"ffprobe exited {proc.returncode} for {os.path.basename(path)}")
            return None
        return duration

    # =========================================================================
    # PLAYBACK
    # =========================================================================

    def play(self, start: float) -> None:
        with self.lock:
            self._offset = start
            self._playing = True
        pygame.mixer.music.play(start=start)
        logger.debug(f"[PLAY] from {start:.3f}s")

    def pause(self) -> None:
        with self.lock:
            if not self._playing:
                return
            self._offset = self.get_position()
            self._playing = False
        pygame.mixer.music.pause()
        logger.debug(f"[PAUSE] at {self._offset:.3f}s")

    def stop(self) -> None:
        with self.lock:
            self._playing = False
            self._offset = 0.0
        pygame.mixer.music.stop()

    def seek(self, position: float) -> None:
        """Reposition the clock; restarts the stream only while playing."""
        with self.lock:
            self._offset = position
            playing = self._playing
        if playing:
            pygame.mixer.music.play(start=position)

    def get_position(self) -> float:
        with self.lock:
            if not self._playing:
                return self._offset
            ms = pygame.mixer.music.get_pos()
            if ms >= 0:
                return self._offset + (ms / 1000.0)
            return self._offset

    def get_duration(self) -> float:
        with self.lock:
            return self._duration

    def is_finished(self) -> bool:
        with self.lock:
            return self._playing and not pygame.mixer.music.get_busy()

    def set_volume(self, volume: float) -> None:
        pygame.mixer.music.set_volume(volume)

    def close(self) -> None:
        with self.lock:
            self._generation_id += 1
            was_open = self.path is not None
            self.path = None
            self._playing = False
        if was_open and pygame.mixer.get_init() is not None:
            logger.debug("Releasing mixer stream")
            pygame.mixer.music.stop()
            pygame.mixer.music.unload()
