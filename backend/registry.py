"""
Loop Registry for tikr.

A flat JSON record store for tracks and loop regions:

    <data_dir>/tracks.json    list of Track records
    <data_dir>/loops.json     list of LoopRegion records
    <data_dir>/audio/         uploaded audio blobs, named <track id><ext>

Every call reads the files fresh, so several processes (the web server and
a console session) can share one data directory. Writes are serialized
within a process by a lock.
"""

import os
import json
import time
import uuid
import logging
import threading
from pathlib import Path
from typing import List, Optional

from config import (
    DATA_DIR, AUDIO_DIR_NAME, TRACKS_FILE_NAME, LOOPS_FILE_NAME,
    SUPPORTED_FORMATS, DEFAULT_LOOP_LABEL,
)
from .errors import NotFoundError, StorageError, ValidationError
from .models import LoopRegion, Track

logger = logging.getLogger("Tikr.Registry")


class LoopRegistry:
    """
    CRUD over tracks and their named loop regions.

    Usage:
        registry = LoopRegistry("/path/to/data")
        track = registry.create_track(data, "song.mp3")
        region = registry.create_region(track.id, 2.0, 5.5, "chorus")
        registry.delete_track(track.id)   # also deletes its regions
    """

    def __init__(self, data_dir: str = DATA_DIR):
        self.data_dir = data_dir
        self.audio_dir = os.path.join(data_dir, AUDIO_DIR_NAME)
        self.tracks_file = os.path.join(data_dir, TRACKS_FILE_NAME)
        self.loops_file = os.path.join(data_dir, LOOPS_FILE_NAME)
        self.lock = threading.RLock()

        try:
            os.makedirs(self.audio_dir, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Could not create data directory {data_dir}: {e}") from e

        logger.info(f"Registry opened at {data_dir}")

    # =========================================================================
    # TRACKS
    # =========================================================================

    def list_tracks(self) -> List[Track]:
        tracks = []
        for data in self._read_records(self.tracks_file):
            try:
                tracks.append(Track.from_dict(data))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping invalid track record {data!r}: {e}")
        return tracks

    def get_track(self, track_id: str) -> Optional[Track]:
        for track in self.list_tracks():
            if track.id == track_id:
                return track
        return None

    def create_track(self, file_bytes: bytes, original_name: str) -> Track:
        """
        Store an uploaded audio file and register it.

        Args:
            file_bytes: Raw file contents
            original_name: The uploaded file's name (used for display and
                           to pick the stored extension)

        Returns:
            The new Track (duration 0.0 until a player reports it)
        """
        original_name = os.path.basename(original_name or "").strip()
        if not original_name:
            raise ValidationError("Audio file name is required")
        ext = os.path.splitext(original_name)[1].lower()
        if ext not in SUPPORTED_FORMATS:
            raise ValidationError(
                f"Unsupported audio format '{ext}'. Supported: {', '.join(SUPPORTED_FORMATS)}"
            )
        if not isinstance(file_bytes, (bytes, bytearray)):
            raise ValidationError("Audio data must be bytes")

        track_id = str(uuid.uuid4())
        track = Track(id=track_id, filename=f"{track_id}{ext}", original_name=original_name)

        with self.lock:
            blob_path = os.path.join(self.audio_dir, track.filename)
            try:
                with open(blob_path, 'wb') as f:
                    f.write(file_bytes)
            except OSError as e:
                raise StorageError(f"Could not store audio file: {e}") from e

            records = self._read_records(self.tracks_file)
            records.append(track.to_dict())
            self._write_records(self.tracks_file, records)

        logger.info(f"Added track '{original_name}' (ID: {track_id}, {len(file_bytes)} bytes)")
        return track

    def delete_track(self, track_id: str) -> bool:
        """
        Delete a track, all of its regions and (best effort) its audio blob.

        Returns:
            False if the track did not exist
        """
        with self.lock:
            track = self.get_track(track_id)
            if track is None:
                return False

            blob_path = os.path.join(self.audio_dir, track.filename)
            try:
                os.unlink(blob_path)
            except FileNotFoundError:
                pass
            except OSError as e:
                # File may be locked by a player; the records still go
                logger.warning(f"Could not delete audio file {blob_path}: {e}")

            loops = self._read_records(self.loops_file)
            kept = [l for l in loops if l.get('audioId') != track_id]
            self._write_records(self.loops_file, kept)

            tracks = self._read_records(self.tracks_file)
            self._write_records(self.tracks_file, [t for t in tracks if t.get('id') != track_id])

        logger.info(f"Deleted track '{track.original_name}' and {len(loops) - len(kept)} loops")
        return True

    def blob_path(self, track_id: str) -> Path:
        """Path of a track's stored audio file."""
        track = self.get_track(track_id)
        if track is None:
            raise NotFoundError(f"Track not found: {track_id}")
        return Path(self.audio_dir) / track.filename

    def stream_url_for(self, track_id: str) -> str:
        """URI to hand to MediaTransport.load()."""
        return self.blob_path(track_id).resolve().as_uri()

    # =========================================================================
    # LOOP REGIONS
    # =========================================================================

    def list_regions(self, track_id: str) -> List[LoopRegion]:
        regions = []
        for data in self._read_records(self.loops_file):
            if data.get('audioId') != track_id:
                continue
            try:
                regions.append(LoopRegion.from_dict(data))
            except (KeyError, TypeError, ValidationError) as e:
                logger.warning(f"Skipping invalid loop record {data.get('id')}: {e}")
        return regions

    def create_region(self, track_id: str, start: float, end: float,
                      label: Optional[str] = None) -> LoopRegion:
        """
        Create a named loop region.

        Raises:
            ValidationError: non-numeric bounds, start < 0 or end <= start
            NotFoundError: unknown track
        """
        # Validates bounds before anything touches the disk
        region = LoopRegion.create(
            track_id, start, end,
            label or f"{DEFAULT_LOOP_LABEL} {int(time.time() * 1000)}",
        )

        with self.lock:
            if self.get_track(track_id) is None:
                raise NotFoundError(f"Track not found: {track_id}")
            records = self._read_records(self.loops_file)
            records.append(region.to_dict())
            self._write_records(self.loops_file, records)

        logger.info(f"Added loop {region} to track {track_id}")
        return region

    def delete_region(self, region_id: str) -> bool:
        """Returns False if no region had that id."""
        with self.lock:
            records = self._read_records(self.loops_file)
            kept = [r for r in records if r.get('id') != region_id]
            if len(kept) == len(records):
                return False
            self._write_records(self.loops_file, kept)

        logger.info(f"Deleted loop {region_id}")
        return True

    # =========================================================================
    # DATA PERSISTENCE
    # =========================================================================

    def _read_records(self, path: str) -> list:
        """Load a record list from disk; a missing or corrupt file reads as empty."""
        if not os.path.exists(path):
            return []
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Could not parse {os.path.basename(path)}: {e}")
            return []
        except OSError as e:
            raise StorageError(f"Could not read {path}: {e}") from e
        if not isinstance(data, list):
            return []
        records = [r for r in data if isinstance(r, dict)]
        if len(records) != len(data):
            logger.warning(f"Skipping {len(data) - len(records)} non-object entries in {os.path.basename(path)}")
        return records

    def _write_records(self, path: str, records: list) -> None:
        try:
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(records, f, indent=2)
        except OSError as e:
            logger.error(f"Could not save {os.path.basename(path)}: {e}")
            raise StorageError(f"Could not write {path}: {e}") from e
