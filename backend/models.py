"""
Data model for tikr.

- A Track is an uploaded audio resource.
- A LoopRegion is a named (start, end) range inside one track.

Both serialize to the JSON shape of the record store and the HTTP API
(camelCase keys), so records written by either side stay interchangeable.
"""

import math
import uuid
import numbers
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Any, Dict

from .errors import ValidationError


class PlaybackState(Enum):
    """Transport playback state enumeration."""
    UNBOUND = auto()   # no media resource bound
    PAUSED = auto()
    PLAYING = auto()
    FAILED = auto()    # last load failed; play/seek are no-ops until a new load


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def is_number(value) -> bool:
    # bool is an int subclass but never a valid time offset; NaN and inf
    # slip past every ordering check
    return (isinstance(value, numbers.Real) and not isinstance(value, bool)
            and math.isfinite(value))


@dataclass
class Track:
    """
    An audio resource in the library.

    Attributes:
        id: Unique identifier (also the stem of the stored blob)
        filename: Name of the stored blob inside the audio directory
        original_name: Display name (the uploaded file's name)
        duration: Length in seconds, 0.0 while unknown
        created_at: ISO-8601 UTC creation timestamp
    """
    id: str
    filename: str
    original_name: str
    duration: float = 0.0
    created_at: str = field(default_factory=_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON storage."""
        return {
            'id': self.id,
            'filename': self.filename,
            'originalName': self.original_name,
            'duration': self.duration,
            'createdAt': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Track":
        """Deserialize from JSON storage."""
        return cls(
            id=data['id'],
            filename=data['filename'],
            original_name=data.get('originalName', data['filename']),
            duration=float(data.get('duration') or 0.0),
            created_at=data.get('createdAt') or _now_iso(),
        )


@dataclass(frozen=True)
class LoopRegion:
    """
    A named loop region within a track.

    Regions are immutable once created; editing one means deleting it and
    creating a replacement.

    Attributes:
        id: Unique identifier
        track_id: Identifier of the owning track
        start: Start time in seconds (>= 0)
        end: End time in seconds (> start)
        label: Human-readable name (e.g. "chorus")
    """
    id: str
    track_id: str
    start: float
    end: float
    label: str

    def __post_init__(self):
        if not is_number(self.start) or not is_number(self.end):
            raise ValidationError(
                f"Loop start/end must be finite numbers, got start={self.start!r}, end={self.end!r}"
            )
        if self.start < 0:
            raise ValidationError(f"Loop start must be >= 0, got {self.start}")
        if self.end <= self.start:
            raise ValidationError(
                f"Loop end must be greater than start, got start={self.start}, end={self.end}"
            )
        # Normalize ints so JSON round trips compare equal
        object.__setattr__(self, 'start', float(self.start))
        object.__setattr__(self, 'end', float(self.end))

    @classmethod
    def create(cls, track_id: str, start: float, end: float, label: str) -> "LoopRegion":
        """Build a new region with a fresh id."""
        return cls(id=str(uuid.uuid4()), track_id=track_id, start=start, end=end, label=label)

    @property
    def duration(self) -> float:
        return self.end - self.start

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON storage."""
        return {
            'id': self.id,
            'audioId': self.track_id,
            'start': self.start,
            'end': self.end,
            'label': self.label,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoopRegion":
        """Deserialize from JSON storage."""
        return cls(
            id=data['id'],
            track_id=data['audioId'],
            start=data['start'],
            end=data['end'],
            label=data.get('label', ''),
        )

    def __str__(self) -> str:
        return f"'{self.label}' [{self.start:.3f}s - {self.end:.3f}s]"
