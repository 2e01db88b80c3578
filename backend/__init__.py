"""
Backend module for tikr.

Contains the media transport, loop controller, session orchestration and
the loop registry. These modules are UI-agnostic and can be used
independently for testing.
"""

from .errors import (
    TikrError, ValidationError, ResourceLoadError, NotFoundError,
    StaleOperationError, StorageError,
)
from .models import PlaybackState, Track, LoopRegion
from .media import MediaResource, PygameMediaResource
from .transport import MediaTransport
from .loop_controller import LoopController
from .registry import LoopRegistry
from .session import LoopSession

__all__ = [
    'TikrError',
    'ValidationError',
    'ResourceLoadError',
    'NotFoundError',
    'StaleOperationError',
    'StorageError',
    'PlaybackState',
    'Track',
    'LoopRegion',
    'MediaResource',
    'PygameMediaResource',
    'MediaTransport',
    'LoopController',
    'LoopRegistry',
    'LoopSession',
]
