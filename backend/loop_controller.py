"""
Loop Controller for tikr.

Watches the transport's position stream and, while looping is enabled and
a region is active, seeks back to the region start whenever playback gets
within `tolerance` seconds of the region end.

The wrap is naturally one-shot per boundary crossing: the seek drops the
position below the threshold, so the condition stays false until playback
approaches the end again.

Event System:
- 'loop_wrapped': (region: LoopRegion)
"""

import logging
from typing import Optional

from config import LOOP_WRAP_TOLERANCE_MS
from .events import EventEmitter
from .models import LoopRegion
from .transport import MediaTransport

logger = logging.getLogger("Tikr.LoopController")


class LoopController(EventEmitter):
    """
    Enforces "replay this sub-range forever" on one transport.

    active_region and looping_enabled are plain attributes read at the
    moment each position update arrives, so changing either takes effect
    on the very next update.
    """

    EVENTS = ('loop_wrapped',)

    def __init__(self, transport: MediaTransport, tolerance: Optional[float] = None):
        """
        Args:
            transport: Transport to observe and seek
            tolerance: Seconds before the region end at which to wrap
                       (defaults to LOOP_WRAP_TOLERANCE_MS)
        """
        super().__init__()
        self.transport = transport
        self.tolerance = LOOP_WRAP_TOLERANCE_MS / 1000.0 if tolerance is None else tolerance
        self.active_region: Optional[LoopRegion] = None
        self.looping_enabled: bool = False
        self.wrap_count = 0

        self._attached = False
        self._wrapping = False

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def attach(self) -> None:
        """Start observing the transport's position updates."""
        if not self._attached:
            self.transport.on('position_update', self._on_position_update)
            self._attached = True

    def detach(self) -> None:
        """Stop observing; no wrap can fire after this returns."""
        if self._attached:
            self.transport.off('position_update', self._on_position_update)
            self._attached = False

    @property
    def attached(self) -> bool:
        return self._attached

    # =========================================================================
    # BOUNDARY ENFORCEMENT
    # =========================================================================

    def _on_position_update(self, position: float, duration: float) -> None:
        # Our own seek re-emits a position update; ignore it
        if self._wrapping:
            return

        region = self.active_region
        if not self.looping_enabled or region is None:
            return

        if region.end <= region.start:
            # Unreachable through LoopRegion, but never spin on a bad region
            logger.warning(f"Ignoring degenerate loop region {region}")
            return

        if position >= region.end - self.tolerance:
            logger.debug(f"[WRAP] pos={position:.3f}s >= {region.end - self.tolerance:.3f}s -> {region.start:.3f}s")
            self._wrapping = True
            try:
                self.transport.seek(region.start)
            finally:
                self._wrapping = False
            self.wrap_count += 1
            self._emit('loop_wrapped', region)
