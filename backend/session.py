"""
Session Orchestrator for tikr.

Acts as the controller layer between a front end and the playback core.
Owns one MediaTransport + LoopController pair per selected track, the list
of that track's loop regions, the pending in/out marks and the loop
selection.

State machine:
    NoTrack -> TrackSelected(playing|paused)
               x Marking {none, start-only, start+end}
               x LoopSelection {none | region, enabled | disabled}

Event System (register with session.on('event_name', callback)):
- 'track_changed': (track: Track | None)
- 'regions_changed': (regions: list, active_region: LoopRegion | None)
- 'marks_changed': (mark_start: float | None, mark_end: float | None)
- 'looping_changed': (enabled: bool)
- 'position_update': (position: float, duration: float)
- 'duration_change': (duration: float)
- 'state_change': (state: PlaybackState)
- 'volume_change': (volume: float, muted: bool)
- 'loop_wrapped': (region: LoopRegion)
- 'ended': ()
- 'error': (error: TikrError)

Every selection bumps a generation counter. Background region loads carry
the generation they were started under and are discarded if a newer
selection has happened since.
"""

import logging
import threading
from typing import Callable, Dict, List, Optional, Any

from config import DEFAULT_VOLUME
from .errors import NotFoundError, StaleOperationError, TikrError, ValidationError
from .events import EventEmitter
from .loop_controller import LoopController
from .models import LoopRegion, PlaybackState, Track
from .registry import LoopRegistry
from .transport import MediaTransport

logger = logging.getLogger("Tikr.Session")


class LoopSession(EventEmitter):
    """
    Workflow around defining, selecting and discarding loop regions.

    Usage:
        session = LoopSession(registry)
        session.select_track(track)
        session.toggle_play()
        session.mark_start()        # at 2.0s
        session.mark_end()          # at 5.5s
        session.save_loop("chorus") # now looping 2.0 -> 5.5
    """

    EVENTS = (
        'track_changed',
        'regions_changed',
        'marks_changed',
        'looping_changed',
        'position_update',
        'duration_change',
        'state_change',
        'volume_change',
        'loop_wrapped',
        'ended',
        'error',
    )

    def __init__(
        self,
        registry: LoopRegistry,
        transport_factory: Optional[Callable[..., MediaTransport]] = None,
        tolerance: Optional[float] = None,
        volume: float = DEFAULT_VOLUME,
    ):
        """
        Args:
            registry: Record store for tracks and regions
            transport_factory: Called as factory(volume=..., muted=...) for
                               every selected track
            tolerance: Loop wrap tolerance in seconds (config default if None)
            volume: Initial volume; later carried from transport to transport
        """
        super().__init__()
        self.registry = registry
        self._transport_factory = transport_factory or MediaTransport
        self.tolerance = tolerance

        # Per-track playback core
        self.current_track: Optional[Track] = None
        self.transport: Optional[MediaTransport] = None
        self.controller: Optional[LoopController] = None

        # Loop regions of the current track
        self.regions: List[LoopRegion] = []

        # Pending marks
        self.pending_start: Optional[float] = None
        self.pending_end: Optional[float] = None

        # Selection
        self.active_region: Optional[LoopRegion] = None
        self.looping_enabled: bool = False

        # Survive track switches
        self._volume = volume
        self._muted = False

        self._generation = 0
        # Serializes track switches
        self._switch_lock = threading.RLock()
        self._regions_thread: Optional[threading.Thread] = None

        # Thread safety - one RLock for all session state
        self.lock = threading.RLock()

        logger.info("LoopSession initialized")

    # =========================================================================
    # TRACK SELECTION
    # =========================================================================

    def select_track(self, track: Track) -> threading.Thread:
        """
        Make `track` the current track.

        Tears down the previous transport, clears marks, selection and the
        region list, binds a fresh transport to the track's stream and then
        loads the track's regions in the background.

        Returns:
            The region loader thread (join it, or call wait_for_regions())
        """
        logger.info(f"=== Selecting track: {track.original_name} ===")

        with self._switch_lock:
            with self.lock:
                self._generation += 1
                gen_id = self._generation
                old = self._detach_playback()
                self._reset_track_state()
                self.current_track = track

                transport = self._transport_factory(volume=self._volume, muted=self._muted)
                controller = LoopController(transport, tolerance=self.tolerance)
                # Forwarders go first so observers see a wrapped position last
                self._wire(transport, controller)
                controller.attach()
                self.transport = transport
                self.controller = controller

            # Outside the session lock: closing joins the old monitor thread,
            # which may be inside a session callback
            self._close_playback(old)

            self._emit('track_changed', track)
            self._emit_selection_update()
            self._emit('marks_changed', None, None)

            try:
                stream_uri = self.registry.stream_url_for(track.id)
            except NotFoundError as e:
                logger.error(f"No stream for track {track.id}: {e}")
                self._emit('error', e)
            else:
                transport.load(stream_uri)

        return self._load_regions_async(gen_id, track.id)

    def deselect_track(self) -> None:
        """Drop the current track and return to NoTrack."""
        with self._switch_lock:
            with self.lock:
                self._generation += 1
                had_track = self.current_track is not None
                old = self._detach_playback()
                self._reset_track_state()
                self.current_track = None
            self._close_playback(old)

        if had_track:
            logger.info("Track deselected")
        self._emit('track_changed', None)
        self._emit_selection_update()
        self._emit('marks_changed', None, None)

    def delete_track(self) -> bool:
        """
        Delete the current track from the registry (cascading to its regions)
        and return to NoTrack.

        Returns:
            The registry's result; False when no track is selected
        """
        with self.lock:
            track = self.current_track
        if track is None:
            return False

        deleted = self.registry.delete_track(track.id)
        if not deleted:
            logger.warning(f"Track {track.id} was already gone from the registry")
        self.deselect_track()
        return deleted

    def wait_for_regions(self, timeout: Optional[float] = None) -> None:
        """Block until the latest region load has finished."""
        thread = self._regions_thread
        if thread is not None:
            thread.join(timeout)

    def _reset_track_state(self) -> None:
        """Clear marks, selection and regions. Caller holds the lock."""
        self.pending_start = None
        self.pending_end = None
        self.regions = []
        self._set_selection(None, False)

    def _detach_playback(self) -> Optional[MediaTransport]:
        """
        Unhook the current transport and controller and hand back the
        transport for closing. Caller holds the lock.

        Once this returns the forwarders see a different current transport,
        so nothing the old pair does reaches session observers.
        """
        transport, controller = self.transport, self.controller
        if controller is not None:
            controller.detach()
            controller.clear()
        if transport is not None:
            self._volume = transport.volume
            self._muted = transport.muted
        self.transport = None
        self.controller = None
        return transport

    def _close_playback(self, transport: Optional[MediaTransport]) -> None:
        """Release a detached transport. Must be called without the session lock."""
        if transport is not None:
            transport.close()

    def _wire(self, transport: MediaTransport, controller: LoopController) -> None:
        """Forward transport/controller events, but only while `transport` is current."""

        def forward(event):
            def _forward(*args):
                if self.transport is transport:
                    self._emit(event, *args)
            return _forward

        for event in ('position_update', 'duration_change', 'state_change', 'ended', 'error'):
            transport.on(event, forward(event))

        def _on_volume(volume, muted):
            if self.transport is transport:
                self._volume, self._muted = volume, muted
                self._emit('volume_change', volume, muted)

        transport.on('volume_change', _on_volume)
        controller.on('loop_wrapped', forward('loop_wrapped'))

    # =========================================================================
    # REGION LOADING
    # =========================================================================

    def _load_regions_async(self, gen_id: int, track_id: str) -> threading.Thread:
        """Fetch the track's regions in a background thread."""

        def _worker():
            try:
                regions = self.registry.list_regions(track_id)
            except TikrError as e:
                logger.error(f"Could not load loops for {track_id}: {e}")
                if gen_id == self._generation:
                    self._emit('error', e)
                return

            try:
                self._apply_regions(gen_id, regions)
            except StaleOperationError as e:
                logger.debug(f"Discarding region load: {e}")

        thread = threading.Thread(target=_worker, daemon=True)
        self._regions_thread = thread
        thread.start()
        return thread

    def _apply_regions(self, gen_id: int, regions: List[LoopRegion]) -> None:
        with self.lock:
            if gen_id != self._generation:
                raise StaleOperationError(f"Region load {gen_id} superseded by {self._generation}")
            # Keep anything saved while the load was in flight
            loaded_ids = {r.id for r in regions}
            self.regions = list(regions) + [r for r in self.regions if r.id not in loaded_ids]
            count = len(self.regions)

        logger.info(f"Loaded {count} loops")
        self._emit_selection_update()

    # =========================================================================
    # MARKING AND SAVING
    # =========================================================================

    def mark_start(self) -> Optional[float]:
        """Capture the current position as the pending loop start."""
        with self.lock:
            if self.transport is None:
                return None
            self.pending_start = self.transport.get_position()
            marks = (self.pending_start, self.pending_end)

        logger.info(f"Marked loop start at {marks[0]:.3f}s")
        self._emit('marks_changed', *marks)
        return marks[0]

    def mark_end(self) -> Optional[float]:
        """Capture the current position as the pending loop end."""
        with self.lock:
            if self.transport is None:
                return None
            self.pending_end = self.transport.get_position()
            marks = (self.pending_start, self.pending_end)

        logger.info(f"Marked loop end at {marks[1]:.3f}s")
        self._emit('marks_changed', *marks)
        return marks[1]

    def clear_marks(self) -> None:
        with self.lock:
            self.pending_start = None
            self.pending_end = None
        self._emit('marks_changed', None, None)

    def save_loop(self, label: Optional[str] = None) -> LoopRegion:
        """
        Commit the pending marks as a new region, select it and start looping.

        Raises:
            ValidationError: no track, a missing mark, or end <= start.
                             Nothing reaches the registry in that case.
        """
        with self.lock:
            if self.current_track is None:
                raise ValidationError("No track selected")
            if self.pending_start is None or self.pending_end is None:
                raise ValidationError("Both loop start and loop end must be marked")
            if self.pending_end <= self.pending_start:
                raise ValidationError(
                    f"Loop end ({self.pending_end:.3f}s) must be after loop start ({self.pending_start:.3f}s)"
                )

            region = self.registry.create_region(
                self.current_track.id, self.pending_start, self.pending_end, label
            )
            self.regions.append(region)
            self._set_selection(region, True)
            self.pending_start = None
            self.pending_end = None

        logger.info(f"Saved loop {region}")
        self._emit_selection_update()
        self._emit('marks_changed', None, None)
        return region

    # =========================================================================
    # LOOP SELECTION
    # =========================================================================

    def select_region(self, region: LoopRegion) -> None:
        """Make `region` active, enable looping and jump to its start."""
        with self.lock:
            if self.transport is None:
                return
            if self.current_track is not None and region.track_id != self.current_track.id:
                raise ValidationError(f"Loop {region.id} belongs to another track")
            self._set_selection(region, True)
            transport = self.transport

        logger.info(f"Selected loop {region}")
        transport.seek(region.start)
        self._emit_selection_update()

    def select_region_at(self, index: int) -> Optional[LoopRegion]:
        """Select the region at `index` in the list (0-based), if any."""
        with self.lock:
            if not 0 <= index < len(self.regions):
                return None
            region = self.regions[index]
        self.select_region(region)
        return region

    def set_looping(self, enabled: bool) -> None:
        """Enable or disable boundary enforcement; the selection is kept."""
        with self.lock:
            self._set_selection(self.active_region, bool(enabled))
        logger.info(f"Looping {'enabled' if enabled else 'disabled'}")
        self._emit('looping_changed', bool(enabled))

    def toggle_looping(self) -> bool:
        with self.lock:
            enabled = not self.looping_enabled
        self.set_looping(enabled)
        return enabled

    def delete_region(self, region_id: str) -> bool:
        """
        Delete a region from the registry and the local list. Deleting the
        active region clears the selection and disables looping.

        Returns:
            The registry's result (False if the id was already gone)
        """
        deleted = self.registry.delete_region(region_id)
        if not deleted:
            logger.info(f"Loop {region_id} not found in registry")

        with self.lock:
            self.regions = [r for r in self.regions if r.id != region_id]
            if self.active_region is not None and self.active_region.id == region_id:
                self._set_selection(None, False)

        self._emit_selection_update()
        return deleted

    def _set_selection(self, region: Optional[LoopRegion], enabled: bool) -> None:
        """Update the selection and push it to the controller. Caller holds the lock."""
        self.active_region = region
        self.looping_enabled = enabled
        if self.controller is not None:
            self.controller.active_region = region
            self.controller.looping_enabled = enabled

    def _emit_selection_update(self) -> None:
        with self.lock:
            regions = list(self.regions)
            active = self.active_region
            enabled = self.looping_enabled
        self._emit('regions_changed', regions, active)
        self._emit('looping_changed', enabled)

    # =========================================================================
    # TRANSPORT CONTROLS
    # =========================================================================

    def toggle_play(self) -> None:
        if self.transport is not None:
            self.transport.toggle_play()

    def seek(self, position: float) -> None:
        if self.transport is not None:
            self.transport.seek(position)

    def nudge(self, amount: float) -> None:
        if self.transport is not None:
            self.transport.nudge(amount)

    def set_volume(self, volume: float) -> None:
        if self.transport is not None:
            self.transport.set_volume(volume)

    def adjust_volume(self, delta: float) -> None:
        if self.transport is not None:
            self.transport.adjust_volume(delta)

    def toggle_mute(self) -> None:
        if self.transport is not None:
            self.transport.toggle_mute()

    # =========================================================================
    # POSITION AND STATE QUERIES
    # =========================================================================

    @property
    def position(self) -> float:
        return self.transport.get_position() if self.transport is not None else 0.0

    @property
    def duration(self) -> float:
        return self.transport.duration if self.transport is not None else 0.0

    @property
    def state(self) -> PlaybackState:
        return self.transport.state if self.transport is not None else PlaybackState.UNBOUND

    @property
    def volume(self) -> float:
        return self.transport.volume if self.transport is not None else self._volume

    @property
    def muted(self) -> bool:
        return self.transport.muted if self.transport is not None else self._muted

    def snapshot(self) -> Dict[str, Any]:
        """Plain-dict view of the whole session, for observers and logging."""
        with self.lock:
            track = self.current_track
            return {
                'track': track.to_dict() if track else None,
                'state': self.state.name.lower(),
                'position': self.position,
                'duration': self.duration,
                'volume': self.volume,
                'muted': self.muted,
                'looping': self.looping_enabled,
                'activeLoop': self.active_region.to_dict() if self.active_region else None,
                'markStart': self.pending_start,
                'markEnd': self.pending_end,
                'loops': [r.to_dict() for r in self.regions],
            }

    # =========================================================================
    # CLEANUP
    # =========================================================================

    def close(self) -> None:
        """Release the transport and drop every observer."""
        self.deselect_track()
        self.clear()
        logger.info("LoopSession closed")
