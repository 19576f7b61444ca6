"""Session control surface driving the tracking state machine."""

from __future__ import annotations

import time
from typing import Any, Callable

from loguru import logger

from agritrack.core.models import (
    ActivityKind,
    ActivityRecord,
    GeoPoint,
    LocationFix,
    TrackingState,
    TrackPoint,
)
from agritrack.tracking.attribution import finalize_activity
from agritrack.tracking.classifier import TrackingContext
from agritrack.tracking.segments import TrackSegment, build_track_segments
from agritrack.tracking.session import (
    TrackingSession,
    advance_session,
    pause_session,
    resume_session,
    set_test_mode,
    start_session,
)
from agritrack.tracking.simulation import DragSimulator


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class FieldActivityTracker:
    """Record one field activity at a time from a stream of location fixes.

    Parameters
    ----------
    data_source : Any
        Farm data reader exposing ``get_fields()``, ``get_storage_locations()``
        and ``get_settings()``. Read once per session at ``start``.
    repository : Any
        Output writer exposing ``save_activity(record)`` and
        ``update_storage_levels(distribution)``.
    location_stream : Any, optional
        Live GPS source exposing ``subscribe(on_fix)`` that returns an
        unsubscribe callable. Without it only simulated fixes and
        ``handle_fix`` feed the tracker.
    clock : Callable[[], int], optional
        Returns epoch milliseconds; wall clock by default.
    """

    def __init__(
        self,
        data_source: Any,
        repository: Any,
        location_stream: Any = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._data_source = data_source
        self._repository = repository
        self._location_stream = location_stream
        self._clock = clock or _wall_clock_ms
        self._session: TrackingSession | None = None
        self._context: TrackingContext | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._simulator = DragSimulator()

    @property
    def session(self) -> TrackingSession | None:
        return self._session

    @property
    def context(self) -> TrackingContext | None:
        return self._context

    @property
    def is_active(self) -> bool:
        return self._session is not None

    @property
    def state(self) -> TrackingState:
        if self._session is None:
            return TrackingState.IDLE
        return self._session.state

    @property
    def track_points(self) -> tuple[TrackPoint, ...]:
        if self._session is None:
            return ()
        return self._session.track_points

    @property
    def load_counts(self) -> dict[str, int]:
        if self._session is None:
            return {}
        return dict(self._session.load_counts)

    @property
    def storage_warning(self) -> str | None:
        if self._session is None:
            return None
        return self._session.storage_warning

    @property
    def current_position(self) -> GeoPoint | None:
        if self._session is None:
            return None
        return self._session.current_position

    def start(
        self,
        activity: ActivityKind,
        test_mode: bool = False,
        position: GeoPoint | None = None,
    ) -> TrackingSession:
        """Snapshot farm data and start a new session in ``TRANSIT``.

        Raises
        ------
        RuntimeError
            Raised when a session is already running.
        """
        if self._session is not None:
            raise RuntimeError("a tracking session is already running")
        settings = self._data_source.get_settings()
        self._context = TrackingContext(
            activity=activity,
            fields=tuple(self._data_source.get_fields()),
            storages=tuple(self._data_source.get_storage_locations()),
            settings=settings,
        )
        if not self._context.fields:
            logger.warning("No fields loaded; spreading cannot be detected")
        if activity.is_volumetric and not self._context.storages:
            logger.warning("No storages defined; loads cannot be detected")

        now_ms = self._clock()
        self._session = start_session(now_ms, test_mode=test_mode, position=position)
        self._simulator = DragSimulator(settings.simulation_interval_ms)
        self._simulator.anchor(position, now_ms)
        if self._location_stream is not None:
            self._unsubscribe = self._location_stream.subscribe(self._on_live_fix)
        logger.info(f"Tracking started: {activity.type.value} (test mode: {test_mode})")
        return self._session

    def pause(self) -> None:
        self._session = pause_session(self._require_session())
        logger.info("Tracking paused")

    def resume(self) -> None:
        self._session = resume_session(self._require_session())
        logger.info("Tracking resumed")

    def set_test_mode(self, enabled: bool) -> None:
        """Switch between live GPS and drag simulation.

        While test mode is on, live fixes are ignored and the simulator is
        anchored at the current position.
        """
        session = self._require_session()
        self._session = set_test_mode(session, enabled)
        if enabled:
            self._simulator.anchor(session.current_position, self._clock())
        logger.info(f"Test mode {'enabled' if enabled else 'disabled'}")

    def handle_fix(self, fix: LocationFix) -> TrackingSession:
        """Process one fix; the single entry point for live and simulated input."""
        session = self._require_session()
        self._session = advance_session(session, fix, self._context)
        return self._session

    def simulate_move(self, lat: float, lng: float) -> bool:
        """Feed a dragged map position as a simulated fix.

        Returns
        -------
        bool
            ``True`` when a fix was processed, ``False`` when test mode is
            off or the event was throttled.
        """
        session = self._require_session()
        if not session.is_test_mode:
            logger.debug("Ignoring simulated move outside test mode")
            return False
        fix = self._simulator.on_drag(lat, lng, self._clock())
        if fix is None:
            return False
        self.handle_fix(fix)
        return True

    def segments(self) -> list[TrackSegment]:
        """Segments of the current recording for live display."""
        if self._session is None or self._context is None:
            return []
        return build_track_segments(
            self._session.track_points,
            self._context.storages,
            self._context.activity.type,
        )

    def finish(self, notes: str = "") -> ActivityRecord:
        """Stop tracking, attribute amounts and hand the record to the repository.

        Returns
        -------
        ActivityRecord
            The saved record.

        Raises
        ------
        RuntimeError
            Raised when no session is running.
        """
        session = self._require_session()
        self._stop_stream()
        record = finalize_activity(session, self._context, self._clock(), notes=notes)
        self._repository.save_activity(record)
        if record.storage_distribution:
            self._repository.update_storage_levels(dict(record.storage_distribution))
        self._session = None
        self._context = None
        return record

    def discard(self) -> None:
        """Stop tracking and drop all recorded data without saving."""
        self._stop_stream()
        if self._session is not None:
            logger.info(f"Tracking discarded ({len(self._session.track_points)} points dropped)")
        self._session = None
        self._context = None

    def _on_live_fix(self, fix: LocationFix) -> None:
        if self._session is None or self._session.is_test_mode:
            return
        self.handle_fix(fix)

    def _stop_stream(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _require_session(self) -> TrackingSession:
        if self._session is None:
            raise RuntimeError("no tracking session is running")
        return self._session
