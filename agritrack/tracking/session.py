"""Tracking session state and per-fix transition logic.

A ``TrackingSession`` is immutable. Every incoming fix produces a new session
through :func:`advance_session`; live GPS and simulated drag fixes share this
single entry point.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Mapping

from loguru import logger

from agritrack.config import TrackingSettings
from agritrack.core.geometry import distance_meters
from agritrack.core.models import (
    FixSource,
    GeoPoint,
    LocationFix,
    StorageLocation,
    TrackingState,
    TrackPoint,
)
from agritrack.tracking.classifier import FixReading, TrackingContext, classify_fix, speed_kmh


@dataclass(frozen=True, slots=True)
class TrackingSession:
    """In-memory state of one recording.

    Attributes
    ----------
    state : TrackingState
        Current tracking state.
    start_time_ms : int
        Epoch milliseconds when recording started.
    track_points : tuple[TrackPoint, ...]
        Recorded, thinned path.
    load_counts : Mapping[str, int]
        Number of loads per storage id.
    active_source_id : str | None
        Storage of the current load.
    load_index : int
        Running load counter, incremented on every load.
    is_paused : bool
        Paused sessions only follow the displayed position.
    is_test_mode : bool
        Accepts every fix regardless of accuracy.
    current_position : GeoPoint | None
        Last known position for display.
    last_fix : LocationFix | None
        Last accepted fix, used to derive missing speed.
    current_speed_kmh : float
        Speed of the last accepted fix.
    storage_warning : str | None
        Advisory text for a wrong-type storage, if any.
    pending_storage_id, pending_since_ms : str | None, int | None
        Storage the vehicle is dwelling at and when the dwell started.
    """

    state: TrackingState
    start_time_ms: int
    track_points: tuple[TrackPoint, ...] = ()
    load_counts: Mapping[str, int] = field(default_factory=dict)
    active_source_id: str | None = None
    load_index: int = 0
    is_paused: bool = False
    is_test_mode: bool = False
    current_position: GeoPoint | None = None
    last_fix: LocationFix | None = None
    current_speed_kmh: float = 0.0
    storage_warning: str | None = None
    pending_storage_id: str | None = None
    pending_since_ms: int | None = None

    @property
    def total_loads(self) -> int:
        return sum(self.load_counts.values())


def start_session(now_ms: int, test_mode: bool = False, position: GeoPoint | None = None) -> TrackingSession:
    """Create a fresh session in ``TRANSIT`` state."""
    return TrackingSession(
        state=TrackingState.TRANSIT,
        start_time_ms=now_ms,
        is_test_mode=test_mode,
        current_position=position,
    )


def pause_session(session: TrackingSession) -> TrackingSession:
    return replace(session, is_paused=True)


def resume_session(session: TrackingSession) -> TrackingSession:
    return replace(session, is_paused=False)


def set_test_mode(session: TrackingSession, enabled: bool) -> TrackingSession:
    return replace(session, is_test_mode=enabled)


def thinning_threshold_m(session: TrackingSession, settings: TrackingSettings) -> float:
    """Minimum distance between recorded points for this session."""
    if session.is_test_mode:
        return settings.simulated_thinning_m
    return settings.live_thinning_m


def append_if_moved(
    points: tuple[TrackPoint, ...],
    point: TrackPoint,
    threshold_m: float,
) -> tuple[TrackPoint, ...]:
    """Append ``point`` only when it is farther than ``threshold_m`` from the last one.

    Parameters
    ----------
    points : tuple[TrackPoint, ...]
        Recorded path.
    point : TrackPoint
        Candidate point.
    threshold_m : float
        Thinning distance in meters.

    Returns
    -------
    tuple[TrackPoint, ...]
        The extended path, or ``points`` itself when the candidate is too
        close to the last recorded point.
    """
    if points and distance_meters(points[-1].position, point.position) <= threshold_m:
        return points
    return points + (point,)


def _accepts_fix(session: TrackingSession, fix: LocationFix, settings: TrackingSettings) -> bool:
    if session.is_test_mode or fix.source == FixSource.SIMULATED:
        return True
    return fix.accuracy_m <= settings.accuracy_tolerance_m


def _wrong_type_warning(storage: StorageLocation) -> str:
    return f"{storage.name} erkannt, aber falscher Typ!"


def _apply_storage_rules(
    session: TrackingSession,
    reading: FixReading,
    fix: LocationFix,
    context: TrackingContext,
) -> TrackingSession:
    """Register loads and leave ``LOADING`` based on storage proximity."""
    settings = context.settings
    nearest = reading.nearest_storage
    at_storage = (
        context.activity.is_volumetric
        and nearest is not None
        and reading.in_storage_radius
        and reading.speed_kmh < settings.loading_speed_kmh
    )
    if not at_storage:
        session = replace(session, storage_warning=None, pending_storage_id=None, pending_since_ms=None)
        # Moving under the filling arm keeps LOADING; only leaving the radius ends it.
        left_storage = not reading.in_storage_radius and reading.speed_kmh > settings.moving_speed_kmh
        if session.state == TrackingState.LOADING and left_storage:
            session = replace(session, state=TrackingState.TRANSIT)
        return session

    storage = nearest.storage
    if not reading.storage_type_matches:
        warning = _wrong_type_warning(storage)
        if session.storage_warning != warning:
            logger.warning(f"Storage type mismatch at {storage.name} ({storage.type.value})")
        return replace(session, storage_warning=warning, pending_storage_id=None, pending_since_ms=None)

    session = replace(session, storage_warning=None)
    if session.active_source_id == storage.id and session.state == TrackingState.LOADING:
        return session

    if session.pending_storage_id != storage.id or session.pending_since_ms is None:
        session = replace(session, pending_storage_id=storage.id, pending_since_ms=fix.timestamp_ms)
    dwell_ms = fix.timestamp_ms - session.pending_since_ms
    if dwell_ms < settings.storage_dwell_seconds * 1000.0:
        return session

    load_counts = dict(session.load_counts)
    load_counts[storage.id] = load_counts.get(storage.id, 0) + 1
    logger.info(f"Load {session.load_index + 1} registered at {storage.name}")
    return replace(
        session,
        state=TrackingState.LOADING,
        load_counts=load_counts,
        active_source_id=storage.id,
        load_index=session.load_index + 1,
        pending_storage_id=None,
        pending_since_ms=None,
    )


def _next_state(session: TrackingSession, reading: FixReading) -> TrackingState:
    if reading.is_spreading:
        return TrackingState.SPREADING
    if session.state == TrackingState.LOADING:
        return TrackingState.LOADING
    return TrackingState.TRANSIT


def advance_session(session: TrackingSession, fix: LocationFix, context: TrackingContext) -> TrackingSession:
    """Apply one location fix to a session.

    Order of evaluation: pause, accuracy filter, speed resolution, storage
    rules (loading / leaving), field and speed-window rule, then recording
    of the thinned track point.

    Parameters
    ----------
    session : TrackingSession
        Current session.
    fix : LocationFix
        Incoming fix, live or simulated.
    context : TrackingContext
        Snapshot of fields, storages, settings and activity.

    Returns
    -------
    TrackingSession
        Updated session. Returns ``session`` unchanged when the fix is
        rejected for low accuracy.
    """
    if session.is_paused:
        return replace(session, current_position=fix.position)

    settings = context.settings
    if not _accepts_fix(session, fix, settings):
        logger.debug(f"Dropping fix with accuracy {fix.accuracy_m:.0f} m")
        return session

    speed = speed_kmh(fix, session.last_fix, fallback_kmh=session.current_speed_kmh)
    reading = classify_fix(fix.position, speed, context)

    session = _apply_storage_rules(session, reading, fix, context)
    new_state = _next_state(session, reading)
    if new_state != session.state:
        logger.debug(f"Tracking state {session.state.value} -> {new_state.value}")

    point = TrackPoint(
        lat=fix.lat,
        lng=fix.lng,
        timestamp=fix.timestamp_ms,
        speed=speed,
        is_spreading=reading.is_spreading,
        storage_id=session.active_source_id,
        load_index=session.load_index,
    )
    return replace(
        session,
        state=new_state,
        track_points=append_if_moved(session.track_points, point, thinning_threshold_m(session, settings)),
        current_position=fix.position,
        last_fix=fix,
        current_speed_kmh=speed,
    )
