"""Tests for the tracking state machine and path thinning."""

from __future__ import annotations

from dataclasses import replace

import pytest

from agritrack.config import TrackingSettings
from agritrack.core.models import (
    ActivityKind,
    FertilizerType,
    Field,
    FixSource,
    GeoPoint,
    LocationFix,
    StorageLocation,
    TrackingState,
    TrackPoint,
)
from agritrack.tracking.classifier import TrackingContext
from agritrack.tracking.session import (
    advance_session,
    append_if_moved,
    pause_session,
    resume_session,
    set_test_mode,
    start_session,
)
from conftest import at


def _fix(point: GeoPoint, timestamp_ms: int, speed_kmh: float, accuracy_m: float = 5.0) -> LocationFix:
    return LocationFix(
        lat=point.lat,
        lng=point.lng,
        accuracy_m=accuracy_m,
        timestamp_ms=timestamp_ms,
        speed_mps=speed_kmh / 3.6,
    )


def _slurry_context(meadow: Field, *storages: StorageLocation, **settings) -> TrackingContext:
    return TrackingContext(
        activity=ActivityKind.fertilization(FertilizerType.SLURRY),
        fields=(meadow,),
        storages=storages,
        settings=TrackingSettings(**settings),
    )


def _load_and_spread_fixes() -> list[LocationFix]:
    loading = [_fix(at(-45, 100), 1000 * i, 0.0) for i in range(3)]
    spreading = [_fix(at(50 + 10 * i, 100), 10_000 + 6000 * i, 6.0) for i in range(5)]
    return loading + spreading


def _run(session, fixes, context):
    for fix in fixes:
        session = advance_session(session, fix, context)
    return session


def test_append_if_moved_is_idempotent() -> None:
    """Appending the same point twice keeps one copy."""
    point = TrackPoint(47.0, 14.0, 0, 5.0, True)
    once = append_if_moved((), point, 0.5)
    twice = append_if_moved(once, point, 0.5)
    assert once == (point,)
    assert twice is once


def test_append_if_moved_respects_threshold() -> None:
    """Points within the threshold are dropped, farther ones kept."""
    first = TrackPoint(at(0, 0).lat, at(0, 0).lng, 0, 5.0, True)
    near = TrackPoint(at(0.3, 0).lat, at(0.3, 0).lng, 1, 5.0, True)
    far = TrackPoint(at(1.0, 0).lat, at(1.0, 0).lng, 2, 5.0, True)
    points = append_if_moved((first,), near, 0.5)
    assert points == (first,)
    assert append_if_moved(points, far, 0.5) == (first, far)


def test_start_session_is_transit() -> None:
    """New sessions start in TRANSIT without loads."""
    session = start_session(1000, test_mode=True)
    assert session.state == TrackingState.TRANSIT
    assert session.is_test_mode
    assert session.total_loads == 0
    assert session.track_points == ()


def test_loading_then_spreading_scenario(meadow: Field, slurry_pit: StorageLocation) -> None:
    """Dwelling at the pit registers one load; driving in the field spreads."""
    context = _slurry_context(meadow, slurry_pit)
    session = start_session(0)
    fixes = _load_and_spread_fixes()

    session = _run(session, fixes[:3], context)
    assert session.state == TrackingState.LOADING
    assert session.load_counts == {"pit-a": 1}
    assert session.active_source_id == "pit-a"
    assert len(session.track_points) == 1

    session = _run(session, fixes[3:], context)
    assert session.state == TrackingState.SPREADING
    assert session.load_counts == {"pit-a": 1}
    spreading = [p for p in session.track_points if p.is_spreading]
    assert len(spreading) == 5
    assert all(p.storage_id == "pit-a" and p.load_index == 1 for p in spreading)


def test_returning_to_pit_registers_second_load(meadow: Field, slurry_pit: StorageLocation) -> None:
    """A new stop at the pit after leaving counts again."""
    context = _slurry_context(meadow, slurry_pit)
    session = _run(start_session(0), _load_and_spread_fixes(), context)
    back = [_fix(at(-45, 100), 60_000, 0.0), _fix(at(-46, 100), 61_000, 0.0)]
    session = _run(session, back, context)
    assert session.load_counts == {"pit-a": 2}
    assert session.load_index == 2
    assert session.total_loads == 2


def test_session_is_deterministic(meadow: Field, slurry_pit: StorageLocation) -> None:
    """Same context and fixes give identical sessions."""
    context = _slurry_context(meadow, slurry_pit)
    fixes = _load_and_spread_fixes()
    assert _run(start_session(0), fixes, context) == _run(start_session(0), fixes, context)


def test_low_accuracy_fix_is_dropped_in_live_mode(meadow: Field, slurry_pit: StorageLocation) -> None:
    """Fixes worse than the tolerance do not change the session."""
    context = _slurry_context(meadow, slurry_pit)
    session = advance_session(start_session(0), _fix(at(50, 100), 0, 6.0), context)
    bad = _fix(at(60, 100), 1000, 6.0, accuracy_m=80.0)
    assert advance_session(session, bad, context) is session


def test_low_accuracy_fix_is_accepted_in_test_mode(meadow: Field, slurry_pit: StorageLocation) -> None:
    """Test mode bypasses the accuracy filter."""
    context = _slurry_context(meadow, slurry_pit)
    session = advance_session(start_session(0, test_mode=True), _fix(at(50, 100), 0, 6.0), context)
    updated = advance_session(session, _fix(at(60, 100), 1000, 6.0, accuracy_m=80.0), context)
    assert len(updated.track_points) == 2


def test_simulated_fix_bypasses_accuracy(meadow: Field) -> None:
    """Simulated fixes are trusted regardless of accuracy."""
    context = _slurry_context(meadow)
    fix = replace(_fix(at(50, 100), 0, 6.0, accuracy_m=500.0), source=FixSource.SIMULATED)
    assert len(advance_session(start_session(0), fix, context).track_points) == 1


def test_paused_session_only_follows_position(meadow: Field, slurry_pit: StorageLocation) -> None:
    """While paused no point is recorded; resume continues recording."""
    context = _slurry_context(meadow, slurry_pit)
    session = pause_session(start_session(0))
    session = advance_session(session, _fix(at(50, 100), 0, 6.0), context)
    assert session.track_points == ()
    assert session.current_position == at(50, 100)
    session = advance_session(resume_session(session), _fix(at(60, 100), 1000, 6.0), context)
    assert len(session.track_points) == 1


def test_wrong_storage_type_warns_without_load(meadow: Field, manure_pile: StorageLocation) -> None:
    """Stopping at a manure pile during slurry work only warns."""
    context = _slurry_context(meadow, manure_pile)
    session = advance_session(start_session(0), _fix(at(-45, 400), 0, 0.0), context)
    assert session.storage_warning == "Misthaufen erkannt, aber falscher Typ!"
    assert session.load_counts == {}
    assert session.state == TrackingState.TRANSIT

    session = advance_session(session, _fix(at(50, 100), 1000, 6.0), context)
    assert session.storage_warning is None


def test_dwell_time_delays_load(meadow: Field, slurry_pit: StorageLocation) -> None:
    """With a dwell time, the load registers only after staying long enough."""
    context = _slurry_context(meadow, slurry_pit, storage_dwell_seconds=10.0)
    session = start_session(0)
    session = _run(session, [_fix(at(-45, 100), 0, 0.0), _fix(at(-45, 101), 5000, 0.0)], context)
    assert session.load_counts == {}
    session = advance_session(session, _fix(at(-45, 102), 12_000, 0.0), context)
    assert session.load_counts == {"pit-a": 1}
    assert session.state == TrackingState.LOADING


def test_thinning_threshold_depends_on_mode(meadow: Field) -> None:
    """Test mode records denser tracks than live GPS."""
    context = _slurry_context(meadow)
    fixes = [_fix(at(50 + 0.3 * i, 100), 1000 * i, 6.0) for i in range(4)]
    live = _run(start_session(0), fixes, context)
    simulated = _run(set_test_mode(start_session(0), True), fixes, context)
    assert len(live.track_points) == 2
    assert len(simulated.track_points) == 4


def test_repositioning_at_pit_keeps_single_load(meadow: Field, slurry_pit: StorageLocation) -> None:
    """Moving under the filling arm stays LOADING and does not count again."""
    context = _slurry_context(meadow, slurry_pit)
    session = advance_session(start_session(0), _fix(at(-45, 100), 0, 0.0), context)
    assert session.state == TrackingState.LOADING

    session = advance_session(session, _fix(at(-47, 100), 1000, 5.0), context)
    assert session.state == TrackingState.LOADING

    session = advance_session(session, _fix(at(-48, 100), 2000, 0.0), context)
    assert session.state == TrackingState.LOADING
    assert session.load_counts == {"pit-a": 1}
    assert session.load_index == 1


def test_loading_ends_only_when_fast_outside_radius(meadow: Field, slurry_pit: StorageLocation) -> None:
    """Slow driving outside fields keeps LOADING; leaving fast switches to TRANSIT."""
    context = _slurry_context(meadow, slurry_pit)
    session = advance_session(start_session(0), _fix(at(-45, 100), 0, 0.0), context)
    assert session.state == TrackingState.LOADING

    session = advance_session(session, _fix(at(-80, 100), 10_000, 3.0), context)
    assert session.state == TrackingState.LOADING

    session = advance_session(session, _fix(at(-100, 100), 14_000, 6.0), context)
    assert session.state == TrackingState.TRANSIT
    assert session.active_source_id == "pit-a"
    assert session.load_counts == {"pit-a": 1}


def test_loading_switches_to_spreading_inside_field(meadow: Field, slurry_pit: StorageLocation) -> None:
    """Entering a field in the speed window spreads straight from LOADING."""
    context = _slurry_context(meadow, slurry_pit)
    session = advance_session(start_session(0), _fix(at(-45, 100), 0, 0.0), context)
    session = advance_session(session, _fix(at(20, 100), 30_000, 5.0), context)
    assert session.state == TrackingState.SPREADING
    assert session.track_points[-1].is_spreading
