"""Tests for track segment grouping and colors."""

from __future__ import annotations

from dataclasses import replace

from agritrack.core.models import ActivityType, StorageLocation, TrackPoint
from agritrack.tracking.segments import (
    MANURE_PALETTE,
    NO_SOURCE_COLOR,
    SLURRY_PALETTE,
    TILLAGE_COLOR,
    UNKNOWN_SOURCE_COLOR,
    TrackSegmentBuilder,
    build_track_segments,
    storage_color,
)


def _point(index: int, is_spreading: bool, storage_id: str | None = None) -> TrackPoint:
    return TrackPoint(47.0 + index * 1e-4, 14.0, index * 1000, 5.0, is_spreading, storage_id)


def test_fewer_than_two_points_give_no_segments() -> None:
    """A single point cannot be drawn as a line."""
    assert build_track_segments([], []) == []
    assert build_track_segments([_point(0, True)], []) == []


def test_segments_split_on_state_and_source_change() -> None:
    """Runs break when spreading flag or storage changes."""
    points = [
        _point(0, False, "pit-a"),
        _point(1, True, "pit-a"),
        _point(2, True, "pit-a"),
        _point(3, True, "pit-b"),
        _point(4, False, "pit-b"),
    ]
    segments = build_track_segments(points, [])
    assert [(s.is_spreading, s.storage_id) for s in segments] == [
        (False, "pit-a"),
        (True, "pit-a"),
        (True, "pit-b"),
        (False, "pit-b"),
    ]


def test_segments_are_continuous_and_cover_all_points() -> None:
    """Each segment starts where the previous one ended."""
    points = [_point(i, i % 3 == 0) for i in range(10)]
    segments = build_track_segments(points, [])
    for previous, current in zip(segments, segments[1:]):
        assert current.points[0] == previous.points[-1]
    covered = [segments[0].points[0]] + [p for s in segments for p in s.points[1:]]
    assert covered == points


def test_builder_matches_batch_result() -> None:
    """Incremental pushes give the same segments as a batch build."""
    points = [_point(i, i >= 2, "pit-a" if i >= 4 else None) for i in range(7)]
    builder = TrackSegmentBuilder([])
    for point in points:
        builder.push(point)
    assert builder.segments() == build_track_segments(points, [])


def test_storage_colors_are_stable_per_type(slurry_pit: StorageLocation, manure_pile: StorageLocation) -> None:
    """Colors index the type palette by sorted storage id."""
    second_pit = replace(slurry_pit, id="pit-0")
    storages = [slurry_pit, manure_pile, second_pit]
    assert storage_color("pit-0", storages) == SLURRY_PALETTE[0]
    assert storage_color("pit-a", storages) == SLURRY_PALETTE[1]
    assert storage_color("pile-a", storages) == MANURE_PALETTE[0]
    assert storage_color(None, storages) == NO_SOURCE_COLOR
    assert storage_color("gone", storages) == UNKNOWN_SOURCE_COLOR


def test_tillage_segments_use_fixed_color(slurry_pit: StorageLocation) -> None:
    """Tillage tracks ignore source colors."""
    points = [_point(0, True, "pit-a"), _point(1, False, "pit-a")]
    segments = build_track_segments(points, [slurry_pit], ActivityType.TILLAGE)
    assert {s.color for s in segments} == {TILLAGE_COLOR}
