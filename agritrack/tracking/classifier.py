"""Stateless proximity and speed classification of location fixes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from agritrack.config import DEFAULT_SETTINGS, TrackingSettings
from agritrack.core.geometry import distance_meters, point_in_polygon, polygon_area_ha
from agritrack.core.models import (
    ActivityKind,
    Field,
    GeoPoint,
    LocationFix,
    StorageLocation,
)


@dataclass(frozen=True, slots=True)
class TrackingContext:
    """Read-only snapshot taken when a session starts.

    Changing a field or storage after the snapshot does not affect points
    that were already classified.
    """

    activity: ActivityKind
    fields: tuple[Field, ...] = ()
    storages: tuple[StorageLocation, ...] = ()
    settings: TrackingSettings = DEFAULT_SETTINGS


@dataclass(frozen=True, slots=True)
class StorageProximity:
    """Nearest storage and its distance in meters."""

    storage: StorageLocation
    distance_m: float


@dataclass(frozen=True, slots=True)
class FixReading:
    """Semantic reading of one position.

    Attributes
    ----------
    position : GeoPoint
        Classified position.
    speed_kmh : float
        Speed used for the reading.
    field : Field | None
        Field containing the position, if any.
    nearest_storage : StorageProximity | None
        Nearest storage, if any storage is defined.
    in_storage_radius : bool
        Whether the nearest storage is within the radius.
    storage_type_matches : bool
        Whether the nearest storage type fits the activity. ``False`` when no
        storage is defined.
    in_spreading_window : bool
        Whether the speed lies in ``[min, max]``.
    """

    position: GeoPoint
    speed_kmh: float
    field: Field | None
    nearest_storage: StorageProximity | None
    in_storage_radius: bool
    storage_type_matches: bool
    in_spreading_window: bool

    @property
    def is_spreading(self) -> bool:
        return self.field is not None and self.in_spreading_window


def find_containing_field(point: GeoPoint, fields: Sequence[Field]) -> Field | None:
    """Return the field whose boundary contains ``point``.

    When boundaries overlap, the smallest field wins so that a small parcel
    drawn inside a larger one is still detectable. Equal areas keep the
    iteration order.

    Parameters
    ----------
    point : GeoPoint
        Position to locate.
    fields : Sequence[Field]
        Candidate fields. Fields with degenerate boundaries never match.

    Returns
    -------
    Field | None
        Matching field or ``None``.
    """
    best: Field | None = None
    best_area = 0.0
    for candidate in fields:
        if not point_in_polygon(point, candidate.boundary):
            continue
        area = polygon_area_ha(candidate.boundary)
        if best is None or area < best_area:
            best = candidate
            best_area = area
    return best


def find_nearest_storage(point: GeoPoint, storages: Sequence[StorageLocation]) -> StorageProximity | None:
    """Return the storage closest to ``point``, or ``None`` when there is none."""
    nearest: StorageProximity | None = None
    for storage in storages:
        dist = distance_meters(point, storage.geo)
        if nearest is None or dist < nearest.distance_m:
            nearest = StorageProximity(storage=storage, distance_m=dist)
    return nearest


def storage_matches_activity(storage: StorageLocation, activity: ActivityKind) -> bool:
    """Check whether a storage holds the fertilizer the activity spreads."""
    if activity.fertilizer_type is None:
        return True
    return storage.type == activity.fertilizer_type


def speed_kmh(fix: LocationFix, previous: LocationFix | None, fallback_kmh: float = 0.0) -> float:
    """Resolve fix speed in km/h.

    Reported speed wins. Without it the speed is derived from the distance
    and elapsed time to ``previous``; when that is impossible (first fix,
    equal or reversed timestamps) ``fallback_kmh`` is returned.

    Examples
    --------
    >>> speed_kmh(LocationFix(0.0, 0.0, 5.0, 0, speed_mps=2.0), None)
    7.2
    """
    if fix.speed_mps is not None and fix.speed_mps >= 0:
        return fix.speed_mps * 3.6
    if previous is None:
        return fallback_kmh
    elapsed_s = (fix.timestamp_ms - previous.timestamp_ms) / 1000.0
    if elapsed_s <= 0:
        return fallback_kmh
    return distance_meters(previous.position, fix.position) / elapsed_s * 3.6


def classify_fix(point: GeoPoint, speed: float, context: TrackingContext) -> FixReading:
    """Classify one position against the session context.

    Parameters
    ----------
    point : GeoPoint
        Current position.
    speed : float
        Current speed in km/h.
    context : TrackingContext
        Fields, storages, settings and activity of the session.

    Returns
    -------
    FixReading
        Field, storage and speed-window reading.
    """
    settings = context.settings
    nearest = find_nearest_storage(point, context.storages)
    in_radius = nearest is not None and nearest.distance_m <= settings.storage_radius
    type_matches = nearest is not None and storage_matches_activity(nearest.storage, context.activity)
    return FixReading(
        position=point,
        speed_kmh=speed,
        field=find_containing_field(point, context.fields),
        nearest_storage=nearest,
        in_storage_radius=in_radius,
        storage_type_matches=type_matches,
        in_spreading_window=settings.min_speed <= speed <= settings.max_speed,
    )
