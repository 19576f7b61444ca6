"""Allocate session totals across fields and storages."""

from __future__ import annotations

import uuid
from collections import Counter
from datetime import UTC, datetime
from typing import Mapping, Sequence

from loguru import logger

from agritrack.core.models import (
    ActivityRecord,
    AmountUnit,
    Field,
    TrackPoint,
)
from agritrack.tracking.classifier import TrackingContext, find_containing_field
from agritrack.tracking.session import TrackingSession


def count_spreading_points(
    points: Sequence[TrackPoint],
    fields: Sequence[Field],
) -> tuple[Counter[str], Counter[tuple[str, str]], int]:
    """Count spreading points per field and per (field, storage).

    Parameters
    ----------
    points : Sequence[TrackPoint]
        Recorded track.
    fields : Sequence[Field]
        Session field snapshot.

    Returns
    -------
    tuple[Counter[str], Counter[tuple[str, str]], int]
        ``(per_field, per_field_and_storage, total_spreading)``. Points
        without a storage are only counted per field.
    """
    per_field: Counter[str] = Counter()
    per_source: Counter[tuple[str, str]] = Counter()
    total = 0
    for point in points:
        if not point.is_spreading:
            continue
        total += 1
        field = find_containing_field(point.position, fields)
        if field is None:
            continue
        per_field[field.id] += 1
        if point.storage_id is not None:
            per_source[(field.id, point.storage_id)] += 1
    return per_field, per_source, total


def compute_field_distribution(
    per_field: Mapping[str, int],
    total_spreading: int,
    total_amount: float,
) -> dict[str, float]:
    """Share ``total_amount`` by spreading point density, rounded to 0.1.

    Examples
    --------
    >>> compute_field_distribution({"a": 3, "b": 1}, 4, 10.0)
    {'a': 7.5, 'b': 2.5}
    """
    if total_spreading <= 0:
        return {}
    return {fid: round(count / total_spreading * total_amount, 1) for fid, count in per_field.items()}


def compute_detailed_field_sources(
    per_source: Mapping[tuple[str, str], int],
    total_spreading: int,
    total_amount: float,
) -> dict[str, dict[str, float]]:
    """Share ``total_amount`` per field and storage by point density."""
    if total_spreading <= 0:
        return {}
    detailed: dict[str, dict[str, float]] = {}
    for (fid, sid), count in per_source.items():
        detailed.setdefault(fid, {})[sid] = round(count / total_spreading * total_amount, 1)
    return detailed


def compute_storage_distribution(load_counts: Mapping[str, int], load_size: float) -> dict[str, float]:
    """Volume drawn per storage."""
    return {sid: count * load_size for sid, count in load_counts.items() if count > 0}


def estimate_field_distribution(record: ActivityRecord, fields: Sequence[Field]) -> dict[str, float]:
    """Return per-field amounts for display, filling gaps by area share.

    Explicit values from the record win. Fields of the record without a
    value get ``area / total_area * amount``. The record is not modified.

    Parameters
    ----------
    record : ActivityRecord
        Stored activity.
    fields : Sequence[Field]
        Current field list used to look up areas.

    Returns
    -------
    dict[str, float]
        Amount per field id for every field of the record that is known.
    """
    involved = [f for f in fields if f.id in record.field_ids]
    total_area = sum(f.area_ha for f in involved)
    estimate: dict[str, float] = {}
    for field in involved:
        explicit = record.field_distribution.get(field.id)
        if explicit is not None:
            estimate[field.id] = explicit
        elif total_area > 0 and record.amount:
            estimate[field.id] = round(field.area_ha / total_area * record.amount, 1)
    return estimate


def _duration_note(notes: str, start_ms: int, finished_ms: int) -> str:
    duration_min = max(0, round((finished_ms - start_ms) / 60000))
    return "\n".join(part for part in (notes.strip(), f"Dauer: {duration_min} min") if part)


def finalize_activity(
    session: TrackingSession,
    context: TrackingContext,
    finished_ms: int,
    notes: str = "",
    record_id: str | None = None,
) -> ActivityRecord:
    """Build the activity record of a finished session.

    Fertilization totals come from the load counter; all other activities
    total the area of the fields worked. Fields count as worked when at least
    one spreading point lies inside them.

    Parameters
    ----------
    session : TrackingSession
        Finished session.
    context : TrackingContext
        Snapshot the session was recorded with.
    finished_ms : int
        Epoch milliseconds of the finish.
    notes : str, optional
        User notes; the session duration is appended.
    record_id : str, optional
        Record id, generated when omitted.

    Returns
    -------
    ActivityRecord
        Complete record. ``field_distribution`` is empty when no spreading
        point fell inside a field.
    """
    activity = context.activity
    per_field, per_source, total_spreading = count_spreading_points(session.track_points, context.fields)
    touched = [f for f in context.fields if f.id in per_field]

    if activity.is_volumetric:
        load_size = activity.load_size(context.settings)
        total_loads = session.total_loads
        amount = total_loads * load_size
        unit = AmountUnit.CUBIC_METERS
        load_count: int | None = total_loads
        field_distribution = compute_field_distribution(per_field, total_spreading, amount)
        detailed = compute_detailed_field_sources(per_source, total_spreading, amount)
        storage_distribution = compute_storage_distribution(session.load_counts, load_size)
    else:
        amount = round(sum(f.area_ha for f in touched), 2)
        unit = AmountUnit.HECTARES
        load_count = None
        field_distribution = {f.id: f.area_ha for f in touched}
        detailed = {}
        storage_distribution = {}

    if not field_distribution:
        logger.warning("No field detected for spreading points; amount stays unattributed")

    record = ActivityRecord(
        id=record_id or uuid.uuid4().hex[:12],
        date=datetime.fromtimestamp(finished_ms / 1000.0, tz=UTC),
        type=activity.type,
        field_ids=tuple(f.id for f in touched),
        amount=amount,
        unit=unit,
        load_count=load_count,
        track_points=session.track_points,
        field_distribution=field_distribution,
        storage_distribution=storage_distribution,
        field_sources={fid: sorted(sources) for fid, sources in detailed.items()},
        detailed_field_sources=detailed,
        notes=_duration_note(notes, session.start_time_ms, finished_ms),
        fertilizer_type=activity.fertilizer_type,
        tillage_type=activity.tillage_type,
        harvest_type=activity.harvest_type,
    )
    logger.info(
        f"Finalized {activity.type.value}: {amount} {unit.value} on {len(touched)} field(s), "
        f"{len(session.track_points)} track points"
    )
    return record
