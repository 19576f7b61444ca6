"""Activity records entered by hand, without GPS tracking."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Sequence

from agritrack.config import TrackingSettings
from agritrack.core.models import (
    ActivityKind,
    ActivityRecord,
    ActivityType,
    AmountUnit,
    Field,
    FertilizerType,
    HarvestType,
    TillageType,
)


def new_record_id() -> str:
    """Generate a fresh activity record id."""
    return uuid.uuid4().hex[:12]


def area_proportional_distribution(fields: Sequence[Field], amount: float) -> dict[str, float]:
    """Split ``amount`` across fields by area share, rounded to 0.1.

    Returns an empty mapping when the fields have no area.
    """
    total_area = sum(f.area_ha for f in fields)
    if total_area <= 0:
        return {}
    return {f.id: round(f.area_ha / total_area * amount, 1) for f in fields}


def build_fertilization_record(
    fields: Sequence[Field],
    fertilizer_type: FertilizerType,
    amount: float,
    unit: AmountUnit,
    settings: TrackingSettings,
    date: datetime,
    storage_id: str | None = None,
    notes: str = "",
) -> ActivityRecord:
    """Build a fertilization record from form inputs.

    Parameters
    ----------
    fields : Sequence[Field]
        Selected fields; the amount is split across them by area.
    fertilizer_type : FertilizerType
        Slurry or manure.
    amount : float
        Entered amount, either a load count or a volume.
    unit : AmountUnit
        ``LOADS`` to multiply by the configured load size, ``CUBIC_METERS``
        to take the amount as volume.
    settings : TrackingSettings
        Provides the load size.
    date : datetime
        Activity date.
    storage_id : str, optional
        Storage the whole volume was drawn from.
    notes : str, optional
        Free text.

    Returns
    -------
    ActivityRecord
        Record with volume amount in m³.

    Raises
    ------
    ValueError
        Raised for non-positive amounts, an empty field selection or an
        unsupported unit.
    """
    if amount <= 0:
        raise ValueError("amount must be > 0")
    if not fields:
        raise ValueError("at least one field must be selected")
    kind = ActivityKind.fertilization(fertilizer_type)
    load_size = kind.load_size(settings)
    if unit == AmountUnit.LOADS:
        total_volume = amount * load_size
        total_loads = int(round(amount))
    elif unit == AmountUnit.CUBIC_METERS:
        total_volume = amount
        total_loads = int(round(amount / load_size)) if load_size > 0 else 0
    else:
        raise ValueError(f"unsupported fertilization unit: {unit.value}")

    field_distribution = area_proportional_distribution(fields, total_volume)
    storage_distribution = {storage_id: total_volume} if storage_id else {}
    field_sources = {f.id: [storage_id] for f in fields} if storage_id else {}
    return ActivityRecord(
        id=new_record_id(),
        date=date,
        type=ActivityType.FERTILIZATION,
        field_ids=tuple(f.id for f in fields),
        amount=total_volume,
        unit=AmountUnit.CUBIC_METERS,
        load_count=total_loads,
        field_distribution=field_distribution,
        storage_distribution=storage_distribution,
        field_sources=field_sources,
        notes=notes,
        fertilizer_type=fertilizer_type,
    )


def build_tillage_record(
    fields: Sequence[Field],
    tillage_type: TillageType,
    date: datetime,
    notes: str = "",
) -> ActivityRecord:
    """Build a tillage record whose amount is the worked area in ha."""
    if not fields:
        raise ValueError("at least one field must be selected")
    total_area = round(sum(f.area_ha for f in fields), 2)
    return ActivityRecord(
        id=new_record_id(),
        date=date,
        type=ActivityType.TILLAGE,
        field_ids=tuple(f.id for f in fields),
        amount=total_area,
        unit=AmountUnit.HECTARES,
        field_distribution={f.id: f.area_ha for f in fields},
        notes=notes,
        tillage_type=tillage_type,
    )


def build_harvest_record(
    fields: Sequence[Field],
    harvest_type: HarvestType,
    pieces: float,
    date: datetime,
    notes: str = "",
) -> ActivityRecord:
    """Build a harvest record counted in bales / pieces."""
    if pieces <= 0:
        raise ValueError("amount must be > 0")
    if not fields:
        raise ValueError("at least one field must be selected")
    return ActivityRecord(
        id=new_record_id(),
        date=date,
        type=ActivityType.HARVEST,
        field_ids=tuple(f.id for f in fields),
        amount=pieces,
        unit=AmountUnit.PIECES,
        field_distribution=area_proportional_distribution(fields, pieces),
        notes=notes,
        harvest_type=harvest_type,
    )
