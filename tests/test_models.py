"""Tests for activity variants and records."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from agritrack.config import TrackingSettings
from agritrack.core.models import (
    ActivityKind,
    ActivityRecord,
    ActivityType,
    AmountUnit,
    FertilizerType,
    HarvestType,
    TillageType,
)


def test_named_constructors_carry_matching_subtype() -> None:
    """Each constructor fills exactly the sub-type of its category."""
    slurry = ActivityKind.fertilization(FertilizerType.SLURRY)
    harrow = ActivityKind.tillage(TillageType.HARROW)
    hay = ActivityKind.harvest(HarvestType.HAY)
    assert slurry.type == ActivityType.FERTILIZATION and slurry.is_volumetric
    assert harrow.tillage_type == TillageType.HARROW and not harrow.is_volumetric
    assert hay.harvest_type == HarvestType.HAY
    assert ActivityKind.generic(ActivityType.SOWING).fertilizer_type is None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"type": ActivityType.FERTILIZATION},
        {"type": ActivityType.TILLAGE, "fertilizer_type": FertilizerType.SLURRY},
        {"type": ActivityType.HARVEST, "tillage_type": TillageType.PLOW},
        {"type": ActivityType.TILLAGE, "harvest_type": HarvestType.SILAGE},
    ],
)
def test_inconsistent_activity_kind_raises(kwargs: dict) -> None:
    """Sub-types that do not belong to the category are rejected."""
    with pytest.raises(ValueError):
        ActivityKind(**kwargs)


def test_load_size_and_spread_width_follow_settings() -> None:
    """Load size and working width depend on the fertilizer type."""
    settings = TrackingSettings(slurry_load_size=12.0, manure_load_size=6.0, spread_width=9.0)
    assert ActivityKind.fertilization(FertilizerType.SLURRY).load_size(settings) == 12.0
    assert ActivityKind.fertilization(FertilizerType.MANURE).load_size(settings) == 6.0
    assert ActivityKind.tillage(TillageType.HARROW).load_size(settings) == 0.0
    assert ActivityKind.fertilization(FertilizerType.MANURE).spread_width(settings) == 10.0
    assert ActivityKind.tillage(TillageType.HARROW).spread_width(settings) == 9.0


def test_enum_values_are_display_labels() -> None:
    """Enum values double as stored labels."""
    assert FertilizerType.SLURRY.value == "Gülle"
    assert ActivityType.TILLAGE.value == "Bodenbearbeitung"
    assert AmountUnit.CUBIC_METERS.value == "m³"


def test_record_year_and_attribution_flag() -> None:
    """Year comes from the date; empty distribution means unattributed."""
    record = ActivityRecord(
        id="r1",
        date=datetime(2024, 4, 2, tzinfo=UTC),
        type=ActivityType.FERTILIZATION,
        field_ids=(),
        amount=10.0,
        unit=AmountUnit.CUBIC_METERS,
    )
    assert record.year == 2024
    assert not record.has_field_attribution
