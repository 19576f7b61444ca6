"""Pytest bootstrap and shared farm fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _append_repo_root() -> None:
    """Ensure repository root is present in import path."""
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_text = str(repo_root)
    if repo_root_text in sys.path:
        return
    sys.path.insert(0, repo_root_text)


_append_repo_root()

from agritrack.core.fields import make_field  # noqa: E402
from agritrack.core.geometry import offset_ring  # noqa: E402
from agritrack.core.models import (  # noqa: E402
    FertilizerType,
    Field,
    FieldType,
    GeoPoint,
    StorageLocation,
)

FARM_ORIGIN = GeoPoint(47.0, 14.0)


def at(north_m: float, east_m: float) -> GeoPoint:
    """Position ``north_m`` / ``east_m`` meters from the farm origin."""
    return offset_ring([FARM_ORIGIN], north_m, east_m)[0]


@pytest.fixture
def meadow() -> Field:
    """200 m x 200 m grassland square north-east of the origin."""
    return make_field(
        "meadow",
        "Hausfeld",
        [at(0, 0), at(0, 200), at(200, 200), at(200, 0)],
        field_type=FieldType.GRASSLAND,
    )


@pytest.fixture
def slurry_pit() -> StorageLocation:
    """Slurry storage 50 m south of the meadow."""
    return StorageLocation(
        id="pit-a",
        name="Güllegrube Nord",
        type=FertilizerType.SLURRY,
        capacity=500.0,
        current_level=200.0,
        daily_growth=2.0,
        geo=at(-50, 100),
    )


@pytest.fixture
def manure_pile() -> StorageLocation:
    """Manure storage 50 m south of the meadow, further east."""
    return StorageLocation(
        id="pile-a",
        name="Misthaufen",
        type=FertilizerType.MANURE,
        capacity=300.0,
        current_level=100.0,
        daily_growth=1.0,
        geo=at(-50, 400),
    )
