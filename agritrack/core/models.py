"""Data model for fields, storages, track points and activity records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from agritrack.config import TrackingSettings


class ActivityType(str, Enum):
    """Top-level activity categories."""

    FERTILIZATION = "Düngung"
    HARVEST = "Ernte"
    TILLAGE = "Bodenbearbeitung"
    SOWING = "Aussaat"
    PROTECTION = "Pflanzenschutz"


class FertilizerType(str, Enum):
    """Organic fertilizer kinds, also used as storage type."""

    SLURRY = "Gülle"
    MANURE = "Mist"


class HarvestType(str, Enum):
    """Harvest sub-types."""

    SILAGE = "Silage"
    HAY = "Heu"
    STRAW = "Stroh"
    GRAIN = "Getreide"


class TillageType(str, Enum):
    """Tillage sub-types."""

    HARROW = "Wiesenegge"
    MULCH = "Schlegeln"
    WEEDER = "Striegel"
    RESEEDING = "Nachsaat"
    PLOW = "Pflug"


class FieldType(str, Enum):
    """Land use class of a field."""

    ARABLE = "Acker"
    GRASSLAND = "Grünland"


class AmountUnit(str, Enum):
    """Units used for activity amounts."""

    CUBIC_METERS = "m³"
    HECTARES = "ha"
    LOADS = "Fuhren"
    TONNES = "t"
    PIECES = "Stk"


class TrackingState(str, Enum):
    """States of the field-activity tracking state machine."""

    IDLE = "IDLE"
    LOADING = "LOADING"
    TRANSIT = "TRANSIT"
    SPREADING = "SPREADING"


class FixSource(str, Enum):
    """Origin of a location fix."""

    LIVE = "live"
    SIMULATED = "simulated"


@dataclass(frozen=True, slots=True)
class GeoPoint:
    """WGS84 position in decimal degrees."""

    lat: float
    lng: float


@dataclass(frozen=True, slots=True)
class TrackPoint:
    """One recorded position of an active tracking session.

    Attributes
    ----------
    lat, lng : float
        Position in decimal degrees.
    timestamp : int
        Unix epoch milliseconds of the source fix.
    speed : float
        Speed in km/h at the time of the fix.
    is_spreading : bool
        Whether material was applied at this point.
    storage_id : str | None
        Storage the current load was drawn from, if any.
    load_index : int
        Running load counter, distinguishes consecutive loads.
    """

    lat: float
    lng: float
    timestamp: int
    speed: float
    is_spreading: bool
    storage_id: str | None = None
    load_index: int = 0

    @property
    def position(self) -> GeoPoint:
        return GeoPoint(self.lat, self.lng)


@dataclass(frozen=True, slots=True)
class LocationFix:
    """Raw location sample delivered by a GPS watch or the drag simulator.

    Attributes
    ----------
    lat, lng : float
        Position in decimal degrees.
    accuracy_m : float
        Reported horizontal accuracy in meters.
    timestamp_ms : int
        Unix epoch milliseconds.
    speed_mps : float | None
        Reported speed in meters/second, ``None`` when the platform does not
        report speed.
    heading_deg : float | None
        Heading in degrees clockwise from north, if known.
    source : FixSource
        Whether the fix comes from real GPS or from simulation.
    """

    lat: float
    lng: float
    accuracy_m: float
    timestamp_ms: int
    speed_mps: float | None = None
    heading_deg: float | None = None
    source: FixSource = FixSource.LIVE

    @property
    def position(self) -> GeoPoint:
        return GeoPoint(self.lat, self.lng)


@dataclass(frozen=True, slots=True)
class Field:
    """Geofenced field parcel.

    ``area_ha`` is derived from ``boundary``; use the helpers in
    :mod:`agritrack.core.fields` to edit a boundary so the area stays in sync.
    """

    id: str
    name: str
    area_ha: float
    type: FieldType
    boundary: tuple[GeoPoint, ...]
    usage: str = ""
    color: str | None = None
    codes: str | None = None


@dataclass(frozen=True, slots=True)
class StorageLocation:
    """Slurry tank or manure pile with its fill level in m³."""

    id: str
    name: str
    type: FertilizerType
    capacity: float
    current_level: float
    daily_growth: float
    geo: GeoPoint


@dataclass(frozen=True, slots=True)
class ActivityKind:
    """Closed activity variant: a category plus its matching sub-type.

    Use the named constructors instead of filling the sub-type fields by hand.

    Examples
    --------
    >>> ActivityKind.fertilization(FertilizerType.SLURRY).is_volumetric
    True
    >>> ActivityKind.tillage(TillageType.HARROW).is_volumetric
    False
    """

    type: ActivityType
    fertilizer_type: FertilizerType | None = None
    tillage_type: TillageType | None = None
    harvest_type: HarvestType | None = None

    def __post_init__(self) -> None:
        if self.type == ActivityType.FERTILIZATION:
            if self.fertilizer_type is None:
                raise ValueError("fertilization requires a fertilizer type")
        elif self.fertilizer_type is not None:
            raise ValueError(f"{self.type.value} cannot carry a fertilizer type")
        if self.tillage_type is not None and self.type != ActivityType.TILLAGE:
            raise ValueError(f"{self.type.value} cannot carry a tillage type")
        if self.harvest_type is not None and self.type != ActivityType.HARVEST:
            raise ValueError(f"{self.type.value} cannot carry a harvest type")

    @classmethod
    def fertilization(cls, fertilizer_type: FertilizerType) -> ActivityKind:
        return cls(ActivityType.FERTILIZATION, fertilizer_type=fertilizer_type)

    @classmethod
    def tillage(cls, tillage_type: TillageType) -> ActivityKind:
        return cls(ActivityType.TILLAGE, tillage_type=tillage_type)

    @classmethod
    def harvest(cls, harvest_type: HarvestType) -> ActivityKind:
        return cls(ActivityType.HARVEST, harvest_type=harvest_type)

    @classmethod
    def generic(cls, activity_type: ActivityType) -> ActivityKind:
        return cls(activity_type)

    @property
    def is_volumetric(self) -> bool:
        """Whether amounts are counted in loads instead of worked area."""
        return self.type == ActivityType.FERTILIZATION

    def load_size(self, settings: TrackingSettings) -> float:
        """Return the configured volume per load for this activity.

        Parameters
        ----------
        settings : TrackingSettings
            Active settings snapshot.

        Returns
        -------
        float
            Load size in m³, ``0.0`` for non-volumetric activities.
        """
        if self.fertilizer_type == FertilizerType.SLURRY:
            return float(settings.slurry_load_size)
        if self.fertilizer_type == FertilizerType.MANURE:
            return float(settings.manure_load_size)
        return 0.0

    def spread_width(self, settings: TrackingSettings) -> float:
        """Return the working width in meters for this activity."""
        if self.fertilizer_type == FertilizerType.SLURRY:
            return float(settings.slurry_spread_width)
        if self.fertilizer_type == FertilizerType.MANURE:
            return float(settings.manure_spread_width)
        return float(settings.spread_width)


@dataclass(frozen=True, slots=True)
class ActivityRecord:
    """Result of one finished tracking session or one manual entry."""

    id: str
    date: datetime
    type: ActivityType
    field_ids: tuple[str, ...]
    amount: float
    unit: AmountUnit
    load_count: int | None = None
    track_points: tuple[TrackPoint, ...] = ()
    field_distribution: dict[str, float] = field(default_factory=dict)
    storage_distribution: dict[str, float] = field(default_factory=dict)
    field_sources: dict[str, list[str]] = field(default_factory=dict)
    detailed_field_sources: dict[str, dict[str, float]] = field(default_factory=dict)
    notes: str = ""
    fertilizer_type: FertilizerType | None = None
    tillage_type: TillageType | None = None
    harvest_type: HarvestType | None = None

    @property
    def year(self) -> int:
        return self.date.year

    @property
    def has_field_attribution(self) -> bool:
        """False when no spreading point could be matched to a field."""
        return bool(self.field_distribution)
